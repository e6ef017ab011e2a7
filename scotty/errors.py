"""
Exception hierarchy for scotty.

Validation errors (PathNotDirectory, RelativePath) are raised before any
mutation. StorageFailure and CorruptIndex are fatal and never retried.
"""

from __future__ import annotations


class ScottyError(Exception):
    """Base class for all scotty errors."""

    pass


class PathNotDirectory(ScottyError):
    """Raised when a path to add is not an existing directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path `{path}` is not a directory that exists")


class RelativePath(ScottyError):
    """Raised when a path to add is not absolute."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path `{path}` is not absolute")


class NoResults(ScottyError):
    """Raised when every candidate for a pattern has been exhausted."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"No path found for pattern `{pattern}`")


class StorageFailure(ScottyError):
    """The underlying SQLite store could not open, read or write."""

    pass


class CorruptIndex(ScottyError):
    """Stored set or timestamp bytes could not be decoded."""

    pass


class OrderError(CorruptIndex):
    """A set builder received keys out of ascending order."""

    pass


class BadDataDirectory(ScottyError):
    """No writable location for the index data could be determined."""

    def __init__(self) -> None:
        super().__init__("Could not determine writable location for index data")


class UnknownShell(ScottyError):
    """Raised for a shell name that has no integration script."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"`{name}` is not a supported shell. Must be one of: [bash, zsh]"
        )
