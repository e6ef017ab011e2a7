"""
scotty — a fast directory switcher using fuzzy search.

Every visited directory is recorded in a local SQLite ledger; a compact,
immutable sorted path set answers fuzzy and substring queries, and the best
match is picked by fuzzy score with recency as the tie-breaker.
"""

__version__ = "0.4.0"

from scotty.errors import (
    BadDataDirectory,
    CorruptIndex,
    NoResults,
    OrderError,
    PathNotDirectory,
    RelativePath,
    ScottyError,
    StorageFailure,
    UnknownShell,
)
from scotty.types import PathEntry, Score
from scotty.pathset import PathSet, PathSetBuilder, SetOp
from scotty.index import ConsistencyReport, Index
from scotty.config import ScottyConfig, load_config

__all__ = [
    "__version__",
    "BadDataDirectory",
    "CorruptIndex",
    "NoResults",
    "OrderError",
    "PathNotDirectory",
    "RelativePath",
    "ScottyError",
    "StorageFailure",
    "UnknownShell",
    "PathEntry",
    "Score",
    "PathSet",
    "PathSetBuilder",
    "SetOp",
    "ConsistencyReport",
    "Index",
    "ScottyConfig",
    "load_config",
]
