"""
scotty Configuration

Configuration dataclasses for the store and the search loop, resolution of
the platform data directory, and load_config() for reading a JSON config
file with silent fallback to compiled defaults.

Precedence for the database path (invariant):
    CLI --db  >  SCOTTY_DB env var  >  config file  >  platform data dir
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from scotty.errors import BadDataDirectory, ScottyError

APP_NAME = "scotty"
DB_FILENAME = "scotty.db"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ScottyError, ValueError):
    """Raised when config values are out of valid range."""

    pass


def _check_range(
    errors: List[str], name: str, value, lo, hi, typ=None,
) -> None:
    """Append an error message if value is out of [lo, hi] or wrong type."""
    # bool is an int subclass but never a valid count
    if typ is not None and (
        not isinstance(value, typ) or (typ is not bool and isinstance(value, bool))
    ):
        errors.append(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
        return
    if value < lo or value > hi:
        errors.append(f"{name}: {value} not in [{lo}, {hi}]")


# ---------------------------------------------------------------------------
# Data directory
# ---------------------------------------------------------------------------


def data_dir() -> Path:
    """Platform data directory for scotty (not created here).

    Raises:
        BadDataDirectory: If no home directory can be determined.
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / APP_NAME
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg and os.path.isabs(xdg) and sys.platform != "darwin":
        return Path(xdg) / APP_NAME
    try:
        home = Path.home()
    except RuntimeError as e:
        raise BadDataDirectory() from e
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_NAME
    return home / ".local" / "share" / APP_NAME


def default_db_path() -> str:
    """Default location of the index database."""
    return str(data_dir() / DB_FILENAME)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class StoreConfig:
    """SQLite store configuration. An empty db_path means the data dir default."""
    db_path: str = ""
    wal_mode: bool = True

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        if not isinstance(self.db_path, str):
            errors.append(
                f"store.db_path: expected str, got {type(self.db_path).__name__}"
            )
        if not isinstance(self.wal_mode, bool):
            errors.append(
                f"store.wal_mode: expected bool, got {type(self.wal_mode).__name__}"
            )
        return errors

    def resolved_db_path(self) -> str:
        return self.db_path or default_db_path()


@dataclass
class SearchConfig:
    """Jump loop configuration.

    max_attempts bounds how many stale candidates one jump may delete
    (0 = until the candidates run out).
    """
    max_attempts: int = 0

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "search.max_attempts",
                      self.max_attempts, 0, 100000, int)
        return errors


@dataclass
class ScottyConfig:
    """Top-level scotty configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ScottyConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        if "search" in d:
            kwargs["search"] = SearchConfig(**d["search"])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        errors.extend(self.search.validate())
        return errors


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> ScottyConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ConfigValidationError on invalid config values.

    Returns:
        ScottyConfig with values from file or defaults.

    Raises:
        ConfigValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = ScottyConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = ScottyConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError):
            cfg = ScottyConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ConfigValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg
