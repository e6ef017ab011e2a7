"""
Ordered Key-Value Store — SQLite Persistent Backend

Tables:
    schema_meta     - Store metadata (schema version, creator)
    tree_<name>     - One byte-ordered key/value tree per namespace

Each tree is a WITHOUT ROWID table keyed by a BLOB primary key, so iteration
is in key byte order (memcmp). Every single-key operation commits on its own;
there is no transaction spanning several trees.

PathLedger wraps the ``paths`` tree: path string -> last-visited timestamp.

Thread safety: uses sqlite3 check_same_thread=False with explicit serialization.
"""

from __future__ import annotations

import contextlib
import logging
import re
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from scotty.errors import StorageFailure
from scotty.pathset import PathLike, from_key, to_key
from scotty.types import PathEntry, decode_timestamp, encode_timestamp

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

PATHS_TREE = "paths"
MAIN_TREE = "main"

_TREE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def _validate_tree_name(name: str) -> str:
    """Validate a tree name before it is interpolated into SQL."""
    if not _TREE_NAME_PATTERN.match(name):
        raise ValueError(
            f"Unsafe tree name: {name!r} — only [a-z0-9_] characters allowed"
        )
    return name


@contextlib.contextmanager
def _storage_errors(action: str):
    """Re-raise sqlite3 errors as StorageFailure, keeping the message."""
    try:
        yield
    except sqlite3.Error as e:
        logger.debug("SQLite error while %s: %s", action, e)
        raise StorageFailure(str(e)) from e


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class Store:
    """
    SQLite-backed store of independently namespaced, byte-ordered trees.

    Owns its connection exclusively; close() is idempotent and the store is
    usable as a context manager.
    """

    def __init__(self, db_path: str = ":memory:", wal_mode: bool = True):
        """Open (or create) the store.

        Args:
            db_path: SQLite database path (or ":memory:" for in-memory).
            wal_mode: Enable WAL journal mode for crash-safe appends.
        """
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._trees: Dict[str, Tree] = {}
        self._closed = False
        with _storage_errors(f"opening {self._db_path}"):
            if self._db_path != ":memory:":
                try:
                    Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise StorageFailure(str(e)) from e
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            try:
                self._init_schema(wal_mode)
            except BaseException:
                self._conn.close()
                raise
        logger.debug("Store opened: %s (wal=%s)", self._db_path, wal_mode)

    def _init_schema(self, wal_mode: bool) -> None:
        """Configure the connection and check the stored schema version."""
        self._conn.row_factory = sqlite3.Row
        if wal_mode and self._db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('created_by', 'scotty')",
        )
        self._conn.commit()
        row = self._conn.execute(
            "SELECT value FROM schema_meta WHERE key='schema_version'"
        ).fetchone()
        try:
            version = int(row["value"])
        except ValueError:
            version = -1
        if version != SCHEMA_VERSION:
            raise StorageFailure(
                f"Unsupported schema version {row['value']!r} in {self._db_path} "
                f"(expected {SCHEMA_VERSION})"
            )

    @property
    def db_path(self) -> str:
        return self._db_path

    def tree(self, name: str) -> Tree:
        """Open (creating if needed) the tree called ``name``."""
        name = _validate_tree_name(name)
        if name not in self._trees:
            with self._lock, _storage_errors(f"opening tree {name}"):
                self._conn.execute(
                    f"CREATE TABLE IF NOT EXISTS tree_{name} ("
                    "key BLOB PRIMARY KEY, value BLOB NOT NULL"
                    ") WITHOUT ROWID"
                )
                self._conn.commit()
            self._trees[name] = Tree(self, name)
        return self._trees[name]

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            with _storage_errors("closing"):
                self._conn.close()
        logger.debug("Store closed: %s", self._db_path)

    def __enter__(self) -> Store:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Tree:
    """One namespace of the store. Keys and values are bytes."""

    def __init__(self, store: Store, name: str):
        self._store = store
        self.name = name
        self._table = f"tree_{name}"

    def get(self, key: bytes) -> Optional[bytes]:
        with self._store._lock, _storage_errors(f"reading {self.name}"):
            row = self._store._conn.execute(
                f"SELECT value FROM {self._table} WHERE key=?", (key,)
            ).fetchone()
        return bytes(row["value"]) if row else None

    def insert(self, key: bytes, value: bytes) -> Optional[bytes]:
        """Set ``key`` to ``value``. Returns the previous value, or None if new."""
        conn = self._store._conn
        with self._store._lock, _storage_errors(f"writing {self.name}"):
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    f"SELECT value FROM {self._table} WHERE key=?", (key,)
                ).fetchone()
                conn.execute(
                    f"INSERT OR REPLACE INTO {self._table} (key, value) VALUES (?, ?)",
                    (key, value),
                )
        return bytes(row["value"]) if row else None

    def remove(self, key: bytes) -> Optional[bytes]:
        """Delete ``key``. Returns the removed value, or None if absent."""
        conn = self._store._conn
        with self._store._lock, _storage_errors(f"writing {self.name}"):
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    f"SELECT value FROM {self._table} WHERE key=?", (key,)
                ).fetchone()
                if row is not None:
                    conn.execute(
                        f"DELETE FROM {self._table} WHERE key=?", (key,)
                    )
        return bytes(row["value"]) if row else None

    def iter(self) -> Iterator[Tuple[bytes, bytes]]:
        """All (key, value) pairs in ascending key byte order."""
        with self._store._lock, _storage_errors(f"reading {self.name}"):
            rows = self._store._conn.execute(
                f"SELECT key, value FROM {self._table} ORDER BY key"
            ).fetchall()
        for row in rows:
            yield bytes(row["key"]), bytes(row["value"])

    def __len__(self) -> int:
        with self._store._lock, _storage_errors(f"reading {self.name}"):
            row = self._store._conn.execute(
                f"SELECT COUNT(*) AS cnt FROM {self._table}"
            ).fetchone()
        return row["cnt"]


# ---------------------------------------------------------------------------
# Path ledger
# ---------------------------------------------------------------------------


class PathLedger:
    """Maps an absolute directory path to its last-visited timestamp."""

    def __init__(self, tree: Tree):
        self._tree = tree

    def get(self, path: PathLike) -> Optional[int]:
        data = self._tree.get(to_key(path))
        return None if data is None else decode_timestamp(data)

    def upsert(self, path: PathLike, timestamp: int) -> Optional[int]:
        """Record a visit. Returns the previous timestamp, None for a new path."""
        previous = self._tree.insert(to_key(path), encode_timestamp(timestamp))
        return None if previous is None else decode_timestamp(previous)

    def remove(self, path: PathLike) -> Optional[int]:
        previous = self._tree.remove(to_key(path))
        return None if previous is None else decode_timestamp(previous)

    def iterate_all(self) -> Iterator[PathEntry]:
        """Entries in key byte order (not visit order)."""
        for key, value in self._tree.iter():
            yield PathEntry(path=from_key(key), timestamp=decode_timestamp(value))

    def keys(self) -> List[bytes]:
        return [key for key, _ in self._tree.iter()]

    def count(self) -> int:
        return len(self._tree)
