"""
Index Engine — visited-directory ledger plus fuzzy membership index

Two structures live in one store:
    paths   path -> last-visited timestamp (the ledger)
    main    "index" -> serialized PathSet of every ledger key

add() and delete() keep them in step: a new path rebuilds the set with a
union, a removed path rebuilds it with a difference, and repeat visits only
touch the ledger. The two writes are separate commits; a crash between them
leaves the set out of step with the ledger until that path is mutated again
or check()/repair() is run. Nothing reconciles them automatically.

Searching never touches the filesystem. jump() is the caller-side loop that
deletes vanished directories and retries.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from scotty.config import ScottyConfig
from scotty.errors import CorruptIndex, NoResults, PathNotDirectory, RelativePath
from scotty.matcher import build_query
from scotty.pathset import PathLike, PathSet, SetOp, from_key, rebuild
from scotty.scoring import pick_best, score_results
from scotty.store import MAIN_TREE, PATHS_TREE, PathLedger, Store
from scotty.types import PathEntry

logger = logging.getLogger(__name__)

INDEX_KEY = b"index"


@dataclass
class ConsistencyReport:
    """Divergence between the ledger and the membership index."""

    ledger_count: int = 0
    index_count: int = 0
    # in the ledger but not searchable
    unindexed: List[str] = field(default_factory=list)
    # searchable but no longer in the ledger
    orphaned: List[str] = field(default_factory=list)
    # stored set could not be decoded
    corrupt: bool = False
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return not self.corrupt and not self.unindexed and not self.orphaned

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consistent": self.consistent,
            "ledger_count": self.ledger_count,
            "index_count": self.index_count,
            "unindexed": self.unindexed,
            "orphaned": self.orphaned,
            "corrupt": self.corrupt,
            "repaired": self.repaired,
        }


class Index:
    """
    Persistent index of visited directories.

    Owns its store exclusively. Use as a context manager, or call close().
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        wal_mode: bool = True,
        clock: Callable[[], int] = time.time_ns,
    ):
        """Open the index.

        Args:
            db_path: SQLite database path (or ":memory:" for in-memory).
            wal_mode: Enable WAL journal mode.
            clock: Returns "now" in nanoseconds since the epoch.
        """
        logger.debug("Opening index: %s", db_path)
        self._store = Store(db_path, wal_mode=wal_mode)
        try:
            self._main = self._store.tree(MAIN_TREE)
            self._paths = PathLedger(self._store.tree(PATHS_TREE))
        except Exception:
            self._store.close()
            raise
        self._clock = clock

    @classmethod
    def open(cls, config: ScottyConfig, db_path: Optional[str] = None) -> Index:
        """Open the index described by ``config`` (``db_path`` overrides it)."""
        return cls(
            db_path or config.store.resolved_db_path(),
            wal_mode=config.store.wal_mode,
        )

    @property
    def db_path(self) -> str:
        return self._store.db_path

    def close(self) -> None:
        self._store.close()

    def __enter__(self) -> Index:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- Mutations ---------------------------------------------------------

    def add(self, path: PathLike) -> None:
        """Record a visit to ``path``, an existing absolute directory.

        Raises:
            PathNotDirectory: ``path`` is not an existing directory.
            RelativePath: ``path`` is not absolute.
        """
        path = os.fspath(path)
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        logger.debug("Adding path to index: %s", path)
        if not os.path.isdir(path):
            raise PathNotDirectory(path)
        if not os.path.isabs(path):
            raise RelativePath(path)

        if self._paths.upsert(path, self._clock()) is None:
            self._update_path_set(path, SetOp.UNION)

    def delete(self, path: PathLike) -> None:
        """Forget ``path``. Succeeds silently if it was never indexed."""
        path = os.fspath(path)
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        logger.debug("Deleting path from index: %s", path)
        if self._paths.remove(path) is not None:
            self._update_path_set(path, SetOp.DIFFERENCE)

    # -- Queries -----------------------------------------------------------

    def find_all(self, target: str, exclude: Optional[str] = None) -> List[str]:
        """Every indexed path matching ``target``, unranked, in key order."""
        return self._search(target, exclude)

    def find_one(self, target: str, exclude: Optional[str] = None) -> Optional[str]:
        """Best indexed path for ``target``, or None.

        Ties on fuzzy score go to the most recently visited path.
        """
        if not target:
            return None

        results = self._search(target, exclude)
        logger.debug("Set result: %s", results)

        scores = score_results(results, target)
        logger.debug("Scored set result: %s", scores)

        best = pick_best(scores, self._paths.get)
        logger.debug("Best result: %s", best)
        return best.path if best is not None else None

    def list(self) -> List[PathEntry]:
        """All ledger entries, in key byte order."""
        return list(self._paths.iterate_all())

    def jump(
        self,
        target: str,
        exclude: Optional[str] = None,
        *,
        max_attempts: int = 0,
    ) -> str:
        """Best match for ``target`` that still exists on disk.

        Stale winners are deleted from the index and the search retried.
        ``max_attempts`` caps the number of searches (0 = no cap).

        Raises:
            NoResults: No live directory matches.
        """
        attempts = 0
        while not max_attempts or attempts < max_attempts:
            attempts += 1
            best = self.find_one(target, exclude)
            if best is None:
                break
            if os.path.isdir(best):
                return best
            logger.info("Removing stale path from index: %s", best)
            self.delete(best)
        raise NoResults(target)

    def stats(self) -> Dict[str, Any]:
        """Summary statistics for the index.

        ``index_count`` is None when the stored set cannot be decoded.
        """
        blob = self._main.get(INDEX_KEY)
        try:
            index_count: Optional[int] = len(PathSet.from_bytes(blob))
        except CorruptIndex:
            index_count = None
        return {
            "db_path": self.db_path,
            "ledger_count": self._paths.count(),
            "index_count": index_count,
            "index_bytes": len(blob) if blob else 0,
        }

    # -- Consistency -------------------------------------------------------

    def check(self) -> ConsistencyReport:
        """Compare ledger keys with the membership index. Read-only.

        An undecodable set is reported as corrupt, with every ledger key
        counted as unindexed.
        """
        ledger_keys = set(self._paths.keys())
        corrupt = False
        try:
            index_keys = set(self._load_path_set().keys())
        except CorruptIndex as e:
            logger.warning("Stored path index is corrupt: %s", e)
            corrupt = True
            index_keys = set()
        report = ConsistencyReport(
            ledger_count=len(ledger_keys),
            index_count=len(index_keys),
            unindexed=sorted(from_key(k) for k in ledger_keys - index_keys),
            orphaned=sorted(from_key(k) for k in index_keys - ledger_keys),
            corrupt=corrupt,
        )
        if not report.consistent and not corrupt:
            logger.warning(
                "Index out of step with ledger: %d unindexed, %d orphaned",
                len(report.unindexed), len(report.orphaned),
            )
        return report

    def repair(self) -> ConsistencyReport:
        """Rebuild the membership index wholesale from the ledger keys."""
        report = self.check()
        if not report.consistent:
            path_set = PathSet.from_iter(self._paths.keys())
            self._main.insert(INDEX_KEY, path_set.to_bytes())
            report.repaired = True
            logger.info("Rebuilt path index from ledger (%d paths)", len(path_set))
        return report

    # -- Internals ---------------------------------------------------------

    def _load_path_set(self) -> PathSet:
        return PathSet.from_bytes(self._main.get(INDEX_KEY))

    def _search(self, target: str, exclude: Optional[str]) -> List[str]:
        logger.debug("Searching target in index: %s", target)
        query = build_query(target, exclude)
        if query is None:
            return []
        return list(self._load_path_set().search(query))

    def _update_path_set(self, path: str, op: SetOp) -> None:
        logger.debug("Updating path index (%s): %s", op.value, path)
        new_set = rebuild(self._load_path_set(), path, op)
        self._main.insert(INDEX_KEY, new_set.to_bytes())
