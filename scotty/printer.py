"""
Output formatting for ledger listings and search results.

stdout purity: these functions write only data. Progress and warnings are
the CLI's business and go to stderr.
"""

from __future__ import annotations

import json
import sys
from typing import IO, Iterable, List, Optional

from scotty.types import PathEntry

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(entry: PathEntry) -> str:
    """Local wall-clock rendering of an entry's last visit."""
    return entry.visited_at.astimezone().strftime(_TIME_FORMAT)


def print_paths(paths: Iterable[str], out: Optional[IO[str]] = None) -> None:
    """One path per line."""
    out = out or sys.stdout
    for path in paths:
        out.write(f"{path}\n")


def print_json(entries: Iterable[PathEntry], out: Optional[IO[str]] = None) -> None:
    """Line-delimited JSON objects, one per entry."""
    out = out or sys.stdout
    for entry in entries:
        out.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")


def print_human(entries: List[PathEntry], out: Optional[IO[str]] = None) -> None:
    """Two-column PATH / TIMESTAMP table."""
    out = out or sys.stdout
    rows = [(e.path, format_timestamp(e)) for e in entries]
    width = max([len("PATH")] + [len(p) for p, _ in rows])
    out.write(f"{'PATH':<{width}}  TIMESTAMP\n")
    for path, stamp in rows:
        out.write(f"{path:<{width}}  {stamp}\n")
