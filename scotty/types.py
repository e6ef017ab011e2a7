"""
Data model for the directory index.

PathEntry is one row of the path ledger. Score is the ephemeral ranking
record used while picking the best match for a query. Timestamps are integer
nanoseconds since the Unix epoch, stored as a fixed 12-byte value.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from scotty.errors import CorruptIndex

# u64 seconds + u32 nanoseconds, little-endian
_TIMESTAMP_FORMAT = struct.Struct("<QI")
TIMESTAMP_SIZE = _TIMESTAMP_FORMAT.size

_NS_PER_SECOND = 1_000_000_000


# ---------------------------------------------------------------------------
# Timestamp codec
# ---------------------------------------------------------------------------


def encode_timestamp(timestamp_ns: int) -> bytes:
    """Encode nanoseconds since the epoch as 12 bytes."""
    if timestamp_ns < 0:
        raise ValueError(f"Timestamp before the epoch: {timestamp_ns}")
    seconds, nanos = divmod(timestamp_ns, _NS_PER_SECOND)
    return _TIMESTAMP_FORMAT.pack(seconds, nanos)


def decode_timestamp(data: bytes) -> int:
    """Decode 12 timestamp bytes. Raises CorruptIndex on malformed input."""
    if len(data) != TIMESTAMP_SIZE:
        raise CorruptIndex(
            f"Timestamp must be {TIMESTAMP_SIZE} bytes, got {len(data)}"
        )
    seconds, nanos = _TIMESTAMP_FORMAT.unpack(data)
    if nanos >= _NS_PER_SECOND:
        raise CorruptIndex(f"Timestamp nanoseconds out of range: {nanos}")
    return seconds * _NS_PER_SECOND + nanos


def to_datetime(timestamp_ns: int) -> datetime:
    """Convert nanoseconds since the epoch to an aware UTC datetime."""
    seconds, nanos = divmod(timestamp_ns, _NS_PER_SECOND)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return dt.replace(microsecond=nanos // 1000)


# ---------------------------------------------------------------------------
# Ledger entry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathEntry:
    """A visited directory and the time of its last visit."""

    path: str
    timestamp: int

    @property
    def visited_at(self) -> datetime:
        return to_datetime(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        return {"path": self.path, "timestamp": self.visited_at.isoformat()}


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


@dataclass
class Score:
    """Fuzzy match quality of one candidate path.

    ``timestamp`` is only filled in for candidates that tie on ``score``.
    """

    path: str
    score: int
    timestamp: Optional[int] = field(default=None)

    def sort_key(self):
        """Ascending key: score, then recency (missing first), then path."""
        ts = -1 if self.timestamp is None else self.timestamp
        return (self.score, ts, self.path)
