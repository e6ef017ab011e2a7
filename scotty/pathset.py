"""
PathSet — immutable, sorted, deduplicated set of path keys

The membership index is one serialized PathSet. It is never mutated in place:
every structural change builds a new set from an ordered stream (union with,
or difference against, a one-element delta set) and replaces the stored blob.

Blob layout (little-endian):
    b"SCPS"            magic
    u8                 format version
    u32                element count
    per element        varint(shared prefix length), varint(suffix length), suffix
    u32                CRC-32 of everything above

Elements are front-coded against their predecessor, which keeps the blob
compact for directory trees that share long prefixes.
"""

from __future__ import annotations

import enum
import logging
import os
import struct
import zlib
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from scotty.errors import CorruptIndex, OrderError

logger = logging.getLogger(__name__)

MAGIC = b"SCPS"
FORMAT_VERSION = 1

_HEADER = struct.Struct("<4sBI")
_TRAILER = struct.Struct("<I")

PathLike = Union[str, bytes, "os.PathLike[str]"]


def to_key(path: PathLike) -> bytes:
    """Byte-exact key for a path (undecodable names survive via surrogateescape)."""
    return os.fsencode(path)


def from_key(key: bytes) -> str:
    return os.fsdecode(key)


# ---------------------------------------------------------------------------
# Varint helpers
# ---------------------------------------------------------------------------


def _write_varint(out: bytearray, value: int) -> None:
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _read_varint(data: bytes, pos: int, end: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= end:
            raise CorruptIndex("Truncated varint in path set")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise CorruptIndex("Varint too long in path set")


def _common_prefix(a: bytes, b: bytes) -> int:
    n = min(len(a), len(b))
    i = 0
    while i < n and a[i] == b[i]:
        i += 1
    return i


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class PathSetBuilder:
    """Build a PathSet from keys presented in strictly ascending byte order.

    Inserting a key that is not greater than the previous one raises
    OrderError; the builder does not sort for you.
    """

    def __init__(self):
        self._keys: List[bytes] = []

    def insert(self, key: bytes) -> None:
        if self._keys and key <= self._keys[-1]:
            raise OrderError(
                f"Key {key!r} inserted after {self._keys[-1]!r}: "
                "keys must be strictly ascending"
            )
        self._keys.append(key)

    def extend(self, keys: Iterable[bytes]) -> None:
        for key in keys:
            self.insert(key)

    def finish(self) -> PathSet:
        keys = tuple(self._keys)
        self._keys = []
        return PathSet(keys)


# ---------------------------------------------------------------------------
# PathSet
# ---------------------------------------------------------------------------


class PathSet:
    """Immutable sorted set of path keys.

    Construct with ``PathSet.from_iter`` (any order, duplicates allowed),
    ``PathSet.from_bytes`` (a stored blob) or ``PathSetBuilder``.
    Iteration yields decoded path strings in ascending key order.
    """

    __slots__ = ("_keys",)

    def __init__(self, keys: Tuple[bytes, ...] = ()):
        # Callers outside this module go through the builder or from_iter
        self._keys = keys

    @classmethod
    def from_iter(cls, items: Iterable[PathLike]) -> PathSet:
        builder = PathSetBuilder()
        builder.extend(sorted({to_key(item) for item in items}))
        return builder.finish()

    @classmethod
    def from_bytes(cls, data: Optional[bytes]) -> PathSet:
        """Decode a stored blob. ``None`` or empty data is the empty set."""
        if not data:
            return cls()
        data = bytes(data)
        if len(data) < _HEADER.size + _TRAILER.size:
            raise CorruptIndex(f"Path set blob too short ({len(data)} bytes)")
        magic, version, count = _HEADER.unpack_from(data, 0)
        if magic != MAGIC:
            raise CorruptIndex(f"Bad path set magic: {magic!r}")
        if version != FORMAT_VERSION:
            raise CorruptIndex(f"Unsupported path set version: {version}")
        end = len(data) - _TRAILER.size
        (checksum,) = _TRAILER.unpack_from(data, end)
        if zlib.crc32(data[:end]) != checksum:
            raise CorruptIndex("Path set checksum mismatch")

        builder = PathSetBuilder()
        pos = _HEADER.size
        prev = b""
        for _ in range(count):
            shared, pos = _read_varint(data, pos, end)
            length, pos = _read_varint(data, pos, end)
            if shared > len(prev) or pos + length > end:
                raise CorruptIndex("Path set element out of bounds")
            key = prev[:shared] + data[pos:pos + length]
            pos += length
            try:
                builder.insert(key)
            except OrderError as e:
                raise CorruptIndex(f"Path set elements out of order: {e}") from e
            prev = key
        if pos != end:
            raise CorruptIndex("Trailing bytes after path set elements")
        return builder.finish()

    def to_bytes(self) -> bytes:
        out = bytearray(_HEADER.pack(MAGIC, FORMAT_VERSION, len(self._keys)))
        prev = b""
        for key in self._keys:
            shared = _common_prefix(prev, key)
            _write_varint(out, shared)
            _write_varint(out, len(key) - shared)
            out += key[shared:]
            prev = key
        out += _TRAILER.pack(zlib.crc32(bytes(out)))
        return bytes(out)

    # -- Set protocol ------------------------------------------------------

    def __len__(self) -> int:
        return len(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)

    def __iter__(self) -> Iterator[str]:
        return (from_key(k) for k in self._keys)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, (str, bytes, os.PathLike)):
            return False
        key = to_key(item)
        # bisect over the sorted tuple
        lo, hi = 0, len(self._keys)
        while lo < hi:
            mid = (lo + hi) // 2
            if self._keys[mid] < key:
                lo = mid + 1
            else:
                hi = mid
        return lo < len(self._keys) and self._keys[lo] == key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathSet):
            return NotImplemented
        return self._keys == other._keys

    def __hash__(self) -> int:
        return hash(self._keys)

    def __repr__(self) -> str:
        return f"PathSet({list(self)!r})"

    def keys(self) -> Iterator[bytes]:
        """Raw keys in ascending byte order."""
        return iter(self._keys)

    def search(self, matcher) -> Iterator[str]:
        """Stream the elements accepted by ``matcher``, in ascending order."""
        for key in self._keys:
            path = from_key(key)
            if matcher.matches(path):
                yield path


# ---------------------------------------------------------------------------
# Ordered stream operations
# ---------------------------------------------------------------------------


class SetOp(enum.Enum):
    """How a delta set is combined with the existing set."""

    UNION = "union"
    DIFFERENCE = "difference"


def union_stream(left: Iterable[bytes], right: Iterable[bytes]) -> Iterator[bytes]:
    """Merge two ascending key streams, emitting each key once."""
    left_it, right_it = iter(left), iter(right)
    a = next(left_it, None)
    b = next(right_it, None)
    while a is not None and b is not None:
        if a < b:
            yield a
            a = next(left_it, None)
        elif b < a:
            yield b
            b = next(right_it, None)
        else:
            yield a
            a = next(left_it, None)
            b = next(right_it, None)
    while a is not None:
        yield a
        a = next(left_it, None)
    while b is not None:
        yield b
        b = next(right_it, None)


def difference_stream(left: Iterable[bytes], right: Iterable[bytes]) -> Iterator[bytes]:
    """Emit keys of the ascending ``left`` stream absent from ``right``."""
    right_it = iter(right)
    b = next(right_it, None)
    for a in left:
        while b is not None and b < a:
            b = next(right_it, None)
        if b is not None and b == a:
            continue
        yield a


def merge(left: PathSet, right: PathSet) -> PathSet:
    """Union of two sets as a newly built PathSet."""
    logger.debug("Merging path sets (%d + %d)", len(left), len(right))
    builder = PathSetBuilder()
    builder.extend(union_stream(left.keys(), right.keys()))
    return builder.finish()


def remove(left: PathSet, right: PathSet) -> PathSet:
    """``left`` minus ``right`` as a newly built PathSet."""
    logger.debug("Removing path set (%d - %d)", len(left), len(right))
    builder = PathSetBuilder()
    builder.extend(difference_stream(left.keys(), right.keys()))
    return builder.finish()


def rebuild(existing: PathSet, element: PathLike, op: SetOp) -> PathSet:
    """Return ``existing`` with ``element`` added or removed, per ``op``."""
    delta = PathSet.from_iter([element])
    if op is SetOp.UNION:
        return merge(existing, delta)
    if op is SetOp.DIFFERENCE:
        return remove(existing, delta)
    raise ValueError(f"Unknown set operation: {op!r}")
