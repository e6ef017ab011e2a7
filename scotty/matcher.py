"""
Query matchers for the membership index.

A query is a small tree of matchers, each answering ``matches(text)``:

    Subsequence   target characters appear in order, gaps allowed
    Substring     target appears as a contiguous, case-insensitive run
    Exact         text equals a fixed string
    Union         either operand matches
    Intersection  both operands match
    Complement    operand does not match

build_query() combines them into the recall-oriented search used by the
index: Subsequence | Substring, minus the excluded path if one is given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union as _Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subsequence:
    """Accepts text containing ``target``'s characters in order (case-sensitive)."""

    target: str

    def matches(self, text: str) -> bool:
        it = iter(text)
        return all(ch in it for ch in self.target)


@dataclass(frozen=True)
class Substring:
    """Accepts text containing ``target`` literally, ignoring case."""

    target: str

    def matches(self, text: str) -> bool:
        return self.target.casefold() in text.casefold()


@dataclass(frozen=True)
class Exact:
    """Accepts exactly one string."""

    value: str

    def matches(self, text: str) -> bool:
        return text == self.value


@dataclass(frozen=True)
class Union:
    left: "Matcher"
    right: "Matcher"

    def matches(self, text: str) -> bool:
        return self.left.matches(text) or self.right.matches(text)


@dataclass(frozen=True)
class Intersection:
    left: "Matcher"
    right: "Matcher"

    def matches(self, text: str) -> bool:
        return self.left.matches(text) and self.right.matches(text)


@dataclass(frozen=True)
class Complement:
    inner: "Matcher"

    def matches(self, text: str) -> bool:
        return not self.inner.matches(text)


Matcher = _Union[Subsequence, Substring, Exact, Union, Intersection, Complement]


def build_query(target: str, exclude: Optional[str] = None) -> Optional[Matcher]:
    """Compose the search matcher for ``target``.

    Returns None for an empty target: there is nothing to search for.
    When ``exclude`` is given the excluded path never matches, however
    well it scores against the target.
    """
    if not target:
        return None
    query: Matcher = Union(Subsequence(target), Substring(target))
    if exclude is not None:
        query = Intersection(query, Complement(Exact(exclude)))
    logger.debug("Built query for %r (exclude=%r): %r", target, exclude, query)
    return query
