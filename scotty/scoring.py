"""
Fuzzy match scoring and tie-breaking for index candidates.

fuzzy_score() rates how well a candidate path matches a typed fragment using
a Smith-Waterman style alignment over characters:

  - every matched character earns SCORE_MATCH
  - matches at word boundaries (after a separator, camelCase hump, digit run)
    earn a boundary bonus; runs of consecutive matches earn a run bonus
  - a gap of g skipped characters between matches costs
    GAP_START + GAP_EXTENSION * (g - 1)
  - an alignment ending inside the last path component earns BONUS_BASENAME

Characters compare case-insensitively; an exact-case match earns a small
bonus. The score depends only on where the fragment aligns, not on the total
candidate length, so two candidates that align identically score the same.

Non-matches yield NO_MATCH_SCORE (0); matches always score at least 1.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from scotty.types import Score

logger = logging.getLogger(__name__)

NO_MATCH_SCORE = 0

SCORE_MATCH = 16
GAP_START = 3
GAP_EXTENSION = 1
BONUS_BOUNDARY = 8
BONUS_CAMEL = 7
BONUS_CONSECUTIVE = 4
BONUS_CASE = 1
BONUS_BASENAME = 16

_SEPARATORS = frozenset("/\\_-. ")


def _boundary_bonus(choice: str, j: int) -> int:
    if j == 0:
        return BONUS_BOUNDARY
    prev, cur = choice[j - 1], choice[j]
    if prev in _SEPARATORS:
        return BONUS_BOUNDARY
    if prev.islower() and cur.isupper():
        return BONUS_CAMEL
    if not prev.isdigit() and cur.isdigit():
        return BONUS_CAMEL
    return 0


def _basename_start(choice: str) -> int:
    """Index where the last path component begins (trailing separators ignored)."""
    stripped = choice.rstrip("/\\")
    return max(stripped.rfind("/"), stripped.rfind("\\")) + 1


def fuzzy_score(choice: str, pattern: str) -> Optional[int]:
    """Score ``choice`` against ``pattern``. Returns None when it does not match.

    ``pattern`` must appear in ``choice`` as a (case-insensitive) subsequence.
    """
    n, m = len(pattern), len(choice)
    if n == 0 or n > m:
        return None
    p_low = [c.lower() for c in pattern]
    c_low = [c.lower() for c in choice]

    # Cheap rejection before the quadratic pass
    it = iter(c_low)
    if not all(c in it for c in p_low):
        return None

    prev_row: List[Optional[int]] = [None] * m
    for i in range(n):
        row: List[Optional[int]] = [None] * m
        # best over k <= j-2 of prev_row[k] + GAP_EXTENSION * k
        best_gap: Optional[int] = None
        for j in range(i, m - (n - i - 1)):
            if i > 0 and j >= 2:
                k = j - 2
                if prev_row[k] is not None:
                    cand = prev_row[k] + GAP_EXTENSION * k
                    if best_gap is None or cand > best_gap:
                        best_gap = cand
            if p_low[i] != c_low[j]:
                continue
            char_score = SCORE_MATCH + _boundary_bonus(choice, j)
            if pattern[i] == choice[j]:
                char_score += BONUS_CASE
            if i == 0:
                row[j] = char_score
                continue
            best: Optional[int] = None
            if prev_row[j - 1] is not None:
                best = prev_row[j - 1] + BONUS_CONSECUTIVE
            if best_gap is not None:
                gapped = best_gap - GAP_START - GAP_EXTENSION * (j - 2)
                if best is None or gapped > best:
                    best = gapped
            if best is not None:
                row[j] = best + char_score
        prev_row = row

    base = _basename_start(choice)
    result: Optional[int] = None
    for j, value in enumerate(prev_row):
        if value is None:
            continue
        if j >= base:
            value += BONUS_BASENAME
        if result is None or value > result:
            result = value
    if result is None:
        return None
    return max(result, 1)


def score_results(results: Sequence[str], target: str) -> List[Score]:
    """Score every candidate; non-matches get NO_MATCH_SCORE."""
    scores = []
    for path in results:
        value = fuzzy_score(path, target)
        scores.append(Score(path=path, score=NO_MATCH_SCORE if value is None else value))
    return scores


def pick_best(
    scores: List[Score],
    timestamp_of: Callable[[str], Optional[int]],
) -> Optional[Score]:
    """Return the highest-scoring candidate.

    Timestamps are looked up only for candidates tied on the top score;
    the most recent wins, and remaining ties go to the greater path.
    """
    if not scores:
        return None
    top = max(s.score for s in scores)
    tied = [s for s in scores if s.score == top]
    if len(tied) > 1:
        logger.debug("%d candidates tied at score %d", len(tied), top)
        for s in tied:
            s.timestamp = timestamp_of(s.path)
    return max(tied, key=Score.sort_key)
