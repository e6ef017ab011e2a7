"""
Tests for scotty.types — PathEntry serialization and Score ordering.
"""

from datetime import timezone

import pytest

from scotty.types import PathEntry, Score, to_datetime


class TestToDatetime:
    def test_utc_with_microseconds(self):
        dt = to_datetime(1_500_000_000 * 10**9 + 123_456_789)
        assert dt.tzinfo is timezone.utc
        assert dt.year == 2017
        assert dt.microsecond == 123_456


class TestPathEntry:
    def test_frozen(self):
        entry = PathEntry("/a", 0)
        with pytest.raises(AttributeError):
            entry.path = "/b"

    def test_visited_at(self):
        assert PathEntry("/a", 0).visited_at.year == 1970


class TestScore:
    def test_score_dominates(self):
        low = Score("/z", 10, timestamp=99)
        high = Score("/a", 11)
        assert max([low, high], key=Score.sort_key) is high

    def test_missing_timestamp_loses_tie(self):
        fresh = Score("/a", 10, timestamp=0)
        unknown = Score("/z", 10)
        assert max([fresh, unknown], key=Score.sort_key) is fresh

    def test_path_breaks_full_tie(self):
        a = Score("/a", 10, timestamp=5)
        b = Score("/b", 10, timestamp=5)
        assert max([a, b], key=Score.sort_key) is b
