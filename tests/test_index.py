"""
Tests for scotty.index — add/delete/find/list, jump loop, consistency check.
"""

import itertools

import pytest

from scotty.errors import CorruptIndex, NoResults, PathNotDirectory, RelativePath
from scotty.index import INDEX_KEY, Index
from scotty.pathset import PathSet


class _Clock:
    """Strictly increasing fake clock (nanoseconds)."""

    def __init__(self, start=1_000):
        self._counter = itertools.count(start)

    def __call__(self):
        return next(self._counter)


@pytest.fixture
def index():
    idx = Index(":memory:", clock=_Clock())
    yield idx
    idx.close()


@pytest.fixture
def make_dir(tmp_path):
    def _make(*parts):
        d = tmp_path.joinpath(*parts)
        d.mkdir(parents=True, exist_ok=True)
        return str(d)
    return _make


# ---------------------------------------------------------------------------
# add
# ---------------------------------------------------------------------------


class TestAdd:
    def test_absolute_directory(self, index, make_dir):
        d = make_dir("work")
        index.add(d)
        assert [e.path for e in index.list()] == [d]
        assert index.find_all("work") == [d]

    def test_accepts_pathlike(self, index, tmp_path):
        index.add(tmp_path)
        assert index.list()[0].path == str(tmp_path)

    def test_relative_directory(self, index, tmp_path, monkeypatch):
        (tmp_path / "src").mkdir()
        monkeypatch.chdir(tmp_path)
        with pytest.raises(RelativePath) as exc:
            index.add("src")
        assert exc.value.path == "src"
        assert index.list() == []
        assert index.find_all("src") == []

    def test_file_is_not_directory(self, index, tmp_path):
        f = tmp_path / "foo.txt"
        f.write_text("x")
        with pytest.raises(PathNotDirectory):
            index.add(str(f))
        assert index.list() == []

    def test_missing_path(self, index, tmp_path):
        missing = str(tmp_path / "does-not-exist")
        with pytest.raises(PathNotDirectory) as exc:
            index.add(missing)
        assert exc.value.path == missing
        assert index.list() == []
        assert index.find_all("does-not-exist") == []

    def test_missing_relative_path_reports_not_directory_first(self, index):
        with pytest.raises(PathNotDirectory):
            index.add("no/such/relative/dir")

    def test_repeat_add_updates_timestamp_only(self, index, make_dir):
        d = make_dir("repeat")
        index.add(d)
        first = index.list()[0].timestamp
        blob_before = index._main.get(INDEX_KEY)
        index.add(d)
        assert index.list()[0].timestamp > first
        assert index.stats()["index_count"] == 1
        assert index._main.get(INDEX_KEY) == blob_before

    def test_textually_distinct_paths_are_distinct(self, index, make_dir):
        d = make_dir("one")
        index.add(d)
        index.add(d + "/..")
        assert index.stats()["index_count"] == 2


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_never_added_is_noop(self, index, make_dir):
        d = make_dir("kept")
        index.add(d)
        before = index.list()
        index.delete("/never/added")
        assert index.list() == before
        assert index.find_all("kept") == [d]

    def test_removes_from_ledger_and_index(self, index, make_dir):
        d = make_dir("gone")
        index.add(d)
        index.delete(d)
        assert index.list() == []
        assert index.find_all("gone") == []

    def test_delete_twice(self, index, make_dir):
        d = make_dir("twice")
        index.add(d)
        index.delete(d)
        index.delete(d)
        assert index.stats()["index_count"] == 0


# ---------------------------------------------------------------------------
# find_all / find_one
# ---------------------------------------------------------------------------


class TestFind:
    def test_empty_target(self, index, make_dir):
        index.add(make_dir("anything"))
        assert index.find_one("") is None
        assert index.find_all("") == []

    def test_empty_index(self, index):
        assert index.find_one("foo") is None
        assert index.find_all("foo") == []

    def test_case_insensitive_substring(self, index, make_dir):
        d = make_dir("projectfoo")
        index.add(d)
        assert index.find_one("PROJECTFOO") == d

    def test_exclude(self, index, make_dir):
        d = make_dir("projectfoo")
        index.add(d)
        assert index.find_one("projectfoo", exclude=d) is None
        assert index.find_all("projectfoo", exclude=d) == []

    def test_exclude_leaves_other_candidates(self, index, make_dir):
        a = make_dir("a", "projectfoo")
        b = make_dir("b", "projectfoo")
        index.add(a)
        index.add(b)
        assert index.find_one("projectfoo", exclude=b) == a

    def test_fuzzy_subsequence(self, index, make_dir):
        d = make_dir("projectfoo")
        index.add(d)
        assert index.find_one("prjfoo") == d

    def test_find_all_returns_every_match(self, index, make_dir):
        expected = {make_dir("qzx_one"), make_dir("QZX_two"), make_dir("q_z_x")}
        other = make_dir("other")
        for d in sorted(expected) + [other]:
            index.add(d)
        assert set(index.find_all("qzx")) == expected

    def test_find_all_is_unranked_key_order(self, index, make_dir):
        paths = [make_dir("zeta_qzx"), make_dir("alpha_qzx")]
        for d in paths:
            index.add(d)
        assert index.find_all("qzx") == sorted(paths)

    def test_best_score_wins(self, index, make_dir):
        leaf = make_dir("src", "foo")
        deeper = make_dir("src", "foo", "bar")
        index.add(leaf)
        index.add(deeper)
        assert index.find_one("foo") == leaf

    def test_most_recent_wins_tie(self, index, make_dir):
        a = make_dir("a", "projectfoo")
        b = make_dir("b", "projectfoo")
        index.add(a)
        index.add(b)
        assert index.find_one("projectfoo") == b
        index.add(a)
        assert index.find_one("projectfoo") == a


# ---------------------------------------------------------------------------
# jump (self-healing loop)
# ---------------------------------------------------------------------------


class TestJump:
    def test_returns_live_directory(self, index, make_dir):
        d = make_dir("projectfoo")
        index.add(d)
        assert index.jump("projectfoo") == d

    def test_no_candidates(self, index):
        with pytest.raises(NoResults) as exc:
            index.jump("nothing")
        assert exc.value.pattern == "nothing"

    def test_stale_winner_deleted_and_retried(self, index, make_dir, tmp_path):
        live = make_dir("a", "projectfoo")
        stale = make_dir("b", "projectfoo")
        index.add(live)
        index.add(stale)
        (tmp_path / "b" / "projectfoo").rmdir()

        assert index.jump("projectfoo") == live
        assert [e.path for e in index.list()] == [live]

    def test_all_stale(self, index, make_dir, tmp_path):
        d = make_dir("projectfoo")
        index.add(d)
        (tmp_path / "projectfoo").rmdir()
        with pytest.raises(NoResults):
            index.jump("projectfoo")
        assert index.list() == []

    def test_max_attempts(self, index, make_dir, tmp_path):
        live = make_dir("a", "projectfoo")
        stale = make_dir("b", "projectfoo")
        index.add(live)
        index.add(stale)
        (tmp_path / "b" / "projectfoo").rmdir()
        with pytest.raises(NoResults):
            index.jump("projectfoo", max_attempts=1)
        assert [e.path for e in index.list()] == [live]

    def test_search_does_not_touch_filesystem(self, index, make_dir, tmp_path):
        d = make_dir("projectfoo")
        index.add(d)
        (tmp_path / "projectfoo").rmdir()
        assert index.find_one("projectfoo") == d
        assert index.find_all("projectfoo") == [d]


# ---------------------------------------------------------------------------
# list / stats / persistence
# ---------------------------------------------------------------------------


class TestListAndPersistence:
    def test_list_in_key_order(self, index, make_dir):
        b = make_dir("b")
        a = make_dir("a")
        index.add(b)
        index.add(a)
        assert [e.path for e in index.list()] == [a, b]

    def test_stats(self, index, make_dir):
        index.add(make_dir("x"))
        stats = index.stats()
        assert stats["ledger_count"] == 1
        assert stats["index_count"] == 1
        assert stats["index_bytes"] > 0

    def test_reopen(self, tmp_path, make_dir):
        db = str(tmp_path / "data" / "scotty.db")
        d = make_dir("projectfoo")
        with Index(db) as idx:
            idx.add(d)
        with Index(db) as idx:
            assert idx.find_one("foo") == d
            assert len(idx.list()) == 1

    def test_corrupt_index_blob(self, index, make_dir):
        index.add(make_dir("x"))
        index._main.insert(INDEX_KEY, b"garbage-bytes-here")
        with pytest.raises(CorruptIndex):
            index.find_all("x")


# ---------------------------------------------------------------------------
# check / repair
# ---------------------------------------------------------------------------


class TestConsistency:
    def test_consistent_after_normal_use(self, index, make_dir):
        index.add(make_dir("a"))
        index.add(make_dir("b"))
        index.delete(make_dir("a"))
        report = index.check()
        assert report.consistent
        assert report.ledger_count == report.index_count == 1

    def test_detects_unindexed(self, index, make_dir):
        d = make_dir("crashed")
        # ledger write landed, index rebuild did not
        index._paths.upsert(d, 5)
        report = index.check()
        assert report.unindexed == [d]
        assert report.orphaned == []
        assert index.find_all("crashed") == []

    def test_detects_orphaned(self, index, make_dir):
        d = make_dir("deleted")
        index.add(d)
        index._paths.remove(d)
        report = index.check()
        assert report.orphaned == [d]
        assert not report.consistent

    def test_repair(self, index, make_dir):
        unindexed = make_dir("unindexed")
        orphaned = make_dir("orphaned")
        index._paths.upsert(unindexed, 5)
        index._main.insert(INDEX_KEY, PathSet.from_iter([orphaned]).to_bytes())

        report = index.repair()
        assert report.repaired
        assert index.check().consistent
        assert index.find_all("unindexed") == [unindexed]
        assert index.find_all("orphaned") == []

    def test_repair_consistent_is_noop(self, index, make_dir):
        index.add(make_dir("fine"))
        assert not index.repair().repaired

    def test_check_corrupt_blob(self, index, make_dir):
        d = make_dir("kept")
        index.add(d)
        index._main.insert(INDEX_KEY, b"garbage-bytes-here")
        report = index.check()
        assert report.corrupt
        assert not report.consistent
        assert report.unindexed == [d]
        assert report.to_dict()["corrupt"] is True
        assert index.stats()["index_count"] is None

    def test_repair_corrupt_blob(self, index, make_dir):
        a = make_dir("alpha")
        b = make_dir("beta")
        index.add(a)
        index.add(b)
        index._main.insert(INDEX_KEY, b"garbage-bytes-here")

        report = index.repair()
        assert report.corrupt
        assert report.repaired
        assert index.check().consistent
        assert index.stats()["index_count"] == 2
        assert index.find_all("alpha") == [a]
