"""
Tests for the frame store.

Sequence assignment, staleness, diff bases, history limits and resets.
"""
import pytest

from seqframe.protocol import (
    Diff,
    ErrorChanges,
    ErrorCode,
    FrameStore,
    FullPage,
    InvalidDiffError,
    StaleSequenceError,
)


class TestAppend:
    """Tests for committing frames."""

    def test_fresh_store_head_is_start_sequence(self):
        store = FrameStore(start_sequence=1)
        assert store.head == 1
        assert store.is_current(1)
        assert len(store) == 0

    def test_append_advances_by_exactly_one(self, store):
        first = store.append("counter", FullPage(content="Value is now 5"), based_on_sequence=1)
        second = store.append("counter", FullPage(content="Value is now 6"), based_on_sequence=2)

        assert first.sequence == 2
        assert second.sequence == 3
        assert store.head == 3
        assert not store.is_current(2)

    def test_sequences_are_global_across_scopes(self, store):
        a = store.append("a", FullPage(content="a"), based_on_sequence=1)
        b = store.append("b", FullPage(content="b"), based_on_sequence=a.sequence)
        assert (a.sequence, b.sequence) == (2, 3)

    def test_stale_append_changes_nothing(self, store):
        store.append("counter", FullPage(content="Value is now 5"), based_on_sequence=1)

        with pytest.raises(StaleSequenceError) as exc_info:
            store.append("counter", FullPage(content="Value is now 10"), based_on_sequence=1)

        assert exc_info.value.based_on_sequence == 1
        assert exc_info.value.head == 2
        assert exc_info.value.code is ErrorCode.STALE_SEQUENCE
        assert store.head == 2
        assert len(store) == 1

    def test_future_anchor_is_stale_too(self, store):
        with pytest.raises(StaleSequenceError):
            store.append("counter", FullPage(content="x"), based_on_sequence=7)

    def test_append_rejects_error_changes(self, store):
        with pytest.raises(ValueError):
            store.append(
                "counter", ErrorChanges(code=ErrorCode.TIMEOUT, message=""), based_on_sequence=1
            )

    def test_metadata_is_attached(self, store):
        frame = store.append("c", FullPage(content=""), based_on_sequence=1, tool="t")
        assert frame.metadata == {"tool": "t"}


class TestDiffBases:
    """Tests for diff base validation."""

    def test_diff_on_latest_full_frame(self, store):
        base = store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        diff = store.append(
            "page",
            Diff(selector="button", content="<button/>", base_frame=base.sequence),
            based_on_sequence=base.sequence,
        )

        assert diff.is_diff
        assert store.resolve_base(diff) is base

    def test_diff_without_full_frame_is_invalid(self, store):
        with pytest.raises(InvalidDiffError):
            store.append("page", Diff(selector="a", content="", base_frame=1), based_on_sequence=1)
        assert store.head == 1

    def test_diff_on_superseded_full_frame_is_invalid(self, store):
        old = store.append("page", FullPage(content="v1"), based_on_sequence=1)
        store.append("page", FullPage(content="v2"), based_on_sequence=2)

        with pytest.raises(InvalidDiffError):
            store.append(
                "page",
                Diff(selector="a", content="", base_frame=old.sequence),
                based_on_sequence=3,
            )

    def test_diff_base_must_share_scope(self, store):
        other = store.append("other", FullPage(content="x"), based_on_sequence=1)
        with pytest.raises(InvalidDiffError):
            store.append(
                "page",
                Diff(selector="a", content="", base_frame=other.sequence),
                based_on_sequence=2,
            )

    def test_latest_full_frame_is_most_recent(self, store):
        store.append("page", FullPage(content="v1"), based_on_sequence=1)
        latest = store.append("page", FullPage(content="v2"), based_on_sequence=2)
        store.append(
            "page", Diff(selector="a", content="", base_frame=3), based_on_sequence=3
        )

        assert store.latest_full_frame("page") is latest
        assert store.latest_full_frame("missing") is None

    def test_resolve_base_of_full_frame_is_none(self, store):
        frame = store.append("page", FullPage(content=""), based_on_sequence=1)
        assert store.resolve_base(frame) is None


class TestErrorsAndObservations:
    """Tests for unsequenced writes."""

    def test_record_error_keeps_head(self, store):
        store.append("counter", FullPage(content="Value is now 1"), based_on_sequence=1)
        frame = store.record_error(
            "counter", ErrorChanges(code=ErrorCode.EXECUTOR_FAILURE, message="boom")
        )

        assert frame.sequence == 2
        assert store.head == 2
        assert frame in store.frames()
        assert store.get(2).is_full

    def test_observe_is_not_stored(self, store):
        frame = store.observe("counter", FullPage(content="Value is 0"), sequence=1)

        assert frame.sequence == 1
        assert len(store) == 0
        assert store.head == 1


class TestQueries:
    """Tests for history reads."""

    def test_frames_filters(self, store):
        store.append("a", FullPage(content="1"), based_on_sequence=1)
        store.append("b", FullPage(content="2"), based_on_sequence=2)
        store.record_error("b", ErrorChanges(code=ErrorCode.TIMEOUT, message=""))
        store.append("a", FullPage(content="3"), based_on_sequence=3)

        assert [f.sequence for f in store.frames()] == [2, 3, 3, 4]
        assert [f.sequence for f in store.frames(scope_key="a")] == [2, 4]
        assert [f.sequence for f in store.frames(since=3)] == [4]
        assert len(store.frames(include_errors=False)) == 3
        assert store.scopes() == ["a", "b"]

    def test_get(self, store):
        frame = store.append("a", FullPage(content="1"), based_on_sequence=1)
        assert store.get(2) is frame
        assert store.get(5) is None

    def test_to_dict(self, store):
        store.append("a", FullPage(content="1"), based_on_sequence=1)
        assert store.to_dict() == {
            "head": 2,
            "frameCount": 1,
            "scopes": ["a"],
            "historyLimit": None,
        }


class TestHistoryLimit:
    """Tests for history trimming."""

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            FrameStore(history_limit=0)

    def test_oldest_frames_evicted(self):
        store = FrameStore(history_limit=2)
        for seq in range(1, 5):
            store.append("a", FullPage(content=str(seq)), based_on_sequence=seq)

        assert [f.sequence for f in store.frames()] == [4, 5]
        assert store.get(2) is None
        assert store.head == 5

    def test_latest_full_frame_of_each_scope_survives(self):
        store = FrameStore(history_limit=2)
        base = store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        seq = base.sequence
        for _ in range(3):
            seq = store.append(
                "page",
                Diff(selector="a", content="", base_frame=base.sequence),
                based_on_sequence=seq,
            ).sequence

        remaining = store.frames()
        assert base in remaining
        assert len(remaining) == 2
        assert store.resolve_base(remaining[-1]) is base


class TestRecovery:
    """Tests for compaction and reset."""

    def test_compact_keeps_latest_full_frames(self, store):
        store.append("a", FullPage(content="1"), based_on_sequence=1)
        latest_a = store.append("a", FullPage(content="2"), based_on_sequence=2)
        latest_b = store.append("b", FullPage(content="3"), based_on_sequence=3)
        store.append("a", Diff(selector="x", content="", base_frame=3), based_on_sequence=4)

        dropped = store.compact()

        assert dropped == 2
        assert store.frames() == [latest_a, latest_b]
        assert store.head == 5

    def test_reset_rewinds(self, store):
        store.append("a", FullPage(content="1"), based_on_sequence=1)
        store.reset()

        assert store.head == 1
        assert len(store) == 0
        assert store.latest_full_frame("a") is None

    def test_reset_to_new_start(self, store):
        store.reset(start_sequence=100)
        frame = store.append("a", FullPage(content=""), based_on_sequence=100)
        assert frame.sequence == 101
