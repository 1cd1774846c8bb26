"""
Tests for the diff resolver.
"""
import pytest

from seqframe.protocol import (
    Diff,
    DiffResolver,
    ErrorCode,
    FullPage,
    Observation,
    StaleSequenceError,
)


@pytest.fixture
def resolver(store):
    return DiffResolver(store)


class TestEncode:
    """Tests for full_page vs diff selection."""

    def test_first_observation_is_full_page(self, resolver):
        changes = resolver.encode("page", Observation(content="<button/>", selector="button"))
        assert isinstance(changes, FullPage)

    def test_selector_with_base_is_diff(self, resolver, store):
        base = store.append("page", FullPage(content="<div/>"), based_on_sequence=1)

        changes = resolver.encode("page", Observation(content="<button/>", selector="button"))

        assert isinstance(changes, Diff)
        assert changes.base_frame == base.sequence
        assert changes.selector == "button"

    def test_no_selector_is_full_page(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        changes = resolver.encode("page", Observation(content="Value is now 5"))
        assert changes == FullPage(content="Value is now 5")

    def test_explicit_full_refresh(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        observation = Observation(content="<b/>", selector="b", snapshot="<div><b/></div>")

        changes = resolver.encode("page", observation, full_refresh=True)

        assert changes == FullPage(content="<div><b/></div>")

    def test_observation_requests_full_refresh(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        changes = resolver.encode(
            "page", Observation(content="<b/>", selector="b", full_refresh=True)
        )
        assert isinstance(changes, FullPage)

    def test_scope_change_is_full_page(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        store.append("other", FullPage(content="<p/>"), based_on_sequence=2)

        changes = resolver.encode(
            "page", Observation(content="<p/>", selector="p", scope_key="other")
        )

        assert isinstance(changes, FullPage)

    def test_base_after_as_of_is_invisible(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        observation = Observation(content="<b/>", selector="b")

        assert isinstance(resolver.encode("page", observation, as_of=1), FullPage)
        assert isinstance(resolver.encode("page", observation, as_of=2), Diff)


class TestEncodeFailure:
    """Tests for error encoding."""

    def test_uses_executor_snapshot(self, resolver):
        changes = resolver.encode_failure("page", ErrorCode.EXECUTOR_FAILURE, "boom", "<div/>")
        assert changes.content == "<div/>"
        assert changes.code is ErrorCode.EXECUTOR_FAILURE

    def test_falls_back_to_latest_full_page(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)
        changes = resolver.encode_failure("page", ErrorCode.TIMEOUT, "slow")
        assert changes.content == "<div/>"

    def test_empty_without_any_state(self, resolver):
        changes = resolver.encode_failure("page", ErrorCode.TIMEOUT, "slow")
        assert changes.content == ""


class TestCommit:
    """Tests for committing mutation results."""

    def test_commit_full_then_diff(self, resolver):
        first = resolver.commit("page", Observation(content="<div/>"), based_on_sequence=1)
        second = resolver.commit(
            "page",
            Observation(content="<button disabled/>", selector="#submit"),
            based_on_sequence=first.sequence,
            tool="click",
        )

        assert first.is_full
        assert second.is_diff
        assert second.base_frame == first.sequence
        assert second.metadata == {"tool": "click"}

    def test_commit_into_new_scope(self, resolver, store):
        resolver.commit("page", Observation(content="<div/>"), based_on_sequence=1)
        frame = resolver.commit(
            "page",
            Observation(content="<h1/>", scope_key="https://example.test/next"),
            based_on_sequence=2,
        )

        assert frame.scope_key == "https://example.test/next"
        assert frame.is_full
        assert store.latest_full_frame("https://example.test/next") is frame

    def test_stale_commit_raises(self, resolver, store):
        resolver.commit("page", Observation(content="<div/>"), based_on_sequence=1)
        with pytest.raises(StaleSequenceError):
            resolver.commit("page", Observation(content="<p/>"), based_on_sequence=1)
        assert store.head == 2


class TestObserve:
    """Tests for unstored query frames."""

    def test_observe_is_pinned_to_sequence(self, resolver, store):
        store.append("page", FullPage(content="<div/>"), based_on_sequence=1)

        frame = resolver.observe(
            "page", Observation(content="<b/>", selector="b"), sequence=2, tool="read"
        )

        assert frame.sequence == 2
        assert frame.is_diff
        assert frame.metadata == {"tool": "read"}
        assert len(store) == 1
