"""
Tests for the execution state machine and action streams.
"""
import asyncio

import pytest

from seqframe.protocol import (
    ActionCancelledError,
    ExecutionEvent,
    ExecutionState,
    ExecutionStream,
    InvalidTransitionError,
    can_transition,
    transition,
)


class TestTransitions:
    """Tests for the transition table."""

    @pytest.mark.parametrize(
        "state,event,expected",
        [
            (ExecutionState.INITIAL, ExecutionEvent.START, ExecutionState.STREAMING),
            (ExecutionState.INITIAL, ExecutionEvent.FAIL, ExecutionState.ERROR),
            (ExecutionState.STREAMING, ExecutionEvent.PAUSE, ExecutionState.PAUSED),
            (ExecutionState.STREAMING, ExecutionEvent.COMPLETE, ExecutionState.COMPLETE),
            (ExecutionState.STREAMING, ExecutionEvent.CANCEL, ExecutionState.CANCELLED),
            (ExecutionState.PAUSED, ExecutionEvent.RESUME, ExecutionState.STREAMING),
            (ExecutionState.PAUSED, ExecutionEvent.CANCEL, ExecutionState.CANCELLED),
        ],
    )
    def test_legal_transitions(self, state, event, expected):
        assert transition(state, event) is expected

    def test_terminal_states_are_final(self):
        for state in (ExecutionState.COMPLETE, ExecutionState.CANCELLED, ExecutionState.ERROR):
            assert state.is_terminal
            for event in ExecutionEvent:
                assert not can_transition(state, event)

    def test_illegal_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(ExecutionState.INITIAL, ExecutionEvent.COMPLETE)
        assert exc_info.value.state == "initial"
        assert exc_info.value.event == "complete"

    def test_paused_cannot_complete(self):
        assert not can_transition(ExecutionState.PAUSED, ExecutionEvent.COMPLETE)


class TestExecutionStream:
    """Tests for the stream handle."""

    def test_lifecycle_history(self):
        stream = ExecutionStream("a" * 32, tool="increment_value")
        stream.start()
        stream.pause()
        stream.resume()
        stream.complete()

        assert stream.state is ExecutionState.COMPLETE
        assert stream.history == [
            ExecutionState.INITIAL,
            ExecutionState.STREAMING,
            ExecutionState.PAUSED,
            ExecutionState.STREAMING,
            ExecutionState.COMPLETE,
        ]

    def test_complete_while_paused_resumes_first(self):
        stream = ExecutionStream("a" * 32)
        stream.start()
        stream.pause()

        stream.complete()

        assert stream.state is ExecutionState.COMPLETE
        assert stream.history[-3:] == [
            ExecutionState.PAUSED,
            ExecutionState.STREAMING,
            ExecutionState.COMPLETE,
        ]

    def test_cancel_after_complete_is_refused(self):
        stream = ExecutionStream("a" * 32)
        stream.start()
        stream.complete()

        assert stream.cancel() is False
        assert not stream.cancel_requested

    def test_listeners_see_state_and_progress(self):
        seen = []
        stream = ExecutionStream("a" * 32)
        stream.add_listener(lambda s, p: seen.append((s.state, p)))

        stream.start()
        progress = stream.report_progress(50.0, "halfway", step=1)

        assert seen[0] == (ExecutionState.STREAMING, None)
        assert seen[1] == (ExecutionState.STREAMING, progress)
        assert progress.data == {"step": 1}

    def test_listener_errors_are_contained(self):
        stream = ExecutionStream("a" * 32)

        def broken(stream, progress):
            raise RuntimeError("listener bug")

        stream.add_listener(broken)
        stream.start()
        assert stream.state is ExecutionState.STREAMING

    def test_to_dict(self):
        stream = ExecutionStream("abc", tool="t")
        stream.start()
        data = stream.to_dict()

        assert data["actionId"] == "abc"
        assert data["state"] == "streaming"
        assert data["history"] == ["initial", "streaming"]
        assert data["cancelRequested"] is False


class TestCheckpoint:
    """Tests for cooperative cancellation and pausing."""

    @pytest.mark.asyncio
    async def test_checkpoint_passes_when_running(self):
        stream = ExecutionStream("a" * 32)
        stream.start()
        await stream.checkpoint()

    @pytest.mark.asyncio
    async def test_checkpoint_raises_after_cancel(self):
        stream = ExecutionStream("a" * 32)
        stream.start()
        assert stream.cancel() is True

        with pytest.raises(ActionCancelledError):
            await stream.checkpoint()

    @pytest.mark.asyncio
    async def test_checkpoint_blocks_while_paused(self):
        stream = ExecutionStream("a" * 32)
        stream.start()
        stream.pause()

        waiter = asyncio.create_task(stream.checkpoint())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        stream.resume()
        await asyncio.wait_for(waiter, timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancel_wakes_paused_checkpoint(self):
        stream = ExecutionStream("a" * 32)
        stream.start()
        stream.pause()

        waiter = asyncio.create_task(stream.checkpoint())
        await asyncio.sleep(0.01)
        stream.cancel()

        with pytest.raises(ActionCancelledError):
            await asyncio.wait_for(waiter, timeout=1.0)
