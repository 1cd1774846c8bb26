"""
Execution state machine for action streams.

Every dispatched action gets an ExecutionStream. Its state moves only
through the transition table below; anything else raises
InvalidTransitionError, so illegal moves are caught where they happen
rather than in a callback three layers away.

    initial   --start-->    streaming
    initial   --fail-->     error
    streaming --pause-->    paused
    streaming --complete--> complete
    streaming --fail-->     error
    streaming --cancel-->   cancelled
    paused    --resume-->   streaming
    paused    --cancel-->   cancelled
    paused    --fail-->     error

Cancellation is cooperative: ``cancel()`` only raises a flag, executors
observe it at their next ``checkpoint()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .actions import Progress
from .errors import ActionCancelledError, InvalidTransitionError

if TYPE_CHECKING:
    from .actions import Action

logger = logging.getLogger(__name__)


class ExecutionState(str, Enum):
    """State of one action stream."""

    INITIAL = "initial"
    STREAMING = "streaming"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    ERROR = "error"
    COMPLETE = "complete"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


class ExecutionEvent(str, Enum):
    """Events that drive state transitions."""

    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    FAIL = "fail"
    CANCEL = "cancel"


TERMINAL_STATES = frozenset(
    {ExecutionState.CANCELLED, ExecutionState.ERROR, ExecutionState.COMPLETE}
)

TRANSITIONS: dict[tuple[ExecutionState, ExecutionEvent], ExecutionState] = {
    (ExecutionState.INITIAL, ExecutionEvent.START): ExecutionState.STREAMING,
    (ExecutionState.INITIAL, ExecutionEvent.FAIL): ExecutionState.ERROR,
    (ExecutionState.STREAMING, ExecutionEvent.PAUSE): ExecutionState.PAUSED,
    (ExecutionState.STREAMING, ExecutionEvent.COMPLETE): ExecutionState.COMPLETE,
    (ExecutionState.STREAMING, ExecutionEvent.FAIL): ExecutionState.ERROR,
    (ExecutionState.STREAMING, ExecutionEvent.CANCEL): ExecutionState.CANCELLED,
    (ExecutionState.PAUSED, ExecutionEvent.RESUME): ExecutionState.STREAMING,
    (ExecutionState.PAUSED, ExecutionEvent.CANCEL): ExecutionState.CANCELLED,
    (ExecutionState.PAUSED, ExecutionEvent.FAIL): ExecutionState.ERROR,
}


def transition(state: ExecutionState, event: ExecutionEvent) -> ExecutionState:
    """
    Look up the next state for (state, event).

    Raises:
        InvalidTransitionError: If the pair is not in the table
    """
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state.value, event.value) from None


def can_transition(state: ExecutionState, event: ExecutionEvent) -> bool:
    return (state, event) in TRANSITIONS


StreamListener = Callable[["ExecutionStream", Progress | None], None]


class ExecutionStream:
    """
    Handle on one in-flight action.

    Owned by the dispatcher; callers use it to cancel, pause and resume
    and to follow progress. Listeners are called with ``(stream, None)``
    on every state change and ``(stream, progress)`` on progress.
    """

    def __init__(self, action_id: str, tool: str = ""):
        self.action_id = action_id
        self.tool = tool
        self.state = ExecutionState.INITIAL
        self.progress: list[Progress] = []
        self.history: list[ExecutionState] = [ExecutionState.INITIAL]
        self._cancel_requested = False
        self._running = asyncio.Event()
        self._running.set()
        self._listeners: list[StreamListener] = []

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def add_listener(self, listener: StreamListener) -> None:
        self._listeners.append(listener)

    def apply(self, event: ExecutionEvent) -> ExecutionState:
        """Apply an event through the transition table."""
        previous = self.state
        self.state = transition(self.state, event)
        self.history.append(self.state)
        logger.debug(
            f"[stream:{self.action_id[:8]}] {previous.value} --{event.value}--> {self.state.value}"
        )
        self._notify(None)
        return self.state

    # Driven by the dispatcher

    def start(self) -> None:
        self.apply(ExecutionEvent.START)

    def complete(self) -> None:
        """
        Mark the action finished.

        A pause that lands after the executor's last checkpoint has nothing
        left to hold, so the stream is resumed on its way to COMPLETE.
        """
        if self.state is ExecutionState.PAUSED:
            self.resume()
        self.apply(ExecutionEvent.COMPLETE)

    def fail(self) -> None:
        self.apply(ExecutionEvent.FAIL)

    def mark_cancelled(self) -> None:
        self.apply(ExecutionEvent.CANCEL)

    # Driven by callers

    def cancel(self) -> bool:
        """
        Request cooperative cancellation.

        Returns False if the stream already reached a terminal state
        (a committed frame cannot be cancelled).
        """
        if self.is_terminal:
            return False
        self._cancel_requested = True
        # Wake a paused executor so it can observe the flag
        self._running.set()
        return True

    def pause(self) -> None:
        self.apply(ExecutionEvent.PAUSE)
        self._running.clear()

    def resume(self) -> None:
        self.apply(ExecutionEvent.RESUME)
        self._running.set()

    # Used by executors

    async def checkpoint(self) -> None:
        """
        Await point between discrete executor steps.

        Blocks while paused and raises ActionCancelledError once
        cancellation has been requested.
        """
        if self._cancel_requested:
            raise ActionCancelledError(self.action_id)
        await self._running.wait()
        if self._cancel_requested:
            raise ActionCancelledError(self.action_id)

    def report_progress(self, percentage: float, message: str = "", **data: Any) -> Progress:
        progress = Progress(percentage=percentage, message=message, data=data)
        self.progress.append(progress)
        self._notify(progress)
        return progress

    def _notify(self, progress: Progress | None) -> None:
        for listener in self._listeners:
            try:
                listener(self, progress)
            except Exception as e:
                logger.error(f"[stream:{self.action_id[:8]}] listener error: {e}", exc_info=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "actionId": self.action_id,
            "tool": self.tool,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "progress": [p.to_dict() for p in self.progress],
            "cancelRequested": self._cancel_requested,
        }

    def __repr__(self) -> str:
        return f"ExecutionStream(action={self.action_id[:8]}, state={self.state.value})"


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """
    What an executor sees while running an action.

    ``sequence`` is fixed at dispatch time: a mutation committed while a
    query batch is running is not visible through it.
    """

    action: Action
    sequence: int
    scope_key: str
    stream: ExecutionStream

    async def checkpoint(self) -> None:
        await self.stream.checkpoint()

    def report_progress(self, percentage: float, message: str = "", **data: Any) -> Progress:
        return self.stream.report_progress(percentage, message, **data)
