"""
Exceptions for the seqframe protocol.

Every protocol error carries an ErrorCode so the dispatcher can turn it
into an error frame without inspecting the exception type. Lower layers
(store, synchronizer, session manager) raise; the dispatcher's public
entry points convert.
"""

from __future__ import annotations

from .frames import ErrorCode


class ProtocolError(Exception):
    """Base class for errors that map onto an error frame."""

    code: ErrorCode = ErrorCode.EXECUTOR_FAILURE

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StaleSequenceError(ProtocolError):
    """Raised when an action is anchored on a sequence that is no longer the head."""

    code = ErrorCode.STALE_SEQUENCE

    def __init__(self, based_on_sequence: int, head: int):
        self.based_on_sequence = based_on_sequence
        self.head = head
        super().__init__(
            f"Action based on sequence {based_on_sequence} but current head is {head}; "
            f"re-anchor on {head} and retry"
        )


class InconsistentBatchError(ProtocolError):
    """Raised when queries in one batch carry different anchors."""

    code = ErrorCode.INCONSISTENT_BATCH_SEQUENCE

    def __init__(self, sequences: list[int]):
        self.sequences = sequences
        super().__init__(
            f"All actions in a batch must share one basedOnSequence, got {sorted(set(sequences))}"
        )


class MixedActionTypesError(ProtocolError):
    """Raised when a batch mixes queries and mutations or holds several mutations."""

    code = ErrorCode.MIXED_ACTION_TYPES


class UnknownExecutorError(ProtocolError):
    """Raised when an action names an executor that is not registered."""

    code = ErrorCode.UNKNOWN_EXECUTOR

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"No executor registered under '{tool}'")


class ExecutorFailure(ProtocolError):
    """
    Raised by executors to report a failed action.

    ``snapshot`` is the best state the executor could observe after the
    failure; it becomes the content of the error frame.
    """

    code = ErrorCode.EXECUTOR_FAILURE

    def __init__(self, message: str, snapshot: str | None = None):
        self.snapshot = snapshot
        super().__init__(message)


class MutationTimeoutError(ProtocolError):
    """Raised when a mutation is not committed within its window."""

    code = ErrorCode.TIMEOUT

    def __init__(self, tool: str, timeout: float):
        self.tool = tool
        self.timeout = timeout
        super().__init__(f"Mutation '{tool}' not committed within {timeout:.2f}s")


class ActionCancelledError(ProtocolError):
    """Raised inside executors at a checkpoint once cancellation was requested."""

    code = ErrorCode.CANCELLED

    def __init__(self, action_id: str):
        self.action_id = action_id
        super().__init__(f"Action {action_id} cancelled before commit")


class ProtocolDesyncError(ProtocolError):
    """Raised when the thought and tool channels fall out of step."""

    code = ErrorCode.PROTOCOL_DESYNC


class AckOutOfRangeError(ProtocolDesyncError):
    """Raised when a counterpart acknowledges a sequence that was never sent."""

    def __init__(self, session_id: str, sequence: int, last_sent: int):
        self.session_id = session_id
        self.sequence = sequence
        self.last_sent = last_sent
        super().__init__(
            f"Session {session_id} acknowledged {sequence} but only {last_sent} were sent"
        )


# =============================================================================
# Internal invariant violations (never surfaced as frames)
# =============================================================================


class InvalidDiffError(Exception):
    """Raised by the store when a diff's base frame does not resolve."""

    def __init__(self, scope_key: str, base_frame: int):
        self.scope_key = scope_key
        self.base_frame = base_frame
        super().__init__(
            f"Diff for scope '{scope_key}' references base frame {base_frame}, "
            f"which is not the latest full_page frame of that scope"
        )


class InvalidTransitionError(Exception):
    """Raised when an execution state transition is not in the table."""

    def __init__(self, state: str, event: str):
        self.state = state
        self.event = event
        super().__init__(f"Cannot apply '{event}' in state '{state}'")
