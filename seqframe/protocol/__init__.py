"""
seqframe protocol.

Sequence-synchronized frames between an agent and the state it acts on.

Core Components:
- FrameStore: owns the sequence counter and frame history
- DiffResolver: full_page, diff or error encoding of observations
- ActionDispatcher: query/mutation concurrency policy and frame production
- DualChannelSynchronizer: keeps thoughts paired with tool calls
- SessionSyncManager: acknowledgment gaps and resend/snapshot/reset recovery

Usage:
    from seqframe.protocol import Action, ActionDispatcher, FrameStore
    from seqframe.tools import ExecutorRegistry, IntStream, counter_executors

    registry = ExecutorRegistry()
    for executor in counter_executors(IntStream()):
        registry.register(executor)

    dispatcher = ActionDispatcher(FrameStore(), registry)
    frame = await dispatcher.submit(
        Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
    )
"""

from .actions import Action, ActionBatch, ActionKind, Observation, Progress
from .channels import DesyncViolation, DualChannelSynchronizer
from .diff import DiffResolver
from .dispatcher import ActionDispatcher
from .errors import (
    AckOutOfRangeError,
    ActionCancelledError,
    ExecutorFailure,
    InconsistentBatchError,
    InvalidDiffError,
    InvalidTransitionError,
    MixedActionTypesError,
    MutationTimeoutError,
    ProtocolDesyncError,
    ProtocolError,
    StaleSequenceError,
    UnknownExecutorError,
)
from .frames import (
    Changes,
    Diff,
    ErrorChanges,
    ErrorCode,
    Frame,
    FullPage,
    ThoughtFrame,
    ThoughtStatus,
    error_frame,
)
from .observability import JSONLogger, ProtocolLogger, ProtocolMetrics, get_metrics, reset_metrics
from .results import BatchResult, SequenceResult
from .retry import (
    ConstantBackoff,
    ExponentialBackoff,
    NoBackoff,
    ReanchorResult,
    RetryPolicy,
    submit_with_reanchor,
)
from .session import (
    RecoveryPlan,
    RecoveryStrategy,
    SentEvent,
    SessionSyncManager,
    SessionSyncState,
    SyncSession,
)
from .state import (
    ExecutionContext,
    ExecutionEvent,
    ExecutionState,
    ExecutionStream,
    can_transition,
    transition,
)
from .store import FrameStore

__all__ = [
    # Frames
    "Frame",
    "Changes",
    "FullPage",
    "Diff",
    "ErrorChanges",
    "ErrorCode",
    "ThoughtFrame",
    "ThoughtStatus",
    "error_frame",
    # Actions
    "Action",
    "ActionBatch",
    "ActionKind",
    "Observation",
    "Progress",
    # Core components
    "FrameStore",
    "DiffResolver",
    "ActionDispatcher",
    "DualChannelSynchronizer",
    "DesyncViolation",
    "SessionSyncManager",
    "SyncSession",
    "SessionSyncState",
    "SentEvent",
    "RecoveryPlan",
    "RecoveryStrategy",
    # Results
    "BatchResult",
    "SequenceResult",
    # Execution state
    "ExecutionState",
    "ExecutionEvent",
    "ExecutionStream",
    "ExecutionContext",
    "transition",
    "can_transition",
    # Errors
    "ProtocolError",
    "StaleSequenceError",
    "InconsistentBatchError",
    "MixedActionTypesError",
    "UnknownExecutorError",
    "ExecutorFailure",
    "MutationTimeoutError",
    "ActionCancelledError",
    "ProtocolDesyncError",
    "AckOutOfRangeError",
    "InvalidDiffError",
    "InvalidTransitionError",
    # Observability
    "JSONLogger",
    "ProtocolLogger",
    "ProtocolMetrics",
    "get_metrics",
    "reset_metrics",
    # Re-anchoring
    "RetryPolicy",
    "NoBackoff",
    "ConstantBackoff",
    "ExponentialBackoff",
    "ReanchorResult",
    "submit_with_reanchor",
]
