"""
seqframe - sequence-synchronized frames for agents acting on live state.

An agent reads (queries) and changes (mutations) a continuously changing
external state, such as a web page, and every action it takes is checked
against the state it last observed:

- **Optimistic Concurrency**: actions are anchored on a sequence number;
  stale anchors are rejected without side effects
- **Diff Frames**: partial changes reference the full snapshot they apply to
- **Query/Mutation Policy**: reads run in parallel, writes serialize
- **Dual Channel**: reasoning ("thoughts") stays paired with tool calls
- **Gap Recovery**: resend, snapshot or reset when acknowledgments lag

Quick Start:
    >>> from seqframe import Action, ActionDispatcher, FrameStore
    >>> from seqframe.tools import ExecutorRegistry, IntStream, counter_executors
    >>>
    >>> registry = ExecutorRegistry()
    >>> for executor in counter_executors(IntStream()):
    ...     registry.register(executor)
    >>> dispatcher = ActionDispatcher(FrameStore(), registry)
    >>> frame = await dispatcher.submit(
    ...     Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
    ... )
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports for convenient imports
from seqframe.protocol import (
    Action,
    ActionBatch,
    ActionDispatcher,
    ActionKind,
    DiffResolver,
    DualChannelSynchronizer,
    Frame,
    FrameStore,
    Observation,
    SessionSyncManager,
)

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Core protocol
    "Action",
    "ActionBatch",
    "ActionKind",
    "ActionDispatcher",
    "DiffResolver",
    "DualChannelSynchronizer",
    "Frame",
    "FrameStore",
    "Observation",
    "SessionSyncManager",
]
