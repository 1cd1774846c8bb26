"""
Action Dispatcher.

Accepts actions, classifies them as query or mutation, enforces the
concurrency policy and turns executor results into frames.

Concurrency policy:
- Queries sharing one anchor run concurrently (asyncio.gather), observe
  the sequence fixed at dispatch and never advance it
- Mutations run one at a time per scope key. Sequence numbers form one
  global space, so the store's writer section is held from admission to
  commit as well: a mutation admitted on the head is guaranteed to commit
  on the head
- A mutation is admitted only if it is anchored on the current head;
  otherwise it is rejected with STALE_SEQUENCE before anything runs

Error handling:
- Sequence and batch-shape errors are rejected before any executor runs;
  the rejection is returned as an error frame and not stored
- Executor failures and timeouts become durable error frames stamped with
  the unchanged head
- Cancellation is cooperative (executors await checkpoints); cancelling
  before commit returns a CANCELLED error frame and commits nothing

Example:
    dispatcher = ActionDispatcher(store, registry)
    frame = await dispatcher.submit(
        Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
    )
    assert frame.sequence == 2 and frame.content == "Value is now 5"
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from .actions import Action, ActionBatch, ActionKind, Observation
from .diff import DiffResolver
from .errors import (
    ActionCancelledError,
    ExecutorFailure,
    InconsistentBatchError,
    MixedActionTypesError,
    MutationTimeoutError,
    ProtocolDesyncError,
    ProtocolError,
    StaleSequenceError,
)
from .frames import ErrorCode, Frame, ThoughtFrame, ThoughtStatus, error_frame
from .observability import ProtocolLogger
from .results import BatchResult, SequenceResult
from .state import ExecutionContext, ExecutionStream

if TYPE_CHECKING:
    from seqframe.config import ProtocolSettings
    from seqframe.tools import Executor, ExecutorRegistry

    from .channels import DualChannelSynchronizer
    from .store import FrameStore

logger = logging.getLogger(__name__)

# Finished streams kept for inspection before the oldest are forgotten
MAX_FINISHED_STREAMS = 1000


class ActionDispatcher:
    """
    Runs actions against registered executors and produces frames.

    Args:
        store: Frame store owning the sequence counter
        registry: Capability map of executors
        resolver: Diff resolver (one is built on ``store`` when omitted)
        synchronizer: Thought/tool channel pairing; None disables it
        default_scope: Scope key for actions that do not name one
        mutation_timeout: Seconds a mutation may take to commit; None waits forever
        require_thoughts: Reject actions whose tool call has no paired thought
        plog: Structured protocol logger
    """

    def __init__(
        self,
        store: FrameStore,
        registry: ExecutorRegistry,
        resolver: DiffResolver | None = None,
        synchronizer: DualChannelSynchronizer | None = None,
        *,
        default_scope: str = "default",
        mutation_timeout: float | None = 30.0,
        require_thoughts: bool = False,
        plog: ProtocolLogger | None = None,
    ):
        self.store = store
        self.registry = registry
        self.resolver = resolver or DiffResolver(store)
        self.synchronizer = synchronizer
        self.default_scope = default_scope
        self.mutation_timeout = mutation_timeout
        self.require_thoughts = require_thoughts
        self.plog = plog or ProtocolLogger()
        self._scope_locks: dict[str, asyncio.Lock] = {}
        self._scope_users: dict[str, int] = {}
        self._writer = asyncio.Lock()
        self._streams: dict[str, ExecutionStream] = {}

    @classmethod
    def from_settings(
        cls,
        settings: ProtocolSettings,
        store: FrameStore,
        registry: ExecutorRegistry,
        synchronizer: DualChannelSynchronizer | None = None,
        plog: ProtocolLogger | None = None,
    ) -> ActionDispatcher:
        return cls(
            store,
            registry,
            synchronizer=synchronizer,
            default_scope=settings.default_scope,
            mutation_timeout=settings.mutation_timeout,
            require_thoughts=settings.require_thoughts,
            plog=plog,
        )

    # =========================================================================
    # Execution handles
    # =========================================================================

    def stream(self, action: Action) -> ExecutionStream:
        """Execution handle for an action (created on first use, or anew once finished)."""
        stream = self._streams.get(action.id)
        if stream is None or stream.is_terminal:
            stream = ExecutionStream(action.id, tool=action.tool)
            self._streams[action.id] = stream
            self._forget_finished()
        return stream

    def get_stream(self, action_id: str) -> ExecutionStream | None:
        return self._streams.get(action_id)

    def cancel(self, action_id: str) -> bool:
        """
        Request cancellation of an action.

        Returns False when the action is unknown or already finished.
        """
        stream = self._streams.get(action_id)
        if stream is None:
            return False
        cancelled = stream.cancel()
        if cancelled:
            logger.info(f"[dispatcher] Cancellation requested for {action_id[:8]}")
        return cancelled

    def _forget_finished(self) -> None:
        finished = [k for k, s in self._streams.items() if s.is_terminal]
        for action_id in finished[: max(0, len(finished) - MAX_FINISHED_STREAMS)]:
            del self._streams[action_id]

    def _claim_scope(self, scope_key: str) -> asyncio.Lock:
        """Lock for a scope key, counted until the matching ``_release_scope``."""
        lock = self._scope_locks.get(scope_key)
        if lock is None:
            lock = self._scope_locks[scope_key] = asyncio.Lock()
        self._scope_users[scope_key] = self._scope_users.get(scope_key, 0) + 1
        return lock

    def _release_scope(self, scope_key: str) -> None:
        # Drop the lock once no mutation holds or awaits it
        users = self._scope_users[scope_key] - 1
        if users:
            self._scope_users[scope_key] = users
        else:
            del self._scope_users[scope_key]
            del self._scope_locks[scope_key]

    # =========================================================================
    # Public entry points
    # =========================================================================

    async def submit(self, action: Action) -> Frame:
        """Run one action. Always returns a frame; failures are error frames."""
        result = await self.submit_batch(ActionBatch(actions=(action,)))
        return result.frames[0]

    async def submit_batch(self, batch: ActionBatch) -> BatchResult:
        """
        Run a batch: any number of queries sharing one anchor, or one mutation.

        Raises:
            ValueError: the batch is empty
        """
        if not batch.actions:
            raise ValueError("A batch needs at least one action")

        result = BatchResult()
        try:
            actions = [self._resolve(a) for a in batch.actions]
            self._check_shape(actions)
        except ProtocolError as e:
            result.frames.append(self._reject(batch.actions[0], e))
            return result.finish(self.store.head)

        if actions[0].is_mutation:
            result.frames.append(await self._run_mutation(actions[0]))
        else:
            result.frames.extend(await self._run_queries(actions))
        return result.finish(self.store.head)

    async def run_sequence(self, actions: Sequence[Action]) -> SequenceResult:
        """
        Run dependent actions in order.

        The first action's anchor is taken as given; every later action is
        anchored on the frame the previous step produced. Execution halts
        at the first step whose base is no longer current or whose frame
        is an error. Steps already executed are not rolled back.
        """
        result = SequenceResult(total=len(actions))
        if not actions:
            return result.finish(self.store.head)

        # Register handles up front so later steps can be cancelled by id
        for action in actions:
            self.stream(action)

        expected = actions[0].based_on_sequence
        for index, action in enumerate(actions):
            step = replace(action, based_on_sequence=expected)
            frame = await self.submit(step)
            result.frames.append(frame)
            if frame.is_error:
                result.halt(index, frame.error_code.value)
                break

            result.completed += 1
            if self.registry.kind_of(step.tool) == ActionKind.MUTATION:
                expected = frame.sequence

        halted = (
            f", halted at step {result.halted_at} ({result.halt_reason})"
            if result.halted_at is not None
            else ""
        )
        logger.info(f"[dispatcher] Sequence finished: {result.completed}/{result.total} steps{halted}")
        return result.finish(self.store.head)

    # =========================================================================
    # Admission
    # =========================================================================

    def _resolve(self, action: Action) -> Action:
        """Fill in kind and scope from the registry and defaults."""
        executor = self.registry.require(action.tool)
        if action.kind is not None and action.kind != executor.kind:
            raise MixedActionTypesError(
                f"'{action.tool}' is a {executor.kind.value}, but the action declares "
                f"{action.kind.value}"
            )
        return replace(
            action,
            kind=executor.kind,
            scope_key=action.scope_key or self.default_scope,
        )

    def _check_shape(self, actions: list[Action]) -> None:
        kinds = {a.kind for a in actions}
        if len(kinds) > 1:
            raise MixedActionTypesError("A batch may not mix queries and mutations")
        if ActionKind.MUTATION in kinds and len(actions) > 1:
            raise MixedActionTypesError("A batch may hold at most one mutation")
        sequences = [a.based_on_sequence for a in actions]
        if len(set(sequences)) > 1:
            raise InconsistentBatchError(sequences)

    def _pair_thought(self, action: Action) -> ThoughtFrame | None:
        """
        Put the action's thought on the thought channel and pair the tool call.

        Without ``require_thoughts`` an action only takes part in pairing
        when a thought is in play (a reason, or an unpaired thought at its
        sequence), and a desync is recorded without blocking execution.

        Raises:
            ProtocolDesyncError: pairing failed and thoughts are required
        """
        sync = self.synchronizer
        if sync is None:
            return None

        sequence = action.based_on_sequence
        if not (self.require_thoughts or action.reason or sync.unpaired(sequence)):
            return None

        emitted = None
        try:
            if action.reason:
                emitted = sync.emit_thought(sequence, action.reason, kind=action.kind)
            return sync.accept_tool(sequence, action.kind, action.tool)
        except ProtocolDesyncError as e:
            if emitted is not None:
                sync.update_thought(emitted.id, ThoughtStatus.ERROR)
            self.plog.desync_detected(sequence, e.message, action.tool)
            if self.require_thoughts:
                raise
            return None

    def _settle_thought(self, thought: ThoughtFrame | None, frame: Frame) -> None:
        if thought is None or self.synchronizer is None:
            return
        status = ThoughtStatus.ERROR if frame.is_error else ThoughtStatus.SUCCESS
        self.synchronizer.update_thought(thought.id, status)

    # =========================================================================
    # Queries
    # =========================================================================

    async def _run_queries(self, actions: list[Action]) -> list[Frame]:
        sequence = actions[0].based_on_sequence
        thoughts: list[ThoughtFrame | None] = []
        try:
            if not self.store.is_current(sequence):
                raise StaleSequenceError(sequence, self.store.head)
            for action in actions:
                thoughts.append(self._pair_thought(action))
        except ProtocolError as e:
            rejection = self._reject(actions[0], e)
            for thought in thoughts:
                self._settle_thought(thought, rejection)
            return [rejection]

        logger.debug(f"[dispatcher] Running {len(actions)} queries at sequence {sequence}")
        frames = await asyncio.gather(*(self._run_query(a, sequence) for a in actions))
        for thought, frame in zip(thoughts, frames, strict=True):
            self._settle_thought(thought, frame)
        return list(frames)

    async def _run_query(self, action: Action, sequence: int) -> Frame:
        executor = self.registry.require(action.tool)
        stream = self.stream(action)
        ctx = ExecutionContext(
            action=action, sequence=sequence, scope_key=action.scope_key, stream=stream
        )
        stream.start()
        try:
            await stream.checkpoint()
            observation = await executor.execute(action.payload, ctx)
        except ActionCancelledError as e:
            stream.mark_cancelled()
            return self._reject(action, e)
        except Exception as e:
            stream.fail()
            return self._record_failure(action, e)

        frame = self.resolver.observe(
            action.scope_key,
            observation,
            sequence,
            tool=action.tool,
            actionId=action.id,
        )
        stream.complete()
        self.plog.query_observed(frame, action.tool)
        return frame

    # =========================================================================
    # Mutations
    # =========================================================================

    async def _run_mutation(self, action: Action) -> Frame:
        scope_key = action.scope_key
        lock = self._claim_scope(scope_key)
        try:
            async with lock, self._writer:
                try:
                    if not self.store.is_current(action.based_on_sequence):
                        raise StaleSequenceError(action.based_on_sequence, self.store.head)
                    thought = self._pair_thought(action)
                except ProtocolError as e:
                    return self._reject(action, e)

                frame = await self._execute_mutation(action)
                self._settle_thought(thought, frame)
                return frame
        finally:
            self._release_scope(scope_key)

    async def _execute_mutation(self, action: Action) -> Frame:
        executor = self.registry.require(action.tool)
        stream = self.stream(action)
        ctx = ExecutionContext(
            action=action,
            sequence=action.based_on_sequence,
            scope_key=action.scope_key,
            stream=stream,
        )
        stream.start()
        try:
            await stream.checkpoint()
            observation = await self._invoke(executor, action, ctx)
        except ActionCancelledError as e:
            stream.mark_cancelled()
            return self._reject(action, e)
        except MutationTimeoutError as e:
            stream.fail()
            frame = self._record_failure(action, e)
            self.plog.mutation_timeout(frame, action.tool, e.timeout)
            return frame
        except Exception as e:
            stream.fail()
            return self._record_failure(action, e)

        frame = self.resolver.commit(
            action.scope_key,
            observation,
            action.based_on_sequence,
            tool=action.tool,
            actionId=action.id,
        )
        stream.complete()
        self.plog.frame_committed(frame, action.tool)
        return frame

    async def _invoke(self, executor: Executor, action: Action, ctx: ExecutionContext) -> Observation:
        if self.mutation_timeout is None:
            return await executor.execute(action.payload, ctx)
        try:
            return await asyncio.wait_for(
                executor.execute(action.payload, ctx), timeout=self.mutation_timeout
            )
        except TimeoutError:
            raise MutationTimeoutError(action.tool, self.mutation_timeout) from None

    # =========================================================================
    # Error frames
    # =========================================================================

    def _reject(self, action: Action, error: ProtocolError) -> Frame:
        """Synchronous rejection: an error frame at the head, not stored."""
        scope_key = action.scope_key or self.default_scope
        changes = self.resolver.encode_failure(scope_key, error.code, error.message)
        self.plog.action_rejected(
            error.code.value, error.message, action.tool, action.based_on_sequence
        )
        return error_frame(
            changes.code,
            changes.message,
            sequence=self.store.head,
            scope_key=scope_key,
            content=changes.content,
            tool=action.tool,
            actionId=action.id,
        )

    def _record_failure(self, action: Action, error: Exception) -> Frame:
        """Executor failure or timeout: a durable error frame at the unchanged head."""
        if isinstance(error, ProtocolError):
            code, message = error.code, error.message
        else:
            code, message = ErrorCode.EXECUTOR_FAILURE, f"{type(error).__name__}: {error}"
        snapshot = error.snapshot if isinstance(error, ExecutorFailure) else None

        changes = self.resolver.encode_failure(action.scope_key, code, message, snapshot)
        frame = self.store.record_error(
            action.scope_key, changes, tool=action.tool, actionId=action.id
        )
        if code != ErrorCode.TIMEOUT:
            logger.error(f"[dispatcher] '{action.tool}' failed: {message}", exc_info=error)
            self.plog.executor_failed(frame, action.tool, message)
        return frame

    def to_dict(self) -> dict[str, Any]:
        return {
            "head": self.store.head,
            "defaultScope": self.default_scope,
            "mutationTimeout": self.mutation_timeout,
            "requireThoughts": self.require_thoughts,
            "streams": len(self._streams),
            "activeScopes": len(self._scope_locks),
        }
