"""
Session Sync Manager.

Tracks acknowledgment state between two independent parties on one
logical connection (for example a long-lived client and a model) and
chooses how to recover when they drift apart.

Each session has its own sequence space, unrelated to frame sequences:
the sender numbers what it emits, the receiver acknowledges what it has
processed. ``gap = last_sent - last_ack``.

Recovery policy, evaluated in this order:
1. session change        -> RESET: new session id, sequence restarts at 1,
                            initial full snapshot
2. gap > small threshold -> SNAPSHOT: one full current-state snapshot, no
                            replay of intermediate events
3. 0 < gap <= threshold  -> RESEND: missed events from the local log, in
                            original order, never renumbered

``max_unacked`` is the backpressure signal: when a send pushes the gap
past it, listeners receive a recovery-required notification carrying the
plan the policy would choose.

Example:
    manager = SessionSyncManager(small_gap_threshold=20)
    session = manager.open_session()
    for i in range(50):
        session.emit({"event": i})
    session.record_ack(45)
    plan = manager.evaluate(session.session_id)
    assert plan.strategy is RecoveryStrategy.RESEND
    assert plan.missed == (46, 47, 48, 49, 50)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from .errors import AckOutOfRangeError

logger = logging.getLogger(__name__)


class RecoveryStrategy(str, Enum):
    """Mutually exclusive ways to bring a counterpart back in sync."""

    RESEND = "resend"
    SNAPSHOT = "snapshot"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class SentEvent:
    """An event in the sender's local log."""

    sequence: int
    payload: Any = None
    is_snapshot: bool = False
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "payload": self.payload,
            "isSnapshot": self.is_snapshot,
            "sentAt": self.sent_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class RecoveryPlan:
    """
    The recovery-required notification.

    ``missed`` lists the exact sequence numbers to resend (RESEND only);
    ``events`` holds what the sender should (re)transmit. ``applied`` is
    False for a plan that was only proposed (backlog notification).
    """

    strategy: RecoveryStrategy
    session_id: str
    gap: int
    missed: tuple[int, ...] = ()
    events: tuple[SentEvent, ...] = ()
    previous_session_id: str | None = None
    applied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "sessionId": self.session_id,
            "gap": self.gap,
            "missed": list(self.missed),
            "events": [e.to_dict() for e in self.events],
            "previousSessionId": self.previous_session_id,
            "applied": self.applied,
        }


@dataclass
class SessionSyncState:
    """
    Counters for one session.

    ``sequence`` is written only by the sender, ``last_ack`` only by the
    receiver's acknowledgments.
    """

    session_id: str
    sequence: int = 0
    last_ack: int = 0
    max_unacked: int = 50

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "sequence": self.sequence,
            "lastAck": self.last_ack,
            "maxUnacked": self.max_unacked,
        }


RecoveryListener = Callable[[RecoveryPlan], None]


class SyncSession:
    """Acknowledgment bookkeeping and the local event log for one session."""

    def __init__(
        self,
        session_id: str,
        small_gap_threshold: int = 20,
        max_unacked: int = 50,
        on_backlog: Callable[[SyncSession], None] | None = None,
    ):
        self.state = SessionSyncState(session_id=session_id, max_unacked=max_unacked)
        self.small_gap_threshold = small_gap_threshold
        self._log: dict[int, SentEvent] = {}
        self._on_backlog = on_backlog
        self._backlogged = False
        self.created_at = datetime.now(UTC)

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def last_sent(self) -> int:
        return self.state.sequence

    @property
    def last_ack(self) -> int:
        return self.state.last_ack

    @property
    def backlogged(self) -> bool:
        return self.gap() > self.state.max_unacked

    # =========================================================================
    # Sender side
    # =========================================================================

    def emit(self, payload: Any = None) -> int:
        """Assign the next sequence number to ``payload``, log it and return the number."""
        return self.record_sent(self.state.sequence + 1, payload).sequence

    def record_sent(self, sequence: int, payload: Any = None) -> SentEvent:
        """
        Record that ``sequence`` was sent.

        Raises:
            ValueError: ``sequence`` does not increase
        """
        if sequence <= self.state.sequence:
            raise ValueError(
                f"Session {self.session_id}: sent sequence {sequence} does not increase "
                f"past {self.state.sequence}"
            )
        event = self._append(sequence, payload)
        self._check_backlog()
        return event

    def _append(self, sequence: int, payload: Any, is_snapshot: bool = False) -> SentEvent:
        event = SentEvent(sequence=sequence, payload=payload, is_snapshot=is_snapshot)
        self.state.sequence = sequence
        self._log[sequence] = event
        return event

    def _check_backlog(self) -> None:
        if self.backlogged and not self._backlogged:
            self._backlogged = True
            logger.warning(
                f"[session:{self.session_id[:8]}] {self.gap()} unacknowledged events "
                f"exceed max_unacked={self.state.max_unacked}"
            )
            if self._on_backlog is not None:
                self._on_backlog(self)
        elif not self.backlogged:
            self._backlogged = False

    # =========================================================================
    # Receiver side
    # =========================================================================

    def record_ack(self, sequence: int) -> int:
        """
        Record an acknowledgment. Out-of-order acks never move last_ack back.

        Returns the resulting last_ack.

        Raises:
            AckOutOfRangeError: ``sequence`` was never sent
        """
        if sequence > self.state.sequence:
            raise AckOutOfRangeError(self.session_id, sequence, self.state.sequence)

        if sequence > self.state.last_ack:
            self.state.last_ack = sequence
            for acked in [s for s in self._log if s <= sequence]:
                del self._log[acked]
        self._check_backlog()
        return self.state.last_ack

    # =========================================================================
    # Policy
    # =========================================================================

    def gap(self) -> int:
        return self.state.sequence - self.state.last_ack

    def missed(self) -> list[int]:
        return list(range(self.state.last_ack + 1, self.state.sequence + 1))

    def logged(self, sequences: list[int]) -> list[SentEvent]:
        return [self._log[s] for s in sequences if s in self._log]

    def evaluate(self, session_changed: bool = False) -> RecoveryStrategy | None:
        """Pick a strategy. None when nothing is outstanding."""
        if session_changed:
            return RecoveryStrategy.RESET
        gap = self.gap()
        if gap == 0:
            return None
        if gap > self.small_gap_threshold:
            return RecoveryStrategy.SNAPSHOT
        return RecoveryStrategy.RESEND

    def plan(self, session_changed: bool = False) -> RecoveryPlan | None:
        """Build the recovery plan without performing it."""
        strategy = self.evaluate(session_changed)
        if strategy is None:
            return None
        if strategy is RecoveryStrategy.RESEND:
            missed = self.missed()
            return RecoveryPlan(
                strategy=strategy,
                session_id=self.session_id,
                gap=self.gap(),
                missed=tuple(missed),
                events=tuple(self.logged(missed)),
            )
        return RecoveryPlan(strategy=strategy, session_id=self.session_id, gap=self.gap())

    def send_snapshot(self, content: Any) -> SentEvent:
        """
        Send a full snapshot and drop the intermediate events it supersedes.

        The snapshot takes the next sequence number like any other event.
        """
        event = self._append(self.state.sequence + 1, content, is_snapshot=True)
        self._log = {event.sequence: event}
        return event

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.state.to_dict(),
            "gap": self.gap(),
            "backlogged": self.backlogged,
            "loggedEvents": len(self._log),
            "createdAt": self.created_at.isoformat(),
        }


class SessionSyncManager:
    """
    Owns every SyncSession and applies the recovery policy.

    Args:
        small_gap_threshold: Largest gap still recovered by resending
        max_unacked: Backlog size that triggers a recovery-required notification
        snapshot_provider: Returns the current full state for snapshots and resets
    """

    def __init__(
        self,
        small_gap_threshold: int = 20,
        max_unacked: int = 50,
        snapshot_provider: Callable[[], Any] | None = None,
    ):
        if small_gap_threshold < 0:
            raise ValueError("small_gap_threshold must be >= 0")
        if max_unacked < 1:
            raise ValueError("max_unacked must be >= 1")
        self.small_gap_threshold = small_gap_threshold
        self.max_unacked = max_unacked
        self.snapshot_provider = snapshot_provider
        self._sessions: dict[str, SyncSession] = {}
        self._listeners: list[RecoveryListener] = []

    def add_listener(self, listener: RecoveryListener) -> None:
        self._listeners.append(listener)

    # =========================================================================
    # Sessions
    # =========================================================================

    def open_session(self, session_id: str | None = None) -> SyncSession:
        session_id = session_id or uuid4().hex
        if session_id in self._sessions:
            raise ValueError(f"Session {session_id} already open")
        session = SyncSession(
            session_id=session_id,
            small_gap_threshold=self.small_gap_threshold,
            max_unacked=self.max_unacked,
            on_backlog=self._backlog_reached,
        )
        self._sessions[session_id] = session
        logger.info(f"[session_sync] Opened session {session_id[:8]}")
        return session

    def get(self, session_id: str) -> SyncSession:
        """
        Raises:
            KeyError: No open session with that id
        """
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session {session_id}") from None

    def close(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def sessions(self) -> list[SyncSession]:
        return list(self._sessions.values())

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    # Convenience pass-throughs

    def record_sent(self, session_id: str, sequence: int, payload: Any = None) -> SentEvent:
        return self.get(session_id).record_sent(sequence, payload)

    def record_ack(self, session_id: str, sequence: int) -> int:
        return self.get(session_id).record_ack(sequence)

    def gap(self, session_id: str) -> int:
        return self.get(session_id).gap()

    # =========================================================================
    # Recovery
    # =========================================================================

    def evaluate(self, session_id: str, session_changed: bool = False) -> RecoveryPlan | None:
        """Plan recovery for a session without performing it."""
        return self.get(session_id).plan(session_changed)

    def recover(self, session_id: str, session_changed: bool = False) -> RecoveryPlan | None:
        """Choose and perform recovery. None when nothing is outstanding."""
        plan = self.evaluate(session_id, session_changed)
        if plan is None:
            return None
        return self.apply(plan)

    def apply(self, plan: RecoveryPlan) -> RecoveryPlan:
        """
        Perform a recovery plan and return what was actually sent.

        RESEND returns the logged events as they were. SNAPSHOT sends one
        snapshot event and prunes the log. RESET replaces the session.

        A RESEND whose events were pruned by an earlier snapshot cannot be
        replayed and is performed as a SNAPSHOT instead.
        """
        session_id = plan.session_id
        if plan.strategy is RecoveryStrategy.RESEND and len(plan.events) < len(plan.missed):
            logger.info(
                f"[session_sync] {session_id[:8]}: {len(plan.missed) - len(plan.events)} "
                "missed events are no longer logged, sending a snapshot"
            )
            plan = replace(plan, strategy=RecoveryStrategy.SNAPSHOT)

        if plan.strategy is RecoveryStrategy.RESET:
            plan = self.reset(session_id)
        elif plan.strategy is RecoveryStrategy.SNAPSHOT:
            event = self.get(session_id).send_snapshot(self._snapshot())
            plan = RecoveryPlan(
                strategy=plan.strategy,
                session_id=session_id,
                gap=plan.gap,
                events=(event,),
                applied=True,
            )
        else:
            plan = replace(plan, applied=True)

        logger.info(
            f"[session_sync] Recovery for {session_id[:8]}: {plan.strategy.value} "
            f"(gap={plan.gap}, missed={len(plan.missed)})"
        )
        self._notify(plan)
        return plan

    def reset(self, session_id: str) -> RecoveryPlan:
        """
        Hard reset: discard the session's sequence space and start a new one.

        The new session begins at sequence 1 with an initial full snapshot.
        """
        old = self._sessions.pop(session_id, None)
        gap = old.gap() if old is not None else 0
        session = self.open_session()
        event = session.send_snapshot(self._snapshot())
        return RecoveryPlan(
            strategy=RecoveryStrategy.RESET,
            session_id=session.session_id,
            gap=gap,
            events=(event,),
            previous_session_id=session_id,
            applied=True,
        )

    def _snapshot(self) -> Any:
        return self.snapshot_provider() if self.snapshot_provider is not None else None

    def _backlog_reached(self, session: SyncSession) -> None:
        plan = session.plan()
        if plan is not None:
            self._notify(plan)

    def _notify(self, plan: RecoveryPlan) -> None:
        for listener in self._listeners:
            try:
                listener(plan)
            except Exception as e:
                logger.error(f"[session_sync] Recovery listener error: {e}", exc_info=True)
