"""
Dual-Channel Synchronizer.

Keeps the thought channel (human-readable rationale) in lockstep with the
tool channel. The coupling rule:

- Every tool call is paired with exactly one thought carrying the same
  sequence number, and that thought exists before the call is accepted
  for execution (emitted earlier, or together with it).
- Parallel queries sharing a sequence may each have their own thought at
  that sequence. A mutation allows exactly one thought per sequence.
- A thought marked ERROR is retired and no longer counts toward either
  rule; a retry at the same sequence brings a thought of its own.

A violation is recorded, logged, handed to listeners and raised as
ProtocolDesyncError. It is never dropped.

Example:
    sync = DualChannelSynchronizer()
    sync.emit_thought(2, "Reading the counter before changing it", kind=ActionKind.QUERY)
    sync.accept_tool(2, ActionKind.QUERY, "get_current_value")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from .actions import ActionKind
from .errors import ProtocolDesyncError
from .frames import ThoughtFrame, ThoughtStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DesyncViolation:
    """A recorded breach of the thought/tool coupling rule."""

    sequence: int
    reason: str
    tool: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "reason": self.reason,
            "tool": self.tool,
            "createdAt": self.created_at.isoformat(),
        }


DesyncListener = Callable[[DesyncViolation], None]


class DualChannelSynchronizer:
    """Pairs thought frames with tool calls by sequence number."""

    def __init__(self) -> None:
        self._by_sequence: dict[int, list[UUID]] = {}
        self._thoughts: dict[UUID, ThoughtFrame] = {}
        self.violations: list[DesyncViolation] = []
        self._listeners: list[DesyncListener] = []

    def add_listener(self, listener: DesyncListener) -> None:
        self._listeners.append(listener)

    # =========================================================================
    # Thought channel
    # =========================================================================

    def emit_thought(
        self,
        sequence: int,
        text: str,
        status: ThoughtStatus = ThoughtStatus.IN_PROGRESS,
        kind: ActionKind | None = None,
    ) -> ThoughtFrame:
        """
        Record a thought at ``sequence``.

        Raises:
            ProtocolDesyncError: a mutation has already claimed this
                sequence (a mutation allows exactly one thought)
        """
        if any(t.kind == ActionKind.MUTATION for t in self.live(sequence)):
            self._violation(sequence, "a mutation allows exactly one thought per sequence")

        thought = ThoughtFrame(sequence=sequence, text=text, status=status, kind=kind)
        self._thoughts[thought.id] = thought
        self._by_sequence.setdefault(sequence, []).append(thought.id)
        logger.debug(f"[channels] Thought at {sequence}: {text[:60]}")
        return thought

    def update_thought(self, thought_id: UUID, status: ThoughtStatus) -> ThoughtFrame:
        """Change a thought's status in place (same id, same sequence)."""
        thought = self._thoughts.get(thought_id)
        if thought is None:
            raise KeyError(f"Unknown thought {thought_id}")
        updated = thought.with_status(status)
        self._thoughts[thought_id] = updated
        return updated

    def thoughts(self, sequence: int | None = None) -> list[ThoughtFrame]:
        """Thoughts at one sequence, or all of them in emission order."""
        if sequence is not None:
            return [self._thoughts[i] for i in self._by_sequence.get(sequence, [])]
        return [self._thoughts[i] for ids in self._by_sequence.values() for i in ids]

    def live(self, sequence: int | None = None) -> list[ThoughtFrame]:
        """Thoughts that have not been retired with ERROR status."""
        return [t for t in self.thoughts(sequence) if t.status is not ThoughtStatus.ERROR]

    def unpaired(self, sequence: int | None = None) -> list[ThoughtFrame]:
        return [t for t in self.live(sequence) if not t.is_paired]

    # =========================================================================
    # Tool channel
    # =========================================================================

    def accept_tool(self, sequence: int, kind: ActionKind, tool: str) -> ThoughtFrame:
        """
        Pair a tool call with an unpaired thought at the same sequence.

        Returns the paired thought.

        Raises:
            ProtocolDesyncError: no thought precedes the call, or a second
                mutation is paired at one sequence
        """
        at_sequence = self.live(sequence)

        if kind == ActionKind.MUTATION and any(
            t.is_paired and t.kind == ActionKind.MUTATION for t in at_sequence
        ):
            self._violation(sequence, "a mutation is already paired at this sequence", tool)

        candidate = next(
            (t for t in at_sequence if not t.is_paired and t.kind in (None, kind)),
            None,
        )
        if candidate is None:
            self._violation(sequence, "tool call observed with no preceding thought", tool)

        paired = candidate.paired_with(tool, kind)
        self._thoughts[paired.id] = paired
        logger.debug(f"[channels] Paired {tool} ({kind.value}) with thought at {sequence}")
        return paired

    def _violation(self, sequence: int, reason: str, tool: str | None = None) -> None:
        violation = DesyncViolation(sequence=sequence, reason=reason, tool=tool)
        self.violations.append(violation)
        logger.warning(
            f"[channels] Desync at sequence {sequence}"
            + (f" ({tool})" if tool else "")
            + f": {reason}"
        )
        for listener in self._listeners:
            try:
                listener(violation)
            except Exception as e:
                logger.error(f"[channels] Desync listener error: {e}", exc_info=True)
        raise ProtocolDesyncError(f"Sequence {sequence}: {reason}")

    def reset(self) -> None:
        """Forget all thoughts (new session). Violations are kept for audit."""
        self._by_sequence.clear()
        self._thoughts.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "thoughts": [t.to_dict() for t in self.thoughts()],
            "violations": [v.to_dict() for v in self.violations],
        }
