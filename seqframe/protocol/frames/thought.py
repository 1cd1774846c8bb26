"""
Thought frames.

The thought channel carries the agent's human-readable rationale. Every
tool call is paired with a thought at the same sequence number, emitted
before (or together with) the call it explains.

Usage:
    thought = ThoughtFrame(sequence=2, text="Clicking submit to save the form")
    done = thought.with_status(ThoughtStatus.SUCCESS)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from seqframe.protocol.actions import ActionKind


class ThoughtStatus(str, Enum):
    """Lifecycle of the work a thought describes."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, kw_only=True, slots=True)
class ThoughtFrame:
    """
    Agent rationale bound to a sequence number.

    ``tool`` and ``kind`` are filled in once the thought has been paired
    with a tool call; an unpaired thought has ``tool=None``.
    """

    sequence: int
    text: str
    status: ThoughtStatus = ThoughtStatus.IN_PROGRESS
    kind: ActionKind | None = None
    tool: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def frame_type(self) -> str:
        return "thought"

    @property
    def is_paired(self) -> bool:
        return self.tool is not None

    def with_status(self, status: ThoughtStatus) -> ThoughtFrame:
        """Same thought (same id and sequence) with a new status."""
        return replace(self, status=status)

    def paired_with(self, tool: str, kind: ActionKind) -> ThoughtFrame:
        return replace(self, tool=tool, kind=kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "frameType": self.frame_type,
            "sequence": self.sequence,
            "text": self.text,
            "status": self.status.value,
            "kind": self.kind.value if self.kind else None,
            "tool": self.tool,
            "createdAt": self.created_at.isoformat(),
        }
