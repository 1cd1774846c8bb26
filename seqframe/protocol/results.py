"""
Dispatch results.

A batch or a sequence produces several frames; these wrappers carry them
together with timing and a summary of what happened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from .frames import ErrorCode, Frame


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class BatchResult:
    """
    Frames produced by one batch, in submission order.

    A rejected batch holds a single error frame.
    """

    frames: list[Frame] = field(default_factory=list)
    head: int = 0
    execution_id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_utc_now)
    finished_at: datetime | None = None

    @property
    def success(self) -> bool:
        return bool(self.frames) and not any(f.is_error for f in self.frames)

    @property
    def errors(self) -> list[Frame]:
        return [f for f in self.frames if f.is_error]

    @property
    def error_codes(self) -> list[ErrorCode]:
        return [f.error_code for f in self.frames if f.error_code is not None]

    @property
    def duration_ms(self) -> float:
        end = self.finished_at or _utc_now()
        return (end - self.started_at).total_seconds() * 1000

    def finish(self, head: int) -> BatchResult:
        self.head = head
        self.finished_at = _utc_now()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize result for logging/API response."""
        return {
            "executionId": str(self.execution_id),
            "success": self.success,
            "head": self.head,
            "durationMs": round(self.duration_ms, 2),
            "frames": [f.to_dict() for f in self.frames],
        }


@dataclass
class SequenceResult(BatchResult):
    """
    Frames produced by an ordered run of dependent actions.

    Execution stops at the first failing step; steps already executed
    are not rolled back. ``completed`` counts the steps that succeeded.
    """

    total: int = 0
    completed: int = 0
    halted_at: int | None = None
    halt_reason: str | None = None

    @property
    def success(self) -> bool:
        return self.halted_at is None and self.completed == self.total

    @property
    def partial(self) -> bool:
        return self.halted_at is not None and self.completed > 0

    def halt(self, index: int, reason: str) -> None:
        self.halted_at = index
        self.halt_reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "total": self.total,
            "completed": self.completed,
            "haltedAt": self.halted_at,
            "haltReason": self.halt_reason,
        }
