"""
Frame types for the seqframe protocol.

A Frame is an immutable record of the observed state of one scope (a page,
a document, a counter) at one point in protocol time. Every frame carries
the sequence number it was observed at and a tagged ``changes`` variant:

- FullPage: a complete snapshot of the scope
- Diff: a partial change expressed relative to a FullPage base frame
- ErrorChanges: a failure snapshot, always carrying the current content

Frames are created by the dispatcher and numbered by the frame store.
They are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class ErrorCode(str, Enum):
    """Error codes carried by error frames."""

    # Anchored on an outdated observation, recoverable by re-anchoring
    STALE_SEQUENCE = "STALE_SEQUENCE"

    # Caller protocol misuse, rejected before execution
    INCONSISTENT_BATCH_SEQUENCE = "INCONSISTENT_BATCH_SEQUENCE"
    MIXED_ACTION_TYPES = "MIXED_ACTION_TYPES"
    UNKNOWN_EXECUTOR = "UNKNOWN_EXECUTOR"

    # Execution outcomes
    EXECUTOR_FAILURE = "EXECUTOR_FAILURE"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"

    # Thought/tool pairing or ack-gap violation
    PROTOCOL_DESYNC = "PROTOCOL_DESYNC"


# =============================================================================
# Change Variants
# =============================================================================


@dataclass(frozen=True, slots=True)
class FullPage:
    """A complete snapshot of a scope."""

    content: str

    @property
    def kind(self) -> Literal["full_page"]:
        return "full_page"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "content": self.content}


@dataclass(frozen=True, slots=True)
class Diff:
    """
    A partial change to a scope.

    ``base_frame`` is the sequence number of the FullPage frame this diff
    is expressed against. It always points backward in time.
    """

    selector: str
    content: str
    base_frame: int

    @property
    def kind(self) -> Literal["diff"]:
        return "diff"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "selector": self.selector,
            "content": self.content,
            "baseFrame": self.base_frame,
        }


@dataclass(frozen=True, slots=True)
class ErrorChanges:
    """A failure snapshot. Never expressed as a diff."""

    code: ErrorCode
    message: str
    content: str = ""

    @property
    def kind(self) -> Literal["error"]:
        return "error"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "code": self.code.value,
            "message": self.message,
            "content": self.content,
        }


Changes = FullPage | Diff | ErrorChanges


# =============================================================================
# Frame
# =============================================================================


@dataclass(frozen=True, kw_only=True, slots=True)
class Frame:
    """
    Immutable, sequence-numbered record of observed or attempted state.

    Attributes:
        sequence: Protocol time this frame belongs to
        scope_key: Which logical resource the frame describes
        changes: FullPage, Diff or ErrorChanges
        id: Unique frame identifier (for tracing)
        created_at: Creation timestamp
        metadata: Free-form annotations (tool name, action id, ...)
    """

    sequence: int
    scope_key: str
    changes: Changes
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def frame_type(self) -> str:
        """Variant tag of the changes: full_page, diff or error."""
        return self.changes.kind

    @property
    def is_full(self) -> bool:
        return isinstance(self.changes, FullPage)

    @property
    def is_diff(self) -> bool:
        return isinstance(self.changes, Diff)

    @property
    def is_error(self) -> bool:
        return isinstance(self.changes, ErrorChanges)

    @property
    def content(self) -> str:
        """Content of whichever variant this frame carries."""
        return self.changes.content

    @property
    def error_code(self) -> ErrorCode | None:
        if isinstance(self.changes, ErrorChanges):
            return self.changes.code
        return None

    @property
    def base_frame(self) -> int | None:
        if isinstance(self.changes, Diff):
            return self.changes.base_frame
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize frame to dictionary for logging and transport."""
        return {
            "id": str(self.id),
            "sequence": self.sequence,
            "scopeKey": self.scope_key,
            "changes": self.changes.to_dict(),
            "createdAt": self.created_at.isoformat(),
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"Frame(sequence={self.sequence}, scope='{self.scope_key}', type={self.frame_type})"


def error_frame(
    code: ErrorCode,
    message: str,
    *,
    sequence: int,
    scope_key: str,
    content: str = "",
    **metadata: Any,
) -> Frame:
    """Build an error frame that is not part of the store's history."""
    return Frame(
        sequence=sequence,
        scope_key=scope_key,
        changes=ErrorChanges(code=code, message=message, content=content),
        metadata=metadata,
    )
