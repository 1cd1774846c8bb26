"""
Actions and observations.

An Action is a request to read (query) or change (mutation) the state of a
scope, anchored on the sequence number the actor last observed. An
Observation is what an executor reports back after running one.

Usage:
    action = Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
    batch = ActionBatch(actions=(
        Action(tool="get_current_value", based_on_sequence=2),
        Action(tool="get_current_value", based_on_sequence=2),
    ))
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any
from uuid import uuid4


class ActionKind(str, Enum):
    """Whether an action reads or changes state."""

    QUERY = "query"  # Parallelizable, never advances the sequence
    MUTATION = "mutation"  # Serialized per scope, advances on success


@dataclass(frozen=True, kw_only=True, slots=True)
class Action:
    """
    A request to read or change state.

    Attributes:
        tool: Name of the registered executor to run
        based_on_sequence: Sequence number the actor last observed
        payload: Opaque arguments passed to the executor
        kind: Declared kind; resolved from the executor registry when None
        scope_key: Resource addressed; the dispatcher's default scope when None
        reason: Rationale emitted on the thought channel before execution
        id: Unique action identifier (for cancellation and tracing)
    """

    tool: str
    based_on_sequence: int
    payload: dict[str, Any] = field(default_factory=dict)
    kind: ActionKind | None = None
    scope_key: str | None = None
    reason: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def is_query(self) -> bool:
        return self.kind == ActionKind.QUERY

    @property
    def is_mutation(self) -> bool:
        return self.kind == ActionKind.MUTATION

    def anchored_on(self, sequence: int) -> Action:
        """Same action re-anchored on another sequence (new id)."""
        return replace(self, based_on_sequence=sequence, id=uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tool": self.tool,
            "kind": self.kind.value if self.kind else None,
            "basedOnSequence": self.based_on_sequence,
            "payload": self.payload,
            "scopeKey": self.scope_key,
            "reason": self.reason,
        }


@dataclass(frozen=True, slots=True)
class ActionBatch:
    """
    Actions submitted together under one declared intent.

    A legal batch is either all queries sharing one anchor, or exactly
    one mutation. Shape is checked by the dispatcher, not here.
    """

    actions: tuple[Action, ...]

    def __len__(self) -> int:
        return len(self.actions)

    @property
    def sequences(self) -> list[int]:
        return [a.based_on_sequence for a in self.actions]


@dataclass(frozen=True, kw_only=True, slots=True)
class Observation:
    """
    Successful executor result.

    Attributes:
        content: Observed content; the changed fragment when ``selector`` is set
        selector: Locates a partial change within the scope
        snapshot: Full content of the scope after the action, if known
        scope_key: Set when the action moved to another scope (navigation)
        full_refresh: Ask for a full snapshot instead of a diff
        data: Structured result for programmatic callers
    """

    content: str
    selector: str | None = None
    snapshot: str | None = None
    scope_key: str | None = None
    full_refresh: bool = False
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def full_content(self) -> str:
        """Best full-page rendition of this observation."""
        return self.snapshot if self.snapshot is not None else self.content


@dataclass(frozen=True, slots=True)
class Progress:
    """Intermediate progress from a streaming executor. Never advances the sequence."""

    percentage: float
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"percentage": self.percentage, "message": self.message, "data": self.data}
