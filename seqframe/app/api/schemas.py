"""
Request schemas for the seqframe HTTP API.

Wire names are camelCase (``basedOnSequence``, ``scopeKey``); Python
names are snake_case. Responses are the protocol objects' ``to_dict()``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from seqframe.protocol import Action, ActionBatch, ActionKind, ThoughtStatus


class ActionRequest(BaseModel):
    """One action, as submitted by an agent."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    tool: str = Field(..., min_length=1, description="Registered executor name")
    based_on_sequence: int = Field(
        ..., alias="basedOnSequence", description="Sequence the agent last observed"
    )
    payload: dict[str, Any] = Field(default_factory=dict)
    kind: ActionKind | None = Field(None, description="query or mutation; resolved when omitted")
    scope_key: str | None = Field(None, alias="scopeKey")
    reason: str | None = Field(None, description="Rationale for the thought channel")
    id: str | None = Field(None, description="Client-chosen action id (for cancellation)")

    def to_action(self) -> Action:
        extra = {"id": self.id} if self.id else {}
        return Action(
            tool=self.tool,
            based_on_sequence=self.based_on_sequence,
            payload=self.payload,
            kind=self.kind,
            scope_key=self.scope_key,
            reason=self.reason,
            **extra,
        )


class BatchRequest(BaseModel):
    """Several actions submitted together."""

    model_config = ConfigDict(extra="forbid")

    actions: list[ActionRequest] = Field(..., min_length=1)

    def to_batch(self) -> ActionBatch:
        return ActionBatch(actions=tuple(a.to_action() for a in self.actions))


class ThoughtRequest(BaseModel):
    """A thought on the thought channel."""

    model_config = ConfigDict(extra="forbid")

    sequence: int = Field(..., ge=0)
    text: str = Field(..., min_length=1)
    status: ThoughtStatus = ThoughtStatus.IN_PROGRESS
    kind: ActionKind | None = None


class ThoughtStatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ThoughtStatus


class OpenSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    session_id: str | None = Field(None, alias="sessionId", min_length=1)


class SentRequest(BaseModel):
    """
    Record a sent event.

    Without ``sequence`` the next number is assigned.
    """

    model_config = ConfigDict(extra="forbid")

    sequence: int | None = Field(None, ge=1)
    payload: Any = None


class AckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sequence: int = Field(..., ge=0)


class RecoveryRequest(BaseModel):
    """
    Ask for a recovery decision.

    ``apply=False`` only reports the plan.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    session_changed: bool = Field(False, alias="sessionChanged")
    apply: bool = True
