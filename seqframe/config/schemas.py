"""
Configuration Schemas for seqframe.

Pydantic models for protocol settings.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProtocolSettings(BaseModel):
    """
    Protocol settings model.

    Used for type-safe settings access. Loaded from ``SEQFRAME_*``
    environment variables by ``get_settings()``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Service identity
    service_name: str = "seqframe"
    environment: str = "development"
    debug: bool = False

    # Frame store
    start_sequence: int = Field(1, ge=0, description="Head sequence of a fresh store")
    default_scope: str = Field("default", min_length=1, description="Scope for unscoped actions")
    history_limit: int | None = Field(
        None, ge=1, description="Maximum frames kept in history; None keeps all"
    )

    # Dispatcher
    mutation_timeout: float | None = Field(
        30.0, gt=0, description="Seconds a mutation may take to commit; None disables"
    )
    require_thoughts: bool = Field(
        False, description="Reject tool calls that have no paired thought"
    )

    # Session sync
    small_gap_threshold: int = Field(
        20, ge=0, description="Largest acknowledgment gap recovered by resending"
    )
    max_unacked: int = Field(
        50, ge=1, description="Unacknowledged events that trigger a recovery notification"
    )
