"""
Thought channel endpoints.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from seqframe.app.dependencies import get_synchronizer
from seqframe.protocol import DualChannelSynchronizer, ProtocolDesyncError

from .schemas import ThoughtRequest, ThoughtStatusRequest

router = APIRouter(prefix="/thoughts", tags=["thoughts"])


@router.post("")
async def emit_thought(
    body: ThoughtRequest,
    sync: DualChannelSynchronizer = Depends(get_synchronizer),
) -> dict[str, Any]:
    """Emit a thought ahead of the tool call it explains."""
    try:
        thought = sync.emit_thought(body.sequence, body.text, status=body.status, kind=body.kind)
    except ProtocolDesyncError as e:
        raise HTTPException(
            status_code=409, detail={"code": e.code.value, "message": e.message}
        ) from e
    return thought.to_dict()


@router.post("/{thought_id}/status")
async def update_thought(
    thought_id: UUID,
    body: ThoughtStatusRequest,
    sync: DualChannelSynchronizer = Depends(get_synchronizer),
) -> dict[str, Any]:
    """Change a thought's status in place."""
    try:
        thought = sync.update_thought(thought_id, body.status)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Unknown thought {thought_id}") from e
    return thought.to_dict()


@router.get("")
async def list_thoughts(
    sequence: int | None = Query(None),
    sync: DualChannelSynchronizer = Depends(get_synchronizer),
) -> dict[str, Any]:
    return {
        "thoughts": [t.to_dict() for t in sync.thoughts(sequence)],
        "violations": [v.to_dict() for v in sync.violations],
    }
