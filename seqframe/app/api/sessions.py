"""
Session sync endpoints.

A counterpart reports what it sent and what it acknowledged; the
recovery endpoint says how to bring it back in sync.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from seqframe.app.dependencies import get_sessions
from seqframe.protocol import AckOutOfRangeError, SessionSyncManager, SyncSession

from .schemas import AckRequest, OpenSessionRequest, RecoveryRequest, SentRequest

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _session(sessions: SessionSyncManager, session_id: str) -> SyncSession:
    try:
        return sessions.get(session_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}") from e


@router.post("")
async def open_session(
    body: OpenSessionRequest | None = None,
    sessions: SessionSyncManager = Depends(get_sessions),
) -> dict[str, Any]:
    session_id = body.session_id if body is not None else None
    try:
        session = sessions.open_session(session_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return session.to_dict()


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    sessions: SessionSyncManager = Depends(get_sessions),
) -> dict[str, Any]:
    return _session(sessions, session_id).to_dict()


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    sessions: SessionSyncManager = Depends(get_sessions),
) -> dict[str, Any]:
    if not sessions.close(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")
    return {"sessionId": session_id, "closed": True}


@router.post("/{session_id}/sent")
async def record_sent(
    session_id: str,
    body: SentRequest,
    sessions: SessionSyncManager = Depends(get_sessions),
) -> dict[str, Any]:
    """Record a sent event; the next sequence is assigned when none is given."""
    session = _session(sessions, session_id)
    try:
        if body.sequence is None:
            session.emit(body.payload)
        else:
            session.record_sent(body.sequence, body.payload)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return session.to_dict()


@router.post("/{session_id}/ack")
async def record_ack(
    session_id: str,
    body: AckRequest,
    sessions: SessionSyncManager = Depends(get_sessions),
) -> dict[str, Any]:
    session = _session(sessions, session_id)
    try:
        session.record_ack(body.sequence)
    except AckOutOfRangeError as e:
        raise HTTPException(
            status_code=409, detail={"code": e.code.value, "message": e.message}
        ) from e
    return session.to_dict()


@router.post("/{session_id}/recovery")
async def recover(
    session_id: str,
    body: RecoveryRequest | None = None,
    sessions: SessionSyncManager = Depends(get_sessions),
) -> dict[str, Any]:
    """
    Decide (and by default perform) recovery for a session.

    ``plan`` is null when nothing is outstanding.
    """
    body = body or RecoveryRequest()
    _session(sessions, session_id)
    if body.apply:
        plan = sessions.recover(session_id, session_changed=body.session_changed)
    else:
        plan = sessions.evaluate(session_id, session_changed=body.session_changed)
    return {"plan": plan.to_dict() if plan is not None else None}
