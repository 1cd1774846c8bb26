"""
Action and frame endpoints.

Protocol failures (stale anchors, bad batches, executor failures) are not
HTTP errors: they come back as error frames with status 200, exactly as
a Python caller of the dispatcher would see them.
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from seqframe.app.dependencies import get_dispatcher, get_registry, get_store
from seqframe.protocol import ActionDispatcher, FrameStore
from seqframe.tools import ExecutorRegistry

from .schemas import ActionRequest, BatchRequest

router = APIRouter(tags=["actions"])


@router.post("/actions")
async def submit_actions(
    body: BatchRequest | ActionRequest,
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """
    Submit one action, or a batch of actions sharing one anchor.

    A batch is either any number of queries or exactly one mutation.
    """
    if isinstance(body, ActionRequest):
        body = BatchRequest(actions=[body])
    result = await dispatcher.submit_batch(body.to_batch())
    return result.to_dict()


@router.post("/sequences")
async def run_sequence(
    body: BatchRequest,
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Run dependent actions in order, halting at the first failure."""
    result = await dispatcher.run_sequence([a.to_action() for a in body.actions])
    return result.to_dict()


@router.get("/actions/{action_id}")
async def get_action(
    action_id: str,
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Execution state and progress of an action."""
    stream = dispatcher.get_stream(action_id)
    if stream is None:
        raise HTTPException(status_code=404, detail=f"Unknown action {action_id}")
    return stream.to_dict()


@router.post("/actions/{action_id}/cancel")
async def cancel_action(
    action_id: str,
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Request cooperative cancellation. ``cancelled`` is False once committed."""
    if dispatcher.get_stream(action_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown action {action_id}")
    return {"actionId": action_id, "cancelled": dispatcher.cancel(action_id)}


@router.get("/frames")
async def list_frames(
    scope_key: str | None = Query(None, alias="scopeKey"),
    since: int | None = Query(None),
    include_errors: bool = Query(True, alias="includeErrors"),
    store: FrameStore = Depends(get_store),
) -> dict[str, Any]:
    """Frame history in commit order."""
    frames = store.frames(scope_key=scope_key, since=since, include_errors=include_errors)
    return {
        "head": store.head,
        "frames": [f.to_dict() for f in frames],
    }


@router.get("/frames/{sequence}")
async def get_frame(sequence: int, store: FrameStore = Depends(get_store)) -> dict[str, Any]:
    """Committed frame at a sequence."""
    frame = store.get(sequence)
    if frame is None:
        raise HTTPException(status_code=404, detail=f"No committed frame at sequence {sequence}")
    return frame.to_dict()


@router.get("/head")
async def get_head(store: FrameStore = Depends(get_store)) -> dict[str, Any]:
    return store.to_dict()


@router.get("/tools")
async def list_tools(
    format: Literal["openai", "anthropic", "llm"] = Query("openai"),
    registry: ExecutorRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """Executors compiled for function calling (always with basedOnSequence)."""
    if format == "anthropic":
        tools = registry.to_anthropic_tools()
    elif format == "llm":
        tools = registry.to_llm_schemas()
    else:
        tools = registry.to_openai_functions()
    return {
        "format": format,
        "queries": [e.name for e in registry.queries()],
        "mutations": [e.name for e in registry.mutations()],
        "tools": tools,
    }
