"""Thread retrieval routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from stack_chat_backend.dependencies import get_caller, get_orchestrator
from stack_chat_backend.models.threads import (
    DisplayMessage,
    ThreadDetailResponse,
    ThreadListResponse,
    ThreadSummary,
)
from stack_chat_backend.services.orchestrator import ThreadOrchestrator

router = APIRouter(prefix="/api", tags=["threads"])

_orchestrator_dep = Depends(get_orchestrator)
_caller_dep = Depends(get_caller)


@router.get("/threads", response_model=ThreadListResponse)
def list_threads(
    limit: int = Query(default=50, ge=1, le=100),
    orchestrator: ThreadOrchestrator = _orchestrator_dep,
    caller: str | None = _caller_dep,
) -> ThreadListResponse:
    """List the caller's threads, newest first."""
    threads = orchestrator.list_threads(caller, limit=limit)
    return ThreadListResponse(
        threads=[
            ThreadSummary(
                id=thread.id,
                title=thread.title,
                createdAt=thread.created_at,
                updatedAt=thread.updated_at,
            )
            for thread in threads
        ]
    )


@router.get("/thread/{thread_id}", response_model=ThreadDetailResponse)
def get_thread(
    thread_id: str,
    orchestrator: ThreadOrchestrator = _orchestrator_dep,
    caller: str | None = _caller_dep,
) -> ThreadDetailResponse:
    """Get a thread's display history."""
    view = orchestrator.get_thread_view(thread_id, caller)
    return ThreadDetailResponse(
        id=view.id,
        title=view.title,
        messages=[
            DisplayMessage(role=message.role, content=message.text())
            for message in view.messages
        ],
        createdAt=view.created_at,
        updatedAt=view.updated_at,
    )


@router.delete("/thread/{thread_id}")
def delete_thread(
    thread_id: str,
    orchestrator: ThreadOrchestrator = _orchestrator_dep,
    caller: str | None = _caller_dep,
) -> dict[str, str]:
    """Delete a thread the caller owns."""
    orchestrator.delete_thread(thread_id, caller)
    return {"status": "ok"}
