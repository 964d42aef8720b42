"""Message generation route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stack_chat_backend.dependencies import get_caller, get_orchestrator
from stack_chat_backend.models.base import ErrorResponse
from stack_chat_backend.models.messages import GenerateRequest, GenerateResponse
from stack_chat_backend.services.orchestrator import ThreadOrchestrator

router = APIRouter(prefix="/api", tags=["messages"])

# Module-level Depends instances to satisfy B008 linter rule
_orchestrator_dep = Depends(get_orchestrator)
_caller_dep = Depends(get_caller)

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 409, 429, 502, 503)
}


@router.post("/message/generate", response_model=GenerateResponse, responses=_ERROR_RESPONSES)
async def generate_message(
    payload: GenerateRequest,
    orchestrator: ThreadOrchestrator = _orchestrator_dep,
    caller: str | None = _caller_dep,
) -> GenerateResponse:
    """Generate the next assistant turn, creating the thread when needed."""
    result = await orchestrator.generate(
        payload.text, payload.id, is_public=payload.is_public, caller=caller
    )
    return GenerateResponse(
        generatedText=result.generated_text,
        generatedTitle=result.generated_title,
        id=result.thread_id,
    )
