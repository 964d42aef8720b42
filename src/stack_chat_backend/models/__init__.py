"""Pydantic models for the stack chat backend API."""

from stack_chat_backend.models.base import ApiModel, ErrorResponse
from stack_chat_backend.models.messages import GenerateRequest, GenerateResponse
from stack_chat_backend.models.threads import (
    DisplayMessage,
    ThreadDetailResponse,
    ThreadListResponse,
    ThreadSummary,
)

__all__ = [
    "ApiModel",
    "DisplayMessage",
    "ErrorResponse",
    "GenerateRequest",
    "GenerateResponse",
    "ThreadDetailResponse",
    "ThreadListResponse",
    "ThreadSummary",
]
