"""Thread-related API models."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from stack_chat_backend.models.base import ApiModel


class DisplayMessage(ApiModel):
    """A user or assistant turn flattened to text."""

    role: Literal["user", "assistant"]
    content: str


class ThreadDetailResponse(ApiModel):
    """Retrieval view of a single thread."""

    id: str
    title: str
    messages: list[DisplayMessage]
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class ThreadSummary(ApiModel):
    """Thread summary payload for list responses."""

    id: str
    title: str
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class ThreadListResponse(ApiModel):
    threads: list[ThreadSummary]
