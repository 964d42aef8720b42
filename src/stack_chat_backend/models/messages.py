"""Generate endpoint payloads."""

from __future__ import annotations

from pydantic import Field

from stack_chat_backend.models.base import ApiModel


class GenerateRequest(ApiModel):
    """Request payload for generating the next assistant turn."""

    text: str = Field(min_length=1)
    id: str | None = Field(default=None, min_length=1, max_length=200)
    is_public: bool = Field(default=False, alias="isPublic")


class GenerateResponse(ApiModel):
    generated_text: str = Field(alias="generatedText")
    generated_title: str = Field(alias="generatedTitle")
    id: str
