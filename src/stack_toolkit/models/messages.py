"""Conversation message models shared by prompts, providers and storage."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

Role = Literal["system", "user", "assistant"]


class ContentModel(BaseModel):
    """Base model with camelCase aliases enabled."""

    model_config = ConfigDict(populate_by_name=True)


class TextPart(ContentModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


class ToolCallPart(ContentModel):
    """A tool invocation requested by the model."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(ContentModel):
    """The result (or error payload) of a tool invocation."""

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    result: Any = None
    is_error: bool = Field(default=False, alias="isError")


ContentPart = Annotated[TextPart | ToolCallPart | ToolResultPart, Field(discriminator="type")]


class Message(ContentModel):
    """A single conversation turn."""

    role: Role
    content: str | list[ContentPart]

    def text(self) -> str:
        """Return the plain text of the message, ignoring tool parts."""
        if isinstance(self.content, str):
            return self.content
        return "\n\n".join(part.text for part in self.content if isinstance(part, TextPart))

    def parts(self) -> list[TextPart | ToolCallPart | ToolResultPart]:
        """Return content as a list of parts."""
        if isinstance(self.content, str):
            return [TextPart(text=self.content)] if self.content else []
        return list(self.content)

    def has_tool_parts(self) -> bool:
        """Return True when the message carries tool calls or results."""
        return any(not isinstance(part, TextPart) for part in self.parts())


class Usage(BaseModel, frozen=True):
    """Token usage reported by a provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Sum of input and output tokens."""
        return self.input_tokens + self.output_tokens

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


_messages_adapter = TypeAdapter(list[Message])


def system_message(text: str) -> Message:
    """Build a system message."""
    return Message(role="system", content=text)


def user_message(text: str) -> Message:
    """Build a user message."""
    return Message(role="user", content=text)


def dump_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Serialize messages into JSON-safe dictionaries."""
    return [message.model_dump(mode="json", by_alias=True) for message in messages]


def load_messages(data: Any) -> list[Message]:
    """Parse stored message dictionaries back into models."""
    if not data:
        return []
    return _messages_adapter.validate_python(data)
