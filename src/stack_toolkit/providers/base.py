"""Provider-neutral completion request and response types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from stack_toolkit.models.messages import ToolCallPart, Usage

if TYPE_CHECKING:
    from stack_toolkit.models.messages import Message
    from stack_toolkit.tools.registry import ToolDefinition


class ProviderError(RuntimeError):
    """The model provider failed, timed out or returned an unusable response."""


@dataclass(frozen=True)
class CompletionRequest:
    """One provider round-trip."""

    messages: list[Message]
    tools: tuple[ToolDefinition, ...] = ()
    max_tokens: int = 2048
    temperature: float = 0.5
    top_p: float = 0.9


@dataclass(frozen=True)
class ProviderResponse:
    """Normalized provider output for one round-trip."""

    text: str = ""
    tool_calls: list[ToolCallPart] = field(default_factory=list)
    stop_reason: str | None = None
    usage: Usage = field(default_factory=Usage)

    @property
    def wants_tools(self) -> bool:
        """True when the model asked for at least one tool call."""
        return bool(self.tool_calls)


class ChatProvider(Protocol):
    """A model provider able to complete one request."""

    name: str
    supports_tools: bool

    async def complete(self, request: CompletionRequest) -> ProviderResponse:
        """Run one request/response round-trip.

        Raises:
            ProviderError: On transport, service or decoding failure.
        """
        ...
