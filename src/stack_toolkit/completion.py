"""Completion invoker: one logical turn, possibly several tool round-trips."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stack_toolkit.models.messages import Message, TextPart, Usage
from stack_toolkit.providers.base import CompletionRequest, ProviderError
from stack_toolkit.tools.executor import execute_tool
from stack_toolkit.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from stack_toolkit.providers.base import ChatProvider, ProviderResponse
    from stack_toolkit.tools.registry import ToolDefinition

logger = logging.getLogger(__name__)

STEP_LIMIT_MESSAGE = (
    "I could not finish this request within the allowed number of tool steps. "
    "Please try a narrower question."
)


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of one generation turn."""

    text: str
    new_messages: list[Message] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    steps: int = 0
    stopped_by_step_limit: bool = False

    def assistant_turn(self) -> Message:
        """Collapse the generated messages into the assistant turn to persist."""
        return merge_turn(self.new_messages, self.text)


def merge_turn(new_messages: list[Message], final_text: str) -> Message:
    """Merge tool round-trips and the final answer into one assistant message.

    Without tool activity the result is a plain-text assistant message.
    """
    if not any(message.has_tool_parts() for message in new_messages):
        return Message(role="assistant", content=final_text)
    parts = [part for message in new_messages for part in message.parts()]
    if not parts or not isinstance(parts[-1], TextPart) or parts[-1].text != final_text:
        parts.append(TextPart(text=final_text))
    return Message(role="assistant", content=parts)


class CompletionInvoker:
    """Drive provider round-trips and tool execution up to a step budget."""

    def __init__(
        self,
        provider: ChatProvider,
        registry: ToolRegistry | None = None,
        *,
        max_steps: int = 25,
        max_tokens: int = 2048,
        temperature: float = 0.5,
        top_p: float = 0.9,
        timeout: float | None = 120.0,
        tool_timeout: float | None = 30.0,
    ) -> None:
        if max_steps < 1:
            msg = "max_steps must be at least 1"
            raise ValueError(msg)
        self._provider = provider
        self._registry = registry or ToolRegistry()
        self._max_steps = max_steps
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._top_p = top_p
        self._timeout = timeout
        self._tool_timeout = tool_timeout

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def max_steps(self) -> int:
        return self._max_steps

    @property
    def tools(self) -> tuple[ToolDefinition, ...]:
        """Tools offered to the model; empty when the provider cannot call tools."""
        if not self._provider.supports_tools:
            return ()
        return tuple(self._registry.definitions())

    async def run(self, messages: list[Message]) -> CompletionResult:
        """Generate the assistant's answer for ``messages``.

        Raises:
            ProviderError: If the provider fails, times out or returns nothing.
        """
        tools = self.tools
        working = list(messages)
        new_messages: list[Message] = []
        usage = Usage()
        last_text = ""

        for step in range(1, self._max_steps + 1):
            response = await self._complete(
                CompletionRequest(
                    messages=working,
                    tools=tools,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                    top_p=self._top_p,
                )
            )
            usage += response.usage
            if response.text:
                last_text = response.text

            if not response.wants_tools:
                if not response.text:
                    msg = f"Model returned an empty response (stop_reason={response.stop_reason})"
                    raise ProviderError(msg)
                new_messages.append(Message(role="assistant", content=response.text))
                return CompletionResult(
                    text=response.text, new_messages=new_messages, usage=usage, steps=step
                )

            call_parts = [TextPart(text=response.text)] if response.text else []
            call_parts.extend(response.tool_calls)
            results = [
                await execute_tool(self._registry, call, timeout=self._tool_timeout)
                for call in response.tool_calls
            ]
            round_trip = [
                Message(role="assistant", content=call_parts),
                Message(role="user", content=results),
            ]
            working.extend(round_trip)
            new_messages.extend(round_trip)
            logger.info(
                "Tool step %d/%d: %s",
                step,
                self._max_steps,
                ", ".join(call.tool_name for call in response.tool_calls),
            )

        logger.warning("Tool step budget of %d exhausted without a final answer", self._max_steps)
        return CompletionResult(
            text=last_text or STEP_LIMIT_MESSAGE,
            new_messages=new_messages,
            usage=usage,
            steps=self._max_steps,
            stopped_by_step_limit=True,
        )

    async def _complete(self, request: CompletionRequest) -> ProviderResponse:
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._provider.complete(request), timeout=self._timeout
            )
        except TimeoutError as exc:
            msg = f"Provider '{self._provider.name}' timed out after {self._timeout}s"
            raise ProviderError(msg) from exc
        logger.debug(
            "Provider %s answered in %.0fms (stop_reason=%s)",
            self._provider.name,
            (time.monotonic() - started) * 1000,
            response.stop_reason,
        )
        return response
