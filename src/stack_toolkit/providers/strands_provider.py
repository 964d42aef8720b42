"""Provider that drives a Strands model one round-trip at a time.

Strands models already speak the Converse content-block format; this adapter
collects their stream events into a single ``ProviderResponse`` and leaves the
tool loop to ``CompletionInvoker``.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from stack_toolkit.models.messages import ToolCallPart, Usage
from stack_toolkit.prompts.formatters import ConverseFormatter
from stack_toolkit.providers.base import CompletionRequest, ProviderError, ProviderResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Callable

    from strands.models.model import Model

logger = logging.getLogger(__name__)


def bedrock_model_factory(
    model_id: str, region: str, temperature: float
) -> Callable[[int], Model]:
    """Return a factory creating Strands Bedrock models for a token budget."""

    def factory(max_tokens: int) -> Model:
        from strands.models import BedrockModel  # noqa: PLC0415

        return BedrockModel(
            model_id=model_id,
            region_name=region,
            temperature=temperature,
            max_tokens=max_tokens,
            streaming=True,
        )

    return factory


class StrandsModelProvider:
    """Adapter from a Strands ``Model`` stream to a single provider response."""

    name = "strands"
    supports_tools = True

    def __init__(self, model_factory: Callable[[int], Model]) -> None:
        self._model_factory = model_factory
        self._models: dict[int, Model] = {}
        self._lock = threading.Lock()
        self._formatter = ConverseFormatter()

    def _model(self, max_tokens: int) -> Model:
        # One model per token budget; Strands model config is mutable and shared.
        with self._lock:
            if max_tokens not in self._models:
                self._models[max_tokens] = self._model_factory(max_tokens)
            return self._models[max_tokens]

    async def complete(self, request: CompletionRequest) -> ProviderResponse:
        formatted = self._formatter.format(request.messages, request.tools)
        system = formatted.get("system") or []
        system_prompt = "\n\n".join(block["text"] for block in system) or None
        specs = [tool["toolSpec"] for tool in formatted.get("toolConfig", {}).get("tools", [])]
        model = self._model(request.max_tokens)
        try:
            return await collect_stream(
                model.stream(formatted["messages"], specs or None, system_prompt)
            )
        except ProviderError:
            raise
        except Exception as exc:
            msg = f"Strands model stream failed: {exc}"
            raise ProviderError(msg) from exc


async def collect_stream(events: AsyncIterable[dict[str, Any]]) -> ProviderResponse:
    """Fold Strands stream events into a provider response."""
    texts: list[str] = []
    tool_calls: list[ToolCallPart] = []
    current_tool: dict[str, Any] | None = None
    stop_reason: str | None = None
    usage = Usage()

    async for event in events:
        if "contentBlockStart" in event:
            start = event["contentBlockStart"].get("start") or {}
            if "toolUse" in start:
                current_tool = {**start["toolUse"], "input": ""}
        elif "contentBlockDelta" in event:
            delta = event["contentBlockDelta"].get("delta") or {}
            if "text" in delta:
                texts.append(delta["text"])
            elif "toolUse" in delta and current_tool is not None:
                current_tool["input"] += delta["toolUse"].get("input", "")
        elif "contentBlockStop" in event:
            if current_tool is not None:
                tool_calls.append(_finish_tool_call(current_tool))
                current_tool = None
        elif "messageStop" in event:
            stop_reason = event["messageStop"].get("stopReason")
        elif "metadata" in event:
            reported = event["metadata"].get("usage") or {}
            usage = Usage(
                input_tokens=int(reported.get("inputTokens", 0)),
                output_tokens=int(reported.get("outputTokens", 0)),
            )

    return ProviderResponse(
        text="".join(texts).strip(),
        tool_calls=tool_calls,
        stop_reason=stop_reason,
        usage=usage,
    )


def _finish_tool_call(tool: dict[str, Any]) -> ToolCallPart:
    raw_input = tool.get("input") or "{}"
    try:
        args = json.loads(raw_input)
    except json.JSONDecodeError as exc:
        msg = f"Model produced invalid JSON for tool '{tool.get('name')}': {exc}"
        raise ProviderError(msg) from exc
    return ToolCallPart(
        toolCallId=tool.get("toolUseId", ""),
        toolName=tool.get("name", ""),
        args=args if isinstance(args, dict) else {"value": args},
    )
