"""Provider-specific request formatting.

Each formatter turns the canonical message list into the shape a provider
family expects, so swapping providers never touches the orchestrator.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Protocol

from stack_toolkit.models.messages import TextPart, ToolCallPart, ToolResultPart
from stack_toolkit.prompts.assembler import split_system

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stack_toolkit.models.messages import Message
    from stack_toolkit.tools.registry import ToolDefinition

RESULT_PREVIEW_CHARS = 200


class MessageFormatter(Protocol):
    """Serialize role-tagged messages for one provider family."""

    def format(
        self, messages: list[Message], tools: Iterable[ToolDefinition] = ()
    ) -> dict[str, Any]:
        """Return the provider request fragment for ``messages``."""
        ...


def preview_result(result: Any) -> str:
    """Short text preview of a tool result."""
    if result is None:
        return "No result"
    text = result if isinstance(result, str) else json.dumps(result, default=str)
    if len(text) > RESULT_PREVIEW_CHARS:
        return text[:RESULT_PREVIEW_CHARS] + "..."
    return text


def compact_part(part: TextPart | ToolCallPart | ToolResultPart) -> str | None:
    """Render a content part as plain text, dropping tool calls."""
    if isinstance(part, TextPart):
        return part.text or None
    if isinstance(part, ToolResultPart):
        return f"[Tool result: {preview_result(part.result)}]"
    return None


def tool_specs(tools: Iterable[ToolDefinition]) -> list[dict[str, Any]]:
    """Tool specifications in the Bedrock Converse / Strands shape."""
    return [
        {
            "name": definition.name,
            "description": definition.description,
            "inputSchema": {"json": definition.parameters},
        }
        for definition in tools
    ]


class ConverseFormatter:
    """Format messages as Bedrock Converse (and Strands) content blocks.

    Tool calls become ``toolUse`` blocks in assistant turns and tool results
    become ``toolResult`` blocks in user turns; consecutive blocks for the same
    role are merged so roles alternate. With ``compact_tools`` tool parts are
    reduced to short text previews, which keeps requests valid when no tool
    configuration is sent.
    """

    def __init__(self, *, compact_tools: bool = False) -> None:
        self._compact_tools = compact_tools

    def format(
        self, messages: list[Message], tools: Iterable[ToolDefinition] = ()
    ) -> dict[str, Any]:
        system_text, turns = split_system(messages)
        tools = list(tools)
        compact = self._compact_tools or not tools
        request: dict[str, Any] = {"messages": self.format_turns(turns, compact=compact)}
        if system_text:
            request["system"] = [{"text": system_text}]
        if tools:
            request["toolConfig"] = {"tools": [{"toolSpec": spec} for spec in tool_specs(tools)]}
        return request

    def format_turns(self, turns: Iterable[Message], *, compact: bool) -> list[dict[str, Any]]:
        formatted: list[dict[str, Any]] = []
        for message in turns:
            for role, block in self._blocks(message, compact):
                if formatted and formatted[-1]["role"] == role:
                    formatted[-1]["content"].append(block)
                else:
                    formatted.append({"role": role, "content": [block]})
        return formatted

    def _blocks(self, message: Message, compact: bool) -> list[tuple[str, dict[str, Any]]]:
        blocks: list[tuple[str, dict[str, Any]]] = []
        for part in message.parts():
            if compact:
                text = compact_part(part)
                if text:
                    blocks.append((message.role, {"text": text}))
            elif isinstance(part, TextPart):
                if part.text:
                    blocks.append((message.role, {"text": part.text}))
            elif isinstance(part, ToolCallPart):
                blocks.append(
                    (
                        "assistant",
                        {
                            "toolUse": {
                                "toolUseId": part.tool_call_id,
                                "name": part.tool_name,
                                "input": part.args,
                            }
                        },
                    )
                )
            else:
                blocks.append(("user", {"toolResult": _tool_result_block(part)}))
        return blocks


def _tool_result_block(part: ToolResultPart) -> dict[str, Any]:
    if isinstance(part.result, dict):
        content = [{"json": part.result}]
    else:
        content = [{"text": "No result" if part.result is None else str(part.result)}]
    return {
        "toolUseId": part.tool_call_id,
        "content": content,
        "status": "error" if part.is_error else "success",
    }


_LLAMA_SPECIAL_TOKENS = re.compile(
    r"<\|begin_of_text\|>|<\|start_header_id\|>|<\|end_header_id\|>|<\|eot_id\|>"
)
_REPLAY_MARKERS = (
    re.compile(r"Your last message was", re.IGNORECASE),
    re.compile(r"\buser\b\s*\n", re.IGNORECASE),
    re.compile(r"\bassistant\b\s*\n", re.IGNORECASE),
    re.compile(r"\bsystem\b\s*\n", re.IGNORECASE),
)


class LlamaPromptFormatter:
    """Format messages as a Llama 3 header-token prompt string.

    Tool parts are rendered as text; this format carries no native tool
    protocol.
    """

    def format(
        self, messages: list[Message], tools: Iterable[ToolDefinition] = ()
    ) -> dict[str, Any]:
        system_text, turns = split_system(messages)
        prompt = "<|begin_of_text|>"
        if system_text:
            prompt += _llama_block("system", system_text)
        for message in turns:
            text = "\n\n".join(filter(None, (compact_part(part) for part in message.parts())))
            if text:
                prompt += _llama_block(message.role, text)
        prompt += "<|start_header_id|>assistant<|end_header_id|>\n\n"
        return {"prompt": prompt}

    @staticmethod
    def clean_output(text: str) -> str:
        """Strip header tokens and drop replayed conversation from a generation."""
        cleaned = _LLAMA_SPECIAL_TOKENS.sub("", text)
        if any(marker.search(cleaned) for marker in _REPLAY_MARKERS):
            for paragraph in reversed(re.split(r"\n\n+", cleaned)):
                candidate = paragraph.strip()
                if len(candidate) > 20 and not any(
                    marker.search(candidate) for marker in _REPLAY_MARKERS
                ):
                    cleaned = candidate
                    break
        return cleaned.strip()


def _llama_block(role: str, text: str) -> str:
    return f"<|start_header_id|>{role}<|end_header_id|>\n\n{text}<|eot_id|>"
