"""System prompt construction and conversation assembly."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from stack_toolkit.models.messages import Message, system_message, user_message

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stack_toolkit.tools.registry import ToolDefinition

TOOL_USAGE_INSTRUCTIONS = """When a tool can answer part of the request more accurately than you can, call it.
- Call tools only with the parameters described in their schema.
- Wait for the tool result before relying on it in your answer.
- If a tool returns an error, correct the arguments or explain the problem to the user.
- Do not mention tool names to the user unless they ask how you got a result."""


def render_tool_catalog(definitions: Iterable[ToolDefinition]) -> str:
    """Render tool definitions as a machine-readable JSON catalog."""
    catalog = [definition.to_dict() for definition in definitions]
    return json.dumps(catalog, indent=2, ensure_ascii=True)


def build_system_prompt(base_prompt: str, definitions: Iterable[ToolDefinition] = ()) -> str:
    """Combine the base instructions with the tool catalog.

    The tool section is omitted entirely when no tools are registered.
    """
    definitions = list(definitions)
    prompt = base_prompt.strip()
    if not definitions:
        return prompt
    return (
        f"{prompt}\n\n## Available tools\n\n"
        f"{render_tool_catalog(definitions)}\n\n"
        f"{TOOL_USAGE_INSTRUCTIONS}"
    )


def assemble_messages(
    system_prompt: str,
    history: Iterable[Message],
    user_text: str | None = None,
) -> list[Message]:
    """Build the ordered message list for a completion.

    Always starts with exactly one system message; system messages found in
    ``history`` are dropped so only the freshly built prompt is sent.
    """
    messages = [system_message(system_prompt)]
    messages.extend(message for message in history if message.role != "system")
    if user_text is not None:
        messages.append(user_message(user_text))
    return messages


def split_system(messages: Iterable[Message]) -> tuple[str, list[Message]]:
    """Separate system text from the conversation turns."""
    system_parts: list[str] = []
    turns: list[Message] = []
    for message in messages:
        if message.role == "system":
            text = message.text()
            if text:
                system_parts.append(text)
        else:
            turns.append(message)
    return "\n\n".join(system_parts), turns
