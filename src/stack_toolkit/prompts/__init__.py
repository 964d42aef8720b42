"""Prompt assembly and provider-specific formatting."""

from stack_toolkit.prompts.assembler import (
    TOOL_USAGE_INSTRUCTIONS,
    assemble_messages,
    build_system_prompt,
    render_tool_catalog,
    split_system,
)
from stack_toolkit.prompts.formatters import (
    ConverseFormatter,
    LlamaPromptFormatter,
    MessageFormatter,
    compact_part,
    preview_result,
    tool_specs,
)

__all__ = [
    "TOOL_USAGE_INSTRUCTIONS",
    "ConverseFormatter",
    "LlamaPromptFormatter",
    "MessageFormatter",
    "assemble_messages",
    "build_system_prompt",
    "compact_part",
    "preview_result",
    "render_tool_catalog",
    "split_system",
    "tool_specs",
]
