"""Pydantic models for the stack toolkit."""

from stack_toolkit.models.messages import (
    ContentPart,
    Message,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    Usage,
    dump_messages,
    load_messages,
    system_message,
    user_message,
)
from stack_toolkit.models.settings import RuntimeConfig, Settings, load_settings

__all__ = [
    "ContentPart",
    "Message",
    "Role",
    "RuntimeConfig",
    "Settings",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "Usage",
    "dump_messages",
    "load_messages",
    "load_settings",
    "system_message",
    "user_message",
]
