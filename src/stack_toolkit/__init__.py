from stack_toolkit.completion import (
    STEP_LIMIT_MESSAGE,
    CompletionInvoker,
    CompletionResult,
    merge_turn,
)
from stack_toolkit.config import initialize_runtime_config
from stack_toolkit.models import (
    Message,
    RuntimeConfig,
    Settings,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    Usage,
    load_settings,
)
from stack_toolkit.prompts import (
    ConverseFormatter,
    LlamaPromptFormatter,
    assemble_messages,
    build_system_prompt,
)
from stack_toolkit.providers import ChatProvider, ProviderError, create_provider
from stack_toolkit.titles import FALLBACK_TITLE, TitleGenerator, TitleResult
from stack_toolkit.tools import (
    InvocationContext,
    ToolDefinition,
    ToolRegistry,
    build_tool_registry,
    execute_tool,
    invocation_context,
)

__all__ = [
    "FALLBACK_TITLE",
    "STEP_LIMIT_MESSAGE",
    "ChatProvider",
    "CompletionInvoker",
    "CompletionResult",
    "ConverseFormatter",
    "InvocationContext",
    "LlamaPromptFormatter",
    "Message",
    "ProviderError",
    "RuntimeConfig",
    "Settings",
    "TextPart",
    "TitleGenerator",
    "TitleResult",
    "ToolCallPart",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResultPart",
    "Usage",
    "assemble_messages",
    "build_system_prompt",
    "build_tool_registry",
    "create_provider",
    "execute_tool",
    "initialize_runtime_config",
    "invocation_context",
    "load_settings",
    "merge_turn",
]
