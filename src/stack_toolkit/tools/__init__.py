"""Tools package for the stack toolkit.

This package provides:
- ToolRegistry: registry of tool definitions and handlers
- define_tool: decorator pairing a Strands tool with its metadata
- execute_tool: validated, time-bounded tool execution
- build_tool_registry: the explicit table of built-in tools
"""

from stack_toolkit.tools.builtin import BUILTIN_TOOLS, build_tool_registry
from stack_toolkit.tools.context import (
    InvocationContext,
    get_invocation_context,
    invocation_context,
)
from stack_toolkit.tools.executor import execute_tool
from stack_toolkit.tools.registry import (
    RegisteredTool,
    ToolDefinition,
    ToolRegistry,
    define_tool,
    validate_tool_args,
)

__all__ = [
    "BUILTIN_TOOLS",
    "InvocationContext",
    "RegisteredTool",
    "ToolDefinition",
    "ToolRegistry",
    "build_tool_registry",
    "define_tool",
    "execute_tool",
    "get_invocation_context",
    "invocation_context",
    "validate_tool_args",
]
