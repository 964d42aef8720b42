"""Tool execution with argument validation, timeouts and error conversion."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from stack_toolkit.models.messages import ToolCallPart, ToolResultPart
from stack_toolkit.tools.registry import validate_tool_args

if TYPE_CHECKING:
    from stack_toolkit.tools.registry import RegisteredTool, ToolRegistry

logger = logging.getLogger(__name__)


def _error_result(call: ToolCallPart, message: str, category: str) -> ToolResultPart:
    return ToolResultPart(
        toolCallId=call.tool_call_id,
        toolName=call.tool_name,
        result={"error": message, "category": category, "tool": call.tool_name},
        isError=True,
    )


async def _invoke(entry: RegisteredTool, args: dict[str, Any]) -> Any:
    result = await asyncio.to_thread(entry.handler, **args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def execute_tool(
    registry: ToolRegistry,
    call: ToolCallPart,
    timeout: float | None = None,
) -> ToolResultPart:
    """Execute a tool call and return its result part.

    Never raises for tool-level problems: unknown tools, invalid arguments,
    handler exceptions and timeouts all become error results the model can
    read and react to.
    """
    entry = registry.get(call.tool_name)
    if entry is None:
        logger.warning("Unknown tool requested: %s", call.tool_name)
        return _error_result(call, f"Unknown tool: {call.tool_name}", "unknown_tool")

    try:
        validate_tool_args(entry.definition.input_schema, call.args)
    except ValueError as exc:
        logger.warning("Tool %s rejected arguments: %s", call.tool_name, exc)
        return _error_result(call, f"Invalid arguments: {exc}", "user_input_error")

    logger.info("Executing tool %s (args: %s)", call.tool_name, sorted(call.args))
    try:
        result = await asyncio.wait_for(_invoke(entry, dict(call.args)), timeout=timeout)
    except TimeoutError:
        logger.warning("Tool %s timed out after %ss", call.tool_name, timeout)
        return _error_result(
            call,
            f"Tool '{call.tool_name}' timed out after {timeout} seconds",
            "timeout_error",
        )
    except Exception as exc:
        logger.exception("Tool %s execution failed", call.tool_name)
        return _error_result(call, f"Tool execution failed: {exc}", "execution_error")

    return ToolResultPart(toolCallId=call.tool_call_id, toolName=call.tool_name, result=result)
