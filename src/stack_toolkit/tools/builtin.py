"""Built-in tools and the explicit registration table."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from stack_toolkit.tools.context import get_invocation_context
from stack_toolkit.tools.registry import ToolRegistry, define_tool

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stack_toolkit.tools.registry import RegisteredTool

logger = logging.getLogger(__name__)

OPERATIONS = (
    "add",
    "subtract",
    "multiply",
    "divide",
    "power",
    "sqrt",
    "modulo",
    "abs",
    "ceil",
    "floor",
    "round",
)
_OPERATION_ALIASES = {
    "+": "add",
    "-": "subtract",
    "*": "multiply",
    "x": "multiply",
    "/": "divide",
    "^": "power",
    "**": "power",
    "%": "modulo",
    "mod": "modulo",
}
_BINARY = {"add", "subtract", "multiply", "divide", "power", "modulo"}


def _compute(op: str, a: float, b: float | None) -> float:
    if op in _BINARY and b is None:
        msg = f"Operation '{op}' requires two operands"
        raise ValueError(msg)
    if op in ("divide", "modulo") and b == 0:
        msg = f"{op.capitalize()} by zero is not allowed"
        raise ValueError(msg)
    results = {
        "add": lambda: a + b,
        "subtract": lambda: a - b,
        "multiply": lambda: a * b,
        "divide": lambda: a / b,
        "power": lambda: math.pow(a, b),
        "modulo": lambda: math.fmod(a, b),
        "abs": lambda: abs(a),
        "ceil": lambda: math.ceil(a),
        "floor": lambda: math.floor(a),
        "round": lambda: round(a),
    }
    if op == "sqrt":
        if a < 0:
            msg = "Cannot calculate square root of negative number"
            raise ValueError(msg)
        return math.sqrt(a)
    if op not in results:
        msg = f"Unknown operation: {op}. Supported operations: {', '.join(OPERATIONS)}"
        raise ValueError(msg)
    return results[op]()


@define_tool(
    name="calculate",
    description=(
        "Performs mathematical calculations. Use this tool when you need accurate "
        "arithmetic results. Supports operations: " + ", ".join(OPERATIONS) + "."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "description": "The mathematical operation to perform",
                "enum": [*OPERATIONS, *_OPERATION_ALIASES],
            },
            "a": {
                "type": "number",
                "description": "The first operand (or the only operand for unary operations)",
            },
            "b": {
                "type": ["number", "null"],
                "description": "The second operand (required for binary operations)",
            },
        },
        "required": ["operation", "a"],
    },
)
def calculate(operation: str, a: float, b: float | None = None) -> dict[str, Any]:
    """Perform an arithmetic operation.

    Args:
        operation: The operation name or symbol.
        a: First operand.
        b: Second operand for binary operations.
    """
    op = _OPERATION_ALIASES.get(operation.strip().lower(), operation.strip().lower())
    try:
        result = _compute(op, a, b)
    except (ValueError, OverflowError) as exc:
        return {"success": False, "error": str(exc), "operation": op}
    return {"success": True, "result": result, "operation": op}


@define_tool(
    name="update_thread_cost",
    description=(
        "Adds a cost increment (in dollars) to the total cost of the current "
        "conversation thread. Use this tool to track API usage costs."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "costIncrement": {
                "type": "number",
                "description": "The cost amount to add to the current thread cost, in dollars",
            },
        },
        "required": ["costIncrement"],
    },
)
def update_thread_cost(costIncrement: float) -> dict[str, Any]:  # noqa: N803
    """Record a cost increment for the current thread.

    Args:
        costIncrement: Amount to add, in dollars.
    """
    context = get_invocation_context()
    if context is None:
        msg = "No active thread to record cost against"
        raise RuntimeError(msg)
    pending = context.record_cost(costIncrement)
    logger.info("Thread %s cost increment recorded: +%s", context.thread_id, costIncrement)
    return {
        "success": True,
        "threadId": context.thread_id,
        "costIncrement": costIncrement,
        "pendingCost": pending,
    }


BUILTIN_TOOLS: tuple[RegisteredTool, ...] = (calculate, update_thread_cost)


def build_tool_registry(enabled: Iterable[str] | None = None) -> ToolRegistry:
    """Build the tool registry from the explicit built-in table.

    Args:
        enabled: Tool names to include. ``None`` or empty includes every tool.

    Raises:
        ValueError: If ``enabled`` names a tool that does not exist.
    """
    wanted = list(enabled or [])
    known = {entry.name for entry in BUILTIN_TOOLS}
    unknown = [name for name in wanted if name not in known]
    if unknown:
        msg = f"Unknown tools in ENABLED_TOOLS: {unknown}"
        raise ValueError(msg)
    selected = [entry for entry in BUILTIN_TOOLS if not wanted or entry.name in wanted]
    return ToolRegistry(selected)
