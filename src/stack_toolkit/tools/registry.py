from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft7Validator, SchemaError, ValidationError

JSONSchema = dict[str, Any]


def _format_validation_error(error: ValidationError) -> str:
    path = ".".join(str(part) for part in error.path)
    if path:
        return f"{path}: {error.message}"
    return error.message


def validate_tool_args(schema: Mapping[str, Any] | None, args: Mapping[str, Any]) -> None:
    """Validate tool arguments against a Draft 7 JSON schema.

    Raises:
        ValueError: With every violation, ordered by argument path.
    """
    if not isinstance(args, Mapping):
        message = "Tool arguments must be an object"
        raise ValueError(message)
    if not schema:
        return
    errors = sorted(
        Draft7Validator(schema).iter_errors(dict(args)),
        key=lambda error: [str(part) for part in error.path],
    )
    if errors:
        raise ValueError("; ".join(_format_validation_error(error) for error in errors))


@dataclass(frozen=True)
class ToolDefinition:
    """Metadata describing a tool in the registry."""

    name: str
    description: str
    input_schema: JSONSchema | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            msg = "ToolDefinition.name must be non-empty"
            raise ValueError(msg)
        if not self.description.strip():
            msg = "ToolDefinition.description must be non-empty"
            raise ValueError(msg)
        if self.input_schema is not None:
            try:
                Draft7Validator.check_schema(self.input_schema)
            except SchemaError as exc:
                msg = f"ToolDefinition.input_schema is invalid: {exc.message}"
                raise ValueError(msg) from exc

    @property
    def parameters(self) -> JSONSchema:
        """Input schema, defaulting to an empty object schema."""
        return self.input_schema or {"type": "object", "properties": {}}

    def to_dict(self) -> dict[str, Any]:
        """Catalog entry shown to the model."""
        return {"name": self.name, "description": self.description, "parameters": self.parameters}

@dataclass(frozen=True)
class RegisteredTool:
    """Tool definition paired with its callable implementation."""

    definition: ToolDefinition
    handler: Callable[..., Any]

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """Registry for tools and their metadata definitions."""

    def __init__(self, tools: Iterable[RegisteredTool] = ()) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        for entry in tools:
            self.register(entry.definition, entry.handler)

    def register(self, definition: ToolDefinition, handler: Callable[..., Any]) -> None:
        """Register a tool definition and handler."""
        if definition.name in self._tools:
            message = f"Tool already registered: {definition.name}"
            raise ValueError(message)
        self._tools[definition.name] = RegisteredTool(definition=definition, handler=handler)

    def get(self, name: str) -> RegisteredTool | None:
        """Get a registered tool by name."""
        return self._tools.get(name)

    def names(self) -> list[str]:
        """Registered tool names in registration order."""
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        """Registered tool definitions in registration order."""
        return [entry.definition for entry in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


def _schema_from_tool_spec(tool_func: Any) -> JSONSchema | None:
    spec = getattr(tool_func, "tool_spec", None)
    if not isinstance(spec, Mapping):
        return None
    input_schema = spec.get("inputSchema") or {}
    schema = input_schema.get("json") if isinstance(input_schema, Mapping) else None
    return dict(schema) if isinstance(schema, Mapping) else None


def define_tool(
    *,
    name: str | None = None,
    description: str | None = None,
    input_schema: JSONSchema | None = None,
) -> Callable[[Callable[..., Any]], RegisteredTool]:
    """Decorator that wraps a function as a Strands tool and pairs it with metadata.

    The input schema is derived from the Strands ``tool_spec`` when not given.
    Registration is explicit: pass the returned ``RegisteredTool`` to a
    ``ToolRegistry``.
    """

    def decorator(func: Callable[..., Any]) -> RegisteredTool:
        from strands import tool as strands_tool  # noqa: PLC0415

        tool_func = strands_tool(func)
        tool_name = name or getattr(func, "__name__", "").strip()
        tool_description = description or (getattr(func, "__doc__", "") or "").strip()
        if not tool_description:
            msg = "Tool description must be provided or via docstring"
            raise ValueError(msg)
        definition = ToolDefinition(
            name=tool_name,
            description=tool_description,
            input_schema=input_schema or _schema_from_tool_spec(tool_func),
        )
        return RegisteredTool(definition=definition, handler=tool_func)

    return decorator
