"""Tool declarations for promptthread."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, NoReturn, TypeVar, cast

from pydantic import BaseModel, TypeAdapter

ModelT = TypeVar("ModelT", bound=BaseModel)

ToolHandler = Callable[..., Any]


def _to_snake_case(name: str) -> str:
    return "".join(["_" + c.lower() if c.isupper() else c for c in name]).lstrip("_")


def _callable_name(func: Callable[..., Any]) -> str:
    name = getattr(func, "__name__", None)
    if isinstance(name, str) and name:
        return name
    return func.__class__.__name__


def _raise_value_error(message: str, *, cause: Exception | None = None) -> NoReturn:
    if cause is None:
        raise ValueError(message)
    raise ValueError(message) from cause


def _schema_from_annotation(annotation: Any) -> dict[str, Any]:
    """Convert Python type annotations to JSON schema via Pydantic."""
    if annotation is inspect.Parameter.empty:
        annotation = Any
    try:
        return TypeAdapter(annotation).json_schema()
    except Exception as exc:
        _raise_value_error(f"Failed to build JSON schema for type: {annotation!r}", cause=exc)


def _schema_from_signature(signature: inspect.Signature) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param.name] = _schema_from_annotation(param.annotation)
        if param.default is param.empty:
            required.append(param.name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


@dataclass(frozen=True)
class Tool:
    """A function the model may ask to call: its declaration plus an optional local handler."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    handler: ToolHandler | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            _raise_value_error("Tool name cannot be empty.")

    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def declaration(self) -> Tool:
        if self.handler is None:
            return self
        return replace(self, handler=None)

    def with_handler(self, handler: ToolHandler) -> Tool:
        return replace(self, handler=handler)

    @classmethod
    def from_callable(
        cls,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Tool:
        tool_name = name or _to_snake_case(_callable_name(func))
        tool_description = description if description is not None else (inspect.getdoc(func) or "")
        parameters = _schema_from_signature(inspect.signature(func))
        return cls(name=tool_name, description=tool_description, parameters=parameters, handler=func)

    @classmethod
    def from_schema(cls, schema: Mapping[str, Any]) -> Tool:
        """Accept ``{"type": "function", "function": {...}}`` or a bare function definition."""
        if "type" in schema:
            if schema.get("type") != "function":
                _raise_value_error("Tool schema must have type='function'.")
            function = schema.get("function")
            if not isinstance(function, Mapping):
                raise TypeError("Tool schema must include a 'function' object.")
        else:
            function = schema
        name = function.get("name")
        if not isinstance(name, str):
            raise TypeError("Tool schema must include a non-empty function name.")
        return cls(
            name=name,
            description=function.get("description") or "",
            parameters=dict(function.get("parameters") or {"type": "object", "properties": {}}),
        )


def to_tool(item: Tool | Mapping[str, Any] | Callable[..., Any]) -> Tool:
    if isinstance(item, Tool):
        return item
    if isinstance(item, Mapping):
        return Tool.from_schema(item)
    if callable(item):
        return Tool.from_callable(item)
    raise TypeError(f"Unsupported tool type: {type(item)}")


def make_tool(name: str, description: str, parameters: Mapping[str, Any]) -> Tool:
    """Build a schema-only declaration from its parts."""
    return Tool(name=name, description=description, parameters=dict(parameters))


def schema_from_model(
    model: type[ModelT],
    *,
    name: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Create a tool schema from a Pydantic model without making it runnable."""
    model_name = name or _to_snake_case(model.__name__)
    model_description = description if description is not None else (model.__doc__ or "")
    return Tool(name=model_name, description=model_description, parameters=model.model_json_schema()).schema()


def tool_from_model(
    model: type[ModelT],
    handler: Callable[[ModelT], Any],
    *,
    name: str | None = None,
    description: str | None = None,
) -> Tool:
    """Create a runnable Tool that validates inputs via a Pydantic model."""
    tool_name = name or _to_snake_case(model.__name__)
    tool_description = description if description is not None else (model.__doc__ or "")

    def _handler(**kwargs: Any) -> Any:
        return handler(model(**kwargs))

    return Tool(name=tool_name, description=tool_description, parameters=model.model_json_schema(), handler=_handler)


def tool(
    func: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Tool | Callable[..., Tool]:
    """Decorator to convert a function into a Tool instance."""

    def _create_tool(f: Callable[..., Any]) -> Tool:
        return Tool.from_callable(f, name=name, description=description)

    if func is None:
        return _create_tool
    return cast(Tool, _create_tool(func))
