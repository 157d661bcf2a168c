"""Name-keyed tool declarations and handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from promptthread.core.errors import DuplicateToolError, UnknownToolError
from promptthread.tools.schema import Tool, ToolHandler, to_tool

logger = logging.getLogger(__name__)

ToolLike = Tool | Mapping[str, Any] | Callable[..., Any]


class ToolRegistry:
    """Declarations advertised to the model and the local handlers that answer them.

    Declarations and handlers are tracked separately: a declaration may be
    advertised without a local handler, and a handler may be bound for a name
    whose declaration is set later. With ``allow_overwrite`` (the default)
    the last registration for a name wins.
    """

    def __init__(self, *, allow_overwrite: bool = True) -> None:
        self.allow_overwrite = allow_overwrite
        self._declarations: dict[str, Tool] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def __len__(self) -> int:
        return len(self._declarations)

    def __contains__(self, name: object) -> bool:
        return name in self._declarations

    @property
    def names(self) -> list[str]:
        return list(self._declarations)

    @property
    def declarations(self) -> list[Tool]:
        return list(self._declarations.values())

    @property
    def handlers(self) -> dict[str, ToolHandler]:
        return dict(self._handlers)

    def payload(self) -> list[dict[str, Any]] | None:
        schemas = [declaration.schema() for declaration in self._declarations.values()]
        return schemas or None

    def register(self, item: ToolLike) -> Tool:
        """Add or replace a declaration. A handler carried by ``item`` is bound too."""
        tool_obj = to_tool(item)
        if tool_obj.name in self._declarations:
            if not self.allow_overwrite:
                raise DuplicateToolError(tool_obj.name)
            logger.debug("tool %s re-registered; replacing previous declaration", tool_obj.name)
        self._declarations[tool_obj.name] = tool_obj.declaration()
        if tool_obj.handler is not None:
            self._bind(tool_obj.name, tool_obj.handler)
        return tool_obj

    def register_with_handler(self, item: ToolLike, handler: ToolHandler) -> Tool:
        tool_obj = to_tool(item).with_handler(handler)
        return self.register(tool_obj)

    def set_tools(self, items: Iterable[ToolLike]) -> None:
        """Replace every declaration. Handler bindings are left as they are."""
        tools = [to_tool(item) for item in items]
        if not self.allow_overwrite:
            seen: set[str] = set()
            for tool_obj in tools:
                if tool_obj.name in seen:
                    raise DuplicateToolError(tool_obj.name)
                seen.add(tool_obj.name)
        self._declarations = {}
        for tool_obj in tools:
            self.register(tool_obj)

    def set_handler(self, name: str, handler: ToolHandler) -> None:
        self._bind(name, handler)

    def set_handlers(self, handlers: Mapping[str, ToolHandler]) -> None:
        self._handlers = {}
        for name, handler in handlers.items():
            self._bind(name, handler)

    def _bind(self, name: str, handler: ToolHandler) -> None:
        if not callable(handler):
            raise TypeError(f"Handler for tool '{name}' must be callable.")
        self._handlers[name] = handler

    def handler_for(self, name: str, *, call_id: str | None = None) -> ToolHandler:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownToolError(name, call_id)
        return handler

    def schemas(self) -> list[dict[str, Any]]:
        return [declaration.schema() for declaration in self._declarations.values()]
