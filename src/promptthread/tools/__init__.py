"""Tooling helpers for promptthread."""

from promptthread.tools.executor import ToolBatch, ToolExecutor
from promptthread.tools.registry import ToolRegistry
from promptthread.tools.schema import Tool, make_tool, schema_from_model, tool, tool_from_model

__all__ = [
    "Tool",
    "ToolBatch",
    "ToolExecutor",
    "ToolRegistry",
    "make_tool",
    "schema_from_model",
    "tool",
    "tool_from_model",
]
