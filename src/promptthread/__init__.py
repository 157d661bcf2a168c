"""promptthread public API."""

from promptthread.__about__ import DEFAULT_MODEL
from promptthread.core import (
    ConfigurationError,
    DuplicateToolError,
    ErrorKind,
    ResponseFormat,
    RunConfiguration,
    SessionAlreadyActiveError,
    SnapshotError,
    ThreadError,
    ToolArgumentsError,
    ToolExecutionError,
    TranscriptError,
    TransportError,
    TypeMismatchError,
    UnknownToolError,
    instrument_promptthread,
)
from promptthread.core.messages import AssistantMessage, SystemMessage, ToolCall, ToolMessage, UserMessage
from promptthread.core.observers import END_OF_STREAM, ThreadObserver, ThreadState
from promptthread.core.results import Completion, LastResult, ResultKind, RunStatus, StreamOutcome, ThreadUsage, Usage
from promptthread.thread import ChatThread
from promptthread.tools import Tool, ToolRegistry, make_tool, schema_from_model, tool, tool_from_model

__all__ = [
    "DEFAULT_MODEL",
    "END_OF_STREAM",
    "AssistantMessage",
    "ChatThread",
    "Completion",
    "ConfigurationError",
    "DuplicateToolError",
    "ErrorKind",
    "LastResult",
    "ResponseFormat",
    "ResultKind",
    "RunConfiguration",
    "RunStatus",
    "SessionAlreadyActiveError",
    "SnapshotError",
    "StreamOutcome",
    "SystemMessage",
    "ThreadError",
    "ThreadObserver",
    "ThreadState",
    "ThreadUsage",
    "Tool",
    "ToolArgumentsError",
    "ToolCall",
    "ToolExecutionError",
    "ToolMessage",
    "ToolRegistry",
    "TranscriptError",
    "TransportError",
    "TypeMismatchError",
    "UnknownToolError",
    "Usage",
    "UserMessage",
    "instrument_promptthread",
    "make_tool",
    "schema_from_model",
    "tool",
    "tool_from_model",
]
