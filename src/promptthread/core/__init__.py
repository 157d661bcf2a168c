"""Core primitives for promptthread."""

from promptthread.core.config import ResponseFormat, RunConfiguration
from promptthread.core.errors import (
    ConfigurationError,
    DuplicateToolError,
    ErrorKind,
    SessionAlreadyActiveError,
    SnapshotError,
    ThreadError,
    ToolArgumentsError,
    ToolExecutionError,
    TranscriptError,
    TransportError,
    TypeMismatchError,
    UnknownToolError,
)
from promptthread.core.execution import ProviderCore
from promptthread.core.telemetry import instrument_promptthread, span

__all__ = [
    "ConfigurationError",
    "DuplicateToolError",
    "ErrorKind",
    "ProviderCore",
    "ResponseFormat",
    "RunConfiguration",
    "SessionAlreadyActiveError",
    "SnapshotError",
    "ThreadError",
    "ToolArgumentsError",
    "ToolExecutionError",
    "TranscriptError",
    "TransportError",
    "TypeMismatchError",
    "UnknownToolError",
    "instrument_promptthread",
    "span",
]
