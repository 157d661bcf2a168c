"""Error definitions for promptthread."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Stable error kinds for caller decisions."""

    INVALID_INPUT = "invalid_input"
    CONFIG = "config"
    PROVIDER = "provider"
    TOOL = "tool"
    TEMPORARY = "temporary"
    STATE = "state"
    UNKNOWN = "unknown"


@dataclass
class ThreadError(Exception):
    """Public error type for promptthread.

    Attributes:
        kind: Stable, actionable error kind.
        message: Human-readable description.
        cause: Original exception for debugging.
    """

    kind: ErrorKind
    message: str
    cause: Exception | None = None

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class ConfigurationError(ThreadError):
    """A required setting (credential, model) is missing or malformed."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(ErrorKind.CONFIG, message, cause)


class TransportError(ThreadError):
    """The remote call failed; ``kind`` carries the classified failure."""


class UnknownToolError(ThreadError):
    def __init__(self, tool_name: str, call_id: str | None = None) -> None:
        super().__init__(ErrorKind.TOOL, f"Function {tool_name} is not defined.")
        self.tool_name = tool_name
        self.call_id = call_id


class ToolArgumentsError(ThreadError):
    def __init__(self, tool_name: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(ErrorKind.INVALID_INPUT, message, cause)
        self.tool_name = tool_name


class ToolExecutionError(ThreadError):
    def __init__(self, tool_name: str, cause: Exception) -> None:
        super().__init__(ErrorKind.TOOL, f"Tool '{tool_name}' execution failed: {cause!r}", cause)
        self.tool_name = tool_name


class DuplicateToolError(ThreadError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(ErrorKind.INVALID_INPUT, f"Duplicate tool name: {tool_name}")
        self.tool_name = tool_name


class TranscriptError(ThreadError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.INVALID_INPUT, message)


class TypeMismatchError(ThreadError):
    """The last result holds a different kind than the one requested."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(ErrorKind.STATE, f"Last result is '{actual}', not '{expected}'.")
        self.expected = expected
        self.actual = actual


class SessionAlreadyActiveError(ThreadError):
    def __init__(self, run_id: str) -> None:
        super().__init__(ErrorKind.STATE, f"A stream is already active on this thread (run {run_id}).")
        self.run_id = run_id


class SnapshotError(ThreadError):
    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(ErrorKind.INVALID_INPUT, message, cause)
