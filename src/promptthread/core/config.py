"""Per-call run configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from promptthread.core.errors import ErrorKind, ThreadError

DEFAULT_TEMPERATURE = 1.0
DEFAULT_TIMEOUT = 600.0


class ResponseFormat(str, Enum):
    TEXT = "text"
    JSON_OBJECT = "json_object"

    def payload(self) -> dict[str, str]:
        return {"type": self.value}


@dataclass(frozen=True)
class RunConfiguration:
    """Resolved call parameters for one request.

    The thread keeps one of these as its stored configuration; ``resolve``
    layers per-call overrides on top and returns a new snapshot, leaving the
    stored one untouched. Override names that are not fields end up in
    ``extra`` and are passed through to the transport.
    """

    provider: str
    model: str
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    timeout: float | None = DEFAULT_TIMEOUT
    response_format: ResponseFormat = ResponseFormat.TEXT
    extra: MappingProxyType[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not 0 <= self.temperature <= 2:
            raise ThreadError(ErrorKind.INVALID_INPUT, "temperature must be between 0 and 2")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ThreadError(ErrorKind.INVALID_INPUT, "max_tokens must be > 0")
        if self.timeout is not None and self.timeout <= 0:
            raise ThreadError(ErrorKind.INVALID_INPUT, "timeout must be > 0")

    @property
    def json_mode(self) -> bool:
        return self.response_format is ResponseFormat.JSON_OBJECT

    def resolve(self, **overrides: Any) -> RunConfiguration:
        if not overrides:
            return self
        known = {item.name for item in fields(self)} - {"extra"}
        changes: dict[str, Any] = {}
        extra = dict(self.extra)
        for key, value in overrides.items():
            if key == "json_mode":
                changes["response_format"] = ResponseFormat.JSON_OBJECT if value else ResponseFormat.TEXT
            elif key == "response_format" and not isinstance(value, ResponseFormat):
                changes["response_format"] = ResponseFormat(value)
            elif key in known:
                changes[key] = value
            else:
                extra[key] = value
        return replace(self, **changes, extra=MappingProxyType(extra))
