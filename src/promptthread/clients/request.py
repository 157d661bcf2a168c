"""Request assembly."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from promptthread.core.config import ResponseFormat, RunConfiguration
from promptthread.core.messages import MessageInput, message_from_payload


@dataclass(frozen=True)
class ChatRequest:
    """One wire-level chat request, ready for the transport."""

    provider: str
    model: str
    messages: list[dict[str, Any]]
    temperature: float
    response_format: ResponseFormat | None
    stream: bool
    tools: list[dict[str, Any]] | None = None
    max_tokens: int | None = None
    timeout: float | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def as_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            **self.extra,
            "model": self.model,
            "messages": self.messages,
            "temperature": self.temperature,
            "stream": self.stream,
        }
        if self.response_format is not None:
            kwargs["response_format"] = self.response_format.payload()
        if self.tools:
            kwargs["tools"] = self.tools
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


def build_request(
    messages: Iterable[MessageInput],
    tools: list[dict[str, Any]] | None,
    config: RunConfiguration,
    *,
    stream: bool,
) -> ChatRequest:
    """Assemble a request from a transcript snapshot, tool schemas and a resolved configuration.

    Tools are never advertised on a streaming request: tool calls and token
    streaming are exclusive per call.
    """
    return ChatRequest(
        provider=config.provider,
        model=config.model,
        messages=[message_from_payload(message).to_payload() for message in messages],
        temperature=config.temperature,
        response_format=config.response_format,
        stream=stream,
        tools=None if stream or not tools else list(tools),
        max_tokens=config.max_tokens,
        timeout=config.timeout,
        extra=dict(config.extra),
    )
