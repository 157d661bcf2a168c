"""Chat-completions response shape parsing."""

from __future__ import annotations

from typing import Any

from promptthread.core.messages import AssistantMessage, ToolCall, dump_arguments
from promptthread.core.results import Completion, Usage


def field(data: Any, key: str, default: Any = None) -> Any:
    if isinstance(data, dict):
        return data.get(key, default)
    return getattr(data, key, default)


def _first_choice(response: Any) -> Any:
    choices = field(response, "choices")
    if not choices:
        return None
    return choices[0]


def extract_chunk_text(chunk: Any) -> str:
    if isinstance(chunk, str):
        return chunk
    choice = _first_choice(chunk)
    if choice is None:
        return ""
    delta = field(choice, "delta")
    if delta is None:
        return ""
    return field(delta, "content", "") or ""


def extract_tool_calls(message: Any) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for index, tool_call in enumerate(field(message, "tool_calls") or []):
        function = field(tool_call, "function")
        if function is None:
            continue
        arguments = field(function, "arguments")
        if arguments is None:
            arguments = ""
        calls.append(
            ToolCall(
                id=field(tool_call, "id") or f"call_{index}",
                name=field(function, "name") or "",
                arguments=arguments if isinstance(arguments, str) else dump_arguments(arguments),
            )
        )
    return calls


def extract_usage(response: Any) -> Usage | None:
    usage = field(response, "usage")
    if usage is None:
        return None
    prompt_tokens = field(usage, "prompt_tokens", 0) or 0
    completion_tokens = field(usage, "completion_tokens", 0) or 0
    total_tokens = field(usage, "total_tokens")
    if total_tokens is None:
        total_tokens = prompt_tokens + completion_tokens
    return Usage(
        prompt_tokens=int(prompt_tokens),
        completion_tokens=int(completion_tokens),
        total_tokens=int(total_tokens),
    )


def completion_from_response(response: Any, *, model: str) -> Completion:
    if isinstance(response, str):
        return Completion(id="text", model=model, message=AssistantMessage(content=response), raw=response)

    choice = _first_choice(response)
    message = field(choice, "message") if choice is not None else None
    content = field(message, "content") if message is not None else None
    created = field(response, "created")
    completion_kwargs: dict[str, Any] = {}
    if isinstance(created, int):
        completion_kwargs["created"] = created
    return Completion(
        id=field(response, "id") or "",
        model=field(response, "model") or model,
        message=AssistantMessage(
            content=content,
            tool_calls=extract_tool_calls(message) if message is not None else [],
        ),
        finish_reason=field(choice, "finish_reason") if choice is not None else None,
        usage=extract_usage(response),
        raw=response,
        **completion_kwargs,
    )


def extract_embedding(response: Any) -> list[float]:
    data = field(response, "data") or []
    if not data:
        return []
    return list(field(data[0], "embedding") or [])
