"""Conversation messages.

Messages are pydantic models discriminated on ``role``. ``to_payload`` renders
the chat-completions wire shape sent to the model; ``message_from_payload``
accepts that shape back (tool calls nested under ``function``) as well as the
flat ``model_dump`` form used by snapshots.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from promptthread.core.errors import TranscriptError

Content = Union[str, list[dict[str, Any]]]


class ToolCall(BaseModel):
    """A model request to run a named local function.

    ``arguments`` stays the raw JSON string the model produced; it is parsed
    only when the call is executed.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ToolCall:
        function = data.get("function")
        if isinstance(function, Mapping):
            arguments = function.get("arguments")
            if arguments is not None and not isinstance(arguments, str):
                arguments = dump_arguments(arguments)
            return cls(id=data.get("id") or "", name=function.get("name") or "", arguments=arguments or "")
        return cls.model_validate(dict(data))


def dump_arguments(arguments: Any) -> str:
    return TypeAdapter(Any).dump_json(arguments).decode()


class SystemMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system"] = "system"
    content: str

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class UserMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: Content

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class AssistantMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    content: Content | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return ""

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_payload() for call in self.tool_calls]
        return payload


class ToolMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["tool"] = "tool"
    tool_call_id: str
    content: str
    name: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": self.role,
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }
        if self.name:
            payload["name"] = self.name
        return payload


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]
MessageInput = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage, Mapping[str, Any]]

_MESSAGE_ADAPTER: TypeAdapter[Any] = TypeAdapter(Message)
_MESSAGE_TYPES = (SystemMessage, UserMessage, AssistantMessage, ToolMessage)


def message_from_payload(data: MessageInput) -> SystemMessage | UserMessage | AssistantMessage | ToolMessage:
    if isinstance(data, _MESSAGE_TYPES):
        return data
    if not isinstance(data, Mapping):
        raise TranscriptError(f"Unsupported message type: {type(data).__name__}")
    payload = dict(data)
    if payload.get("role") == "assistant" and payload.get("tool_calls"):
        payload["tool_calls"] = [
            call if isinstance(call, ToolCall) else ToolCall.from_payload(call) for call in payload["tool_calls"]
        ]
    try:
        return _MESSAGE_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise TranscriptError(f"Invalid message: {exc.errors(include_url=False)}") from exc
