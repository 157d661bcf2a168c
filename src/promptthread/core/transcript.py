"""Ordered conversation transcript."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from promptthread.core.errors import TranscriptError
from promptthread.core.messages import (
    AssistantMessage,
    MessageInput,
    SystemMessage,
    ToolMessage,
    UserMessage,
    message_from_payload,
)
from promptthread.core.observers import ObserverHub

AnyMessage = SystemMessage | UserMessage | AssistantMessage | ToolMessage


class Transcript:
    """Append-only message history replayed to the model on every call."""

    def __init__(self, messages: Iterable[MessageInput] | None = None, *, hub: ObserverHub | None = None) -> None:
        self._messages: list[AnyMessage] = []
        self._hub = hub if hub is not None else ObserverHub()
        if messages is not None:
            self.append(list(messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[AnyMessage]:
        return iter(tuple(self._messages))

    def __getitem__(self, index: int) -> AnyMessage:
        return self._messages[index]

    @property
    def last(self) -> AnyMessage | None:
        return self._messages[-1] if self._messages else None

    def snapshot(self) -> tuple[AnyMessage, ...]:
        return tuple(self._messages)

    def payload(self) -> list[dict[str, Any]]:
        return [message.to_payload() for message in self._messages]

    def set_messages(self, messages: Iterable[MessageInput]) -> None:
        parsed = self._validate(list(messages), base=[])
        self._messages = []
        self._extend(parsed)

    def append(self, messages: MessageInput | Iterable[MessageInput]) -> None:
        if isinstance(messages, (Mapping, SystemMessage, UserMessage, AssistantMessage, ToolMessage)):
            batch = [messages]
        else:
            batch = list(messages)
        parsed = self._validate(batch, base=self._messages)
        self._extend(parsed)

    def _extend(self, parsed: list[AnyMessage]) -> None:
        self._messages.extend(parsed)
        self._hub.messages(self.snapshot())

    @staticmethod
    def _validate(batch: list[Any], *, base: list[AnyMessage]) -> list[AnyMessage]:
        parsed = [message_from_payload(item) for item in batch]
        history = [*base]
        for message in parsed:
            if isinstance(message, ToolMessage):
                _check_tool_reference(history, message)
            history.append(message)
        return parsed


def _check_tool_reference(history: list[AnyMessage], message: ToolMessage) -> None:
    for previous in reversed(history):
        if isinstance(previous, ToolMessage):
            continue
        if isinstance(previous, AssistantMessage):
            if any(call.id == message.tool_call_id for call in previous.tool_calls):
                return
        break
    raise TranscriptError(
        f"Tool message references unknown tool call '{message.tool_call_id}'; "
        "it must answer a call from the preceding assistant message."
    )
