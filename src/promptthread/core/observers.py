"""Notification sinks for transcript and stream events."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, Final, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class _EndOfStream:
    _instance: _EndOfStream | None = None

    def __new__(cls) -> _EndOfStream:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"

    def __bool__(self) -> bool:
        return False


END_OF_STREAM: Final = _EndOfStream()
"""Delivered to stream sinks once, after the last fragment."""

StreamSink = Callable[[Any], None]


@runtime_checkable
class ThreadObserver(Protocol):
    """Passive subscriber to thread events. Observers never influence control flow."""

    def on_messages(self, messages: Sequence[Any]) -> None: ...

    def on_fragment(self, delta: str) -> None: ...

    def on_text(self, text: str) -> None: ...

    def on_stream_end(self) -> None: ...


class ObserverHub:
    """Fan-out of thread events to zero or more observers."""

    def __init__(self, observers: Sequence[ThreadObserver] | None = None) -> None:
        self._observers: list[ThreadObserver] = list(observers or [])

    def attach(self, observer: ThreadObserver) -> None:
        self._observers.append(observer)

    def detach(self, observer: ThreadObserver) -> None:
        self._observers = [item for item in self._observers if item is not observer]

    def __len__(self) -> int:
        return len(self._observers)

    def _emit(self, method: str, *args: Any) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, method)(*args)
            except Exception:
                logger.exception("observer %r failed in %s", observer, method)

    def messages(self, messages: Sequence[Any]) -> None:
        self._emit("on_messages", messages)

    def fragment(self, delta: str) -> None:
        self._emit("on_fragment", delta)

    def text(self, text: str) -> None:
        self._emit("on_text", text)

    def stream_end(self) -> None:
        self._emit("on_stream_end")


class ThreadState:
    """Observer that keeps the latest value of each event and replays it to subscribers.

    This is the framework-neutral stand-in for a behaviour subject: a UI
    binding subscribes once and receives the current value immediately, then
    every change.
    """

    def __init__(self) -> None:
        self.messages: tuple[Any, ...] = ()
        self.delta: str | None = None
        self.text: str | None = None
        self.streaming = False
        self._subscribers: dict[str, list[Callable[[Any], None]]] = {
            "messages": [],
            "delta": [],
            "text": [],
        }

    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        if topic not in self._subscribers:
            raise ValueError(f"Unknown topic: {topic}")
        self._subscribers[topic].append(callback)
        callback(getattr(self, topic))

        def _unsubscribe() -> None:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

        return _unsubscribe

    def _publish(self, topic: str, value: Any) -> None:
        setattr(self, topic, value)
        for callback in list(self._subscribers[topic]):
            callback(value)

    def on_messages(self, messages: Sequence[Any]) -> None:
        self._publish("messages", tuple(messages))

    def on_fragment(self, delta: str) -> None:
        if not self.streaming:
            self.streaming = True
            self._publish("text", "")
        self._publish("delta", delta)

    def on_text(self, text: str) -> None:
        self._publish("text", text)

    def on_stream_end(self) -> None:
        self.streaming = False
        self._publish("delta", None)
