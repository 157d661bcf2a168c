"""Structured results for promptthread."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from promptthread.core.errors import TypeMismatchError
from promptthread.core.messages import AssistantMessage


class RunStatus(str, Enum):
    """Outcome of one non-streaming run."""

    DONE = "done"
    TOOL_RESULTS_PENDING = "tool_results_pending"


class StreamOutcome(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ThreadUsage:
    """Token and tool-call totals summed over every completed call on a thread."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    tool_calls: int = 0

    def add(self, usage: Usage | None, *, tool_calls: int = 0) -> None:
        if usage is not None:
            self.prompt_tokens += usage.prompt_tokens
            self.completion_tokens += usage.completion_tokens
            self.total_tokens += usage.total_tokens
        self.tool_calls += tool_calls

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ThreadUsage:
        return cls(**{key: int(value) for key, value in data.items()})


@dataclass(frozen=True)
class Completion:
    """A chat completion normalized away from the transport's response type."""

    id: str
    model: str
    message: AssistantMessage
    finish_reason: str | None = None
    usage: Usage | None = None
    created: int = field(default_factory=lambda: int(time.time()))
    raw: Any = field(default=None, compare=False, repr=False)

    @property
    def text(self) -> str:
        return self.message.text

    @property
    def tool_calls(self):
        return self.message.tool_calls

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "model": self.model,
            "message": self.message.model_dump(),
            "finish_reason": self.finish_reason,
            "usage": asdict(self.usage) if self.usage is not None else None,
            "created": self.created,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Completion:
        usage = data.get("usage")
        return cls(
            id=data["id"],
            model=data["model"],
            message=AssistantMessage.model_validate(data["message"]),
            finish_reason=data.get("finish_reason"),
            usage=Usage(**usage) if usage else None,
            created=data.get("created", 0),
        )

    @classmethod
    def from_stream(cls, text: str, model: str) -> Completion:
        return cls(
            id="stream",
            model=model,
            message=AssistantMessage(content=text),
            finish_reason="stop",
            usage=Usage(),
        )


class ResultKind(str, Enum):
    NONE = "none"
    CHAT = "chat"
    VISION = "vision"
    EMBEDDING = "embedding"
    SPEECH = "speech"
    MODERATION = "moderation"
    IMAGE = "image"


@dataclass(frozen=True)
class LastResult:
    """The most recent terminal outcome of a run method, tagged by which one ran."""

    kind: ResultKind = ResultKind.NONE
    value: Any = None

    @classmethod
    def none(cls) -> LastResult:
        return cls()

    @classmethod
    def chat(cls, completion: Completion) -> LastResult:
        return cls(ResultKind.CHAT, completion)

    @classmethod
    def vision(cls, completion: Completion) -> LastResult:
        return cls(ResultKind.VISION, completion)

    @classmethod
    def embedding(cls, vector: list[float]) -> LastResult:
        return cls(ResultKind.EMBEDDING, list(vector))

    @classmethod
    def speech(cls, audio: bytes) -> LastResult:
        return cls(ResultKind.SPEECH, audio)

    @classmethod
    def moderation(cls, verdict: Any) -> LastResult:
        return cls(ResultKind.MODERATION, verdict)

    @classmethod
    def image(cls, image: Any) -> LastResult:
        return cls(ResultKind.IMAGE, image)

    @property
    def is_none(self) -> bool:
        return self.kind is ResultKind.NONE

    def _expect(self, kind: ResultKind) -> Any:
        if self.kind is not kind:
            raise TypeMismatchError(kind.value, self.kind.value)
        return self.value

    def as_chat(self) -> Completion:
        return self._expect(ResultKind.CHAT)

    def as_message(self) -> AssistantMessage:
        return self.as_chat().message

    def as_vision(self) -> Completion:
        return self._expect(ResultKind.VISION)

    def as_embedding(self) -> list[float]:
        return self._expect(ResultKind.EMBEDDING)

    def as_speech(self) -> bytes:
        return self._expect(ResultKind.SPEECH)

    def as_moderation(self) -> Any:
        return self._expect(ResultKind.MODERATION)

    def as_moderation_flagged(self) -> bool:
        verdict = self.as_moderation()
        if isinstance(verdict, dict):
            return bool(verdict.get("flagged"))
        return bool(getattr(verdict, "flagged", False))

    def as_image(self) -> Any:
        return self._expect(ResultKind.IMAGE)


@dataclass
class RunLedger:
    """Mutable run bookkeeping shared by the runners of one thread."""

    usage: ThreadUsage = field(default_factory=ThreadUsage)
    completions: list[Completion] = field(default_factory=list)
    last_result: LastResult = field(default_factory=LastResult.none)

    def record(self, result: LastResult, completion: Completion | None = None, *, tool_calls: int = 0) -> None:
        if completion is not None:
            self.usage.add(completion.usage, tool_calls=tool_calls)
            self.completions.append(completion)
        self.last_result = result

    def clear_last_result(self) -> None:
        self.last_result = LastResult.none()
