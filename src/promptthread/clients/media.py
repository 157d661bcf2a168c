"""Speech, moderation and image passthroughs over the OpenAI SDK."""

from __future__ import annotations

from typing import Any, Protocol

from openai import AsyncOpenAI

from promptthread.clients.parsing import field
from promptthread.core.execution import ProviderCore

MEDIA_PROVIDER = "openai"


class MediaTransport(Protocol):
    async def speech(
        self,
        text: str,
        *,
        model: str,
        voice: str,
        response_format: str,
        speed: float | None = None,
    ) -> bytes: ...

    async def moderate(self, text: str) -> Any: ...

    async def generate_image(self, prompt: str, **options: Any) -> Any: ...


class OpenAIMediaTransport:
    """Endpoints any-llm does not cover, called through ``AsyncOpenAI``.

    The SDK client is created on first use so threads that never touch these
    endpoints need no OpenAI credential.
    """

    def __init__(self, core: ProviderCore, *, client: AsyncOpenAI | None = None) -> None:
        self._core = core
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_base = self._core.resolve_api_base(MEDIA_PROVIDER)
            self._client = AsyncOpenAI(api_key=self._core.require_api_key(MEDIA_PROVIDER), base_url=api_base)
        return self._client

    async def speech(
        self,
        text: str,
        *,
        model: str,
        voice: str,
        response_format: str,
        speed: float | None = None,
    ) -> bytes:
        kwargs: dict[str, Any] = {
            "input": text,
            "model": model,
            "voice": voice,
            "response_format": response_format,
        }
        if speed is not None:
            kwargs["speed"] = speed
        try:
            response = await self._get_client().audio.speech.create(**kwargs)
        except Exception as exc:
            self._core.raise_wrapped(exc, MEDIA_PROVIDER, model)
        content = getattr(response, "content", response)
        return bytes(content)

    async def moderate(self, text: str) -> Any:
        try:
            response = await self._get_client().moderations.create(input=text)
        except Exception as exc:
            self._core.raise_wrapped(exc, MEDIA_PROVIDER, "moderation")
        results = field(response, "results") or []
        return results[0] if results else None

    async def generate_image(self, prompt: str, **options: Any) -> Any:
        model = options.get("model") or "image"
        try:
            response = await self._get_client().images.generate(prompt=prompt, **options)
        except Exception as exc:
            self._core.raise_wrapped(exc, MEDIA_PROVIDER, model)
        data = field(response, "data") or []
        return data[0] if data else None
