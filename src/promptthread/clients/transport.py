"""Model transport backed by any-llm."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from promptthread.clients.parsing import completion_from_response, extract_chunk_text
from promptthread.clients.request import ChatRequest
from promptthread.core.execution import ProviderCore
from promptthread.core.results import Completion

logger = logging.getLogger(__name__)


class ModelTransport(Protocol):
    """What the runners need from the remote model."""

    async def complete(self, request: ChatRequest) -> Completion: ...

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]: ...

    async def embed(self, text: str | list[str], *, provider: str, model: str) -> Any: ...


class AnyLLMTransport:
    """Send chat requests through ``AnyLLM`` clients cached on a ``ProviderCore``."""

    def __init__(self, core: ProviderCore) -> None:
        self._core = core

    @staticmethod
    def _decide_kwargs_for_provider(request: ChatRequest) -> dict[str, Any]:
        kwargs = request.as_kwargs()
        if "openai" in request.provider.lower() and "max_tokens" in kwargs:
            kwargs.setdefault("max_completion_tokens", kwargs.pop("max_tokens"))
        return kwargs

    async def complete(self, request: ChatRequest) -> Completion:
        client = self._core.get_client(request.provider)
        try:
            response = await client.acompletion(**self._decide_kwargs_for_provider(request))
        except Exception as exc:
            self._core.raise_wrapped(exc, request.provider, request.model)
        return completion_from_response(response, model=request.model)

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        client = self._core.get_client(request.provider)
        try:
            response = await client.acompletion(**self._decide_kwargs_for_provider(request))
        except Exception as exc:
            self._core.raise_wrapped(exc, request.provider, request.model)
        return self._fragments(response, request)

    async def _fragments(self, response: Any, request: ChatRequest) -> AsyncIterator[str]:
        try:
            if hasattr(response, "__aiter__"):
                async for chunk in response:
                    text = extract_chunk_text(chunk)
                    if text:
                        yield text
            else:
                for chunk in response:
                    text = extract_chunk_text(chunk)
                    if text:
                        yield text
        except Exception as exc:
            self._core.raise_wrapped(exc, request.provider, request.model)
        finally:
            aclose = getattr(response, "aclose", None)
            if aclose is not None:
                await aclose()

    async def embed(self, text: str | list[str], *, provider: str, model: str) -> Any:
        client = self._core.get_client(provider)
        try:
            return await client.aembedding(model=model, inputs=text)
        except Exception as exc:
            self._core.raise_wrapped(exc, provider, model)
