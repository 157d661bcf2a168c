"""Provider resolution, client cache and error classification."""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Callable
from typing import Any, NoReturn

from any_llm import AnyLLM
from any_llm.exceptions import (
    AnyLLMError,
    AuthenticationError,
    ContentFilterError,
    ContextLengthExceededError,
    InvalidRequestError,
    MissingApiKeyError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    UnsupportedParameterError,
    UnsupportedProviderError,
)
from pydantic import ValidationError

from promptthread.core.errors import ConfigurationError, ErrorKind, ThreadError, TransportError

logger = logging.getLogger(__name__)

ErrorClassifier = Callable[[Exception], ErrorKind | None]


def resolve_model_provider(model: str, provider: str | None) -> tuple[str, str]:
    if provider:
        if ":" in model:
            raise ConfigurationError("When provider is specified, model must not include a provider prefix.")
        return provider, model

    if ":" not in model:
        raise ConfigurationError("Model must be in 'provider:model' format.")

    provider_name, model_id = model.split(":", 1)
    if not provider_name or not model_id:
        raise ConfigurationError("Model must be in 'provider:model' format.")
    return provider_name, model_id


def credential_env_var(provider: str) -> str:
    return f"{re.sub(r'[^A-Za-z0-9]', '_', provider).upper()}_API_KEY"


_ANYLLM_KINDS: tuple[tuple[tuple[type[Exception], ...], ErrorKind], ...] = (
    ((MissingApiKeyError, AuthenticationError), ErrorKind.CONFIG),
    (
        (
            UnsupportedProviderError,
            UnsupportedParameterError,
            InvalidRequestError,
            ModelNotFoundError,
            ContextLengthExceededError,
        ),
        ErrorKind.INVALID_INPUT,
    ),
    ((RateLimitError, ContentFilterError), ErrorKind.TEMPORARY),
    ((ProviderError, AnyLLMError), ErrorKind.PROVIDER),
)

# Last resort for SDK errors that carry neither a known type nor a status code.
_MESSAGE_KINDS: tuple[tuple[re.Pattern[str], ErrorKind], ...] = (
    (re.compile(r"unauthori[sz]ed|invalid[_\s-]?api[_\s-]?key"), ErrorKind.CONFIG),
    (re.compile(r"rate[_\s-]?limit|too many requests"), ErrorKind.TEMPORARY),
    (re.compile(r"timed? ?out|connection|service unavailable"), ErrorKind.PROVIDER),
)


def _status_code(exc: Exception) -> int | None:
    for source in (exc, getattr(exc, "response", None)):
        status = getattr(source, "status_code", None)
        if isinstance(status, int):
            return status
    return None


def _kind_from_status(status: int | None) -> ErrorKind | None:
    if status in {401, 403}:
        return ErrorKind.CONFIG
    if status in {400, 404, 413, 422}:
        return ErrorKind.INVALID_INPUT
    if status in {408, 409, 425, 429}:
        return ErrorKind.TEMPORARY
    if status is not None and 500 <= status < 600:
        return ErrorKind.PROVIDER
    return None


class ProviderCore:
    """Credentials, cached any-llm clients and exception classification for one thread."""

    def __init__(
        self,
        *,
        provider: str,
        model: str,
        api_key: str | dict[str, str] | None,
        api_base: str | dict[str, str] | None,
        client_args: dict[str, Any],
        verbose: int,
        error_classifier: ErrorClassifier | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.verbose = verbose
        self._api_key = api_key
        self._api_base = api_base
        self._client_args = client_args
        self._error_classifier = error_classifier
        self._client_cache: dict[str, AnyLLM] = {}

    def resolve_api_key(self, provider: str) -> str | None:
        if isinstance(self._api_key, dict):
            key = self._api_key.get(provider)
        else:
            key = self._api_key
        return key or os.environ.get(credential_env_var(provider))

    def require_api_key(self, provider: str) -> str:
        key = self.resolve_api_key(provider)
        if not key:
            raise ConfigurationError(
                f"API key is required for provider '{provider}'. "
                f"Pass api_key= or set {credential_env_var(provider)}."
            )
        return key

    def resolve_api_base(self, provider: str) -> str | None:
        if isinstance(self._api_base, dict):
            return self._api_base.get(provider)
        return self._api_base

    def _cache_key(self, provider: str, api_key: str | None, api_base: str | None) -> str:
        payload = {"provider": provider, "api_key": api_key, "api_base": api_base, "client_args": self._client_args}
        return json.dumps(payload, sort_keys=True, default=repr, separators=(",", ":"))

    def get_client(self, provider: str) -> AnyLLM:
        api_key = self.resolve_api_key(provider)
        api_base = self.resolve_api_base(provider)
        cache_key = self._cache_key(provider, api_key, api_base)
        if cache_key not in self._client_cache:
            self._client_cache[cache_key] = AnyLLM.create(
                provider,
                api_key=api_key,
                api_base=api_base,
                **self._client_args,
            )
        return self._client_cache[cache_key]

    def log_error(self, error: ThreadError, provider: str, model: str) -> None:
        if self.verbose == 0:
            return
        if error.cause:
            logger.warning("[%s:%s] call failed: %s (cause=%r)", provider, model, error, error.cause)
        else:
            logger.warning("[%s:%s] call failed: %s", provider, model, error)

    def classify_exception(self, exc: Exception) -> ErrorKind:
        """Map an exception to an ``ErrorKind``.

        A caller-supplied classifier is consulted first. Then come pydantic
        validation errors, any-llm exception types, HTTP status codes and
        finally a few message patterns.
        """
        if isinstance(exc, ThreadError):
            return exc.kind
        if self._error_classifier is not None:
            try:
                kind = self._error_classifier(exc)
            except Exception as classifier_exc:
                logger.warning("error_classifier failed: %r", classifier_exc)
            else:
                if isinstance(kind, ErrorKind):
                    return kind
        if isinstance(exc, ValidationError):
            return ErrorKind.INVALID_INPUT
        for types, kind in _ANYLLM_KINDS:
            if isinstance(exc, types):
                return kind
        kind = _kind_from_status(_status_code(exc))
        if kind is not None:
            return kind
        text = str(exc).lower()
        for pattern, kind in _MESSAGE_KINDS:
            if pattern.search(text):
                return kind
        return ErrorKind.UNKNOWN

    def wrap_error(self, exc: Exception, provider: str, model: str) -> TransportError:
        kind = self.classify_exception(exc)
        return TransportError(kind, f"{provider}:{model}: {exc}", cause=exc)

    def raise_wrapped(self, exc: Exception, provider: str, model: str) -> NoReturn:
        if isinstance(exc, ThreadError):
            raise exc
        error = self.wrap_error(exc, provider, model)
        self.log_error(error, provider, model)
        raise error from exc
