from __future__ import annotations

from types import SimpleNamespace

import pytest
from any_llm.exceptions import (
    AuthenticationError,
    ContextLengthExceededError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
)

from promptthread import ChatThread, ConfigurationError, ErrorKind, TransportError, UserMessage
from promptthread.clients.media import OpenAIMediaTransport
from promptthread.core import ProviderCore, instrument_promptthread, span
from promptthread.core.execution import credential_env_var, resolve_model_provider

from .conftest import AsyncStubCallable


def _core(**kwargs) -> ProviderCore:
    options = {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "api_key": None,
        "api_base": None,
        "client_args": {},
        "verbose": 0,
    }
    options.update(kwargs)
    return ProviderCore(**options)


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__("request failed")
        self.status_code = status_code


class _ResponseError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__("request failed")
        self.response = SimpleNamespace(status_code=status_code)


class TestModelResolution:
    def test_split_provider_and_model(self):
        assert resolve_model_provider("openai:gpt-4o-mini", None) == ("openai", "gpt-4o-mini")
        assert resolve_model_provider("gpt-4o-mini", "openai") == ("openai", "gpt-4o-mini")

    @pytest.mark.parametrize(
        ("model", "provider"),
        [("gpt-4o-mini", None), (":gpt", None), ("openai:gpt", "openai")],
    )
    def test_rejects_malformed(self, model, provider):
        with pytest.raises(ConfigurationError):
            resolve_model_provider(model, provider)

    def test_credential_env_var(self):
        assert credential_env_var("openai") == "OPENAI_API_KEY"
        assert credential_env_var("azure-openai") == "AZURE_OPENAI_API_KEY"


class TestCredentials:
    def test_per_provider_keys(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY")
        core = _core(api_key={"anthropic": "sk-ant"})

        assert core.resolve_api_key("anthropic") == "sk-ant"
        assert core.resolve_api_key("openai") is None
        with pytest.raises(ConfigurationError):
            core.require_api_key("openai")

    def test_env_fallback(self):
        assert _core().resolve_api_key("openai") == "test-key"

    def test_clients_are_cached(self, monkeypatch):
        created = []

        def _create(provider, **kwargs):
            created.append((provider, kwargs))
            return object()

        monkeypatch.setattr("promptthread.core.execution.AnyLLM.create", _create)
        core = _core(api_base="https://proxy.invalid/v1")

        assert core.get_client("openai") is core.get_client("openai")
        assert created == [("openai", {"api_key": "test-key", "api_base": "https://proxy.invalid/v1"})]


class TestErrorClassification:
    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (AuthenticationError(), ErrorKind.CONFIG),
            (ModelNotFoundError(), ErrorKind.INVALID_INPUT),
            (ContextLengthExceededError(), ErrorKind.INVALID_INPUT),
            (RateLimitError(), ErrorKind.TEMPORARY),
            (ProviderError(), ErrorKind.PROVIDER),
            (_StatusError(401), ErrorKind.CONFIG),
            (_StatusError(422), ErrorKind.INVALID_INPUT),
            (_StatusError(429), ErrorKind.TEMPORARY),
            (_StatusError(503), ErrorKind.PROVIDER),
            (_ResponseError(404), ErrorKind.INVALID_INPUT),
            (RuntimeError("Too many requests"), ErrorKind.TEMPORARY),
            (RuntimeError("gateway timeout"), ErrorKind.PROVIDER),
            (RuntimeError("Request timed out"), ErrorKind.PROVIDER),
            (RuntimeError("Invalid API key provided"), ErrorKind.CONFIG),
            (RuntimeError("ratelimit hit"), ErrorKind.TEMPORARY),
            (RuntimeError("something odd"), ErrorKind.UNKNOWN),
        ],
    )
    def test_classify(self, exc, kind):
        assert _core().classify_exception(exc) == kind

    def test_custom_classifier_wins(self):
        core = _core(error_classifier=lambda exc: ErrorKind.TEMPORARY)
        assert core.classify_exception(ProviderError()) == ErrorKind.TEMPORARY

    def test_failing_classifier_falls_back(self):
        def classify(exc):
            raise ValueError("classifier bug")

        core = _core(error_classifier=classify)
        assert core.classify_exception(RateLimitError()) == ErrorKind.TEMPORARY

    def test_raise_wrapped_keeps_cause(self):
        original = RuntimeError("something odd")

        with pytest.raises(TransportError) as exc_info:
            _core().raise_wrapped(original, "openai", "gpt-4o-mini")

        assert exc_info.value.cause is original
        assert exc_info.value.__cause__ is original
        assert str(exc_info.value) == "[unknown] openai:gpt-4o-mini: something odd"

    def test_verbose_logs_failures(self, caplog):
        core = _core(verbose=1)

        with caplog.at_level("WARNING"), pytest.raises(TransportError):
            core.raise_wrapped(ProviderError(), "openai", "gpt-4o-mini")

        assert "[openai:gpt-4o-mini] call failed" in caplog.text

    def test_silent_by_default(self, caplog):
        with caplog.at_level("WARNING"), pytest.raises(TransportError):
            _core().raise_wrapped(ProviderError(), "openai", "gpt-4o-mini")

        assert caplog.text == ""

    @pytest.mark.asyncio
    async def test_custom_classifier_through_thread(self, stub_client):
        stub_client.acompletion.side_effect = ProviderError()
        thread = ChatThread(
            "openai:gpt-4o-mini",
            error_classifier=lambda exc: ErrorKind.INVALID_INPUT,
        ).append_user_message("Hi")

        with pytest.raises(TransportError) as exc_info:
            await thread.run_prompt()

        assert exc_info.value.kind == ErrorKind.INVALID_INPUT
        assert thread.messages == (UserMessage(content="Hi"),)


class TestOpenAIMediaTransport:
    def _client(self):
        return SimpleNamespace(
            audio=SimpleNamespace(speech=SimpleNamespace(create=AsyncStubCallable())),
            moderations=SimpleNamespace(create=AsyncStubCallable()),
            images=SimpleNamespace(generate=AsyncStubCallable()),
        )

    @pytest.mark.asyncio
    async def test_speech_returns_bytes(self):
        client = self._client()
        client.audio.speech.create.return_value = SimpleNamespace(content=b"mp3-bytes")
        transport = OpenAIMediaTransport(_core(), client=client)

        audio = await transport.speech("Hi", model="tts-1", voice="alloy", response_format="mp3", speed=1.5)

        assert audio == b"mp3-bytes"
        _, kwargs = client.audio.speech.create.calls[0]
        assert kwargs == {"input": "Hi", "model": "tts-1", "voice": "alloy", "response_format": "mp3", "speed": 1.5}

    @pytest.mark.asyncio
    async def test_moderation_and_image_return_first_item(self):
        client = self._client()
        client.moderations.create.return_value = SimpleNamespace(results=[SimpleNamespace(flagged=False)])
        client.images.generate.return_value = SimpleNamespace(
            data=[SimpleNamespace(url="u1"), SimpleNamespace(url="u2")],
        )
        transport = OpenAIMediaTransport(_core(), client=client)

        assert (await transport.moderate("text")).flagged is False
        assert (await transport.generate_image("a cat", model="dall-e-3")).url == "u1"

    @pytest.mark.asyncio
    async def test_failures_are_wrapped(self):
        client = self._client()
        client.moderations.create.side_effect = _StatusError(429)
        transport = OpenAIMediaTransport(_core(), client=client)

        with pytest.raises(TransportError) as exc_info:
            await transport.moderate("text")
        assert exc_info.value.kind == ErrorKind.TEMPORARY

    def test_missing_key_fails_on_first_use(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY")
        transport = OpenAIMediaTransport(_core(provider="anthropic", api_key={"anthropic": "sk-ant"}))

        with pytest.raises(ConfigurationError):
            transport._get_client()


class TestTelemetry:
    def test_span_noop_when_logfire_missing(self, monkeypatch):
        monkeypatch.setattr("promptthread.core.telemetry.logfire", None)
        with span("promptthread.test"):
            pass

    def test_instrument_requires_logfire(self, monkeypatch):
        monkeypatch.setattr("promptthread.core.telemetry.logfire", None)

        with pytest.raises(ConfigurationError) as exc_info:
            instrument_promptthread()
        assert exc_info.value.kind == ErrorKind.CONFIG

    def test_instrumented_span_uses_logfire(self, monkeypatch):
        opened = []

        class _Logfire:
            def span(self, name, **attributes):
                opened.append((name, attributes))
                return object()

        monkeypatch.setattr("promptthread.core.telemetry.logfire", _Logfire())
        monkeypatch.setattr("promptthread.core.telemetry._INSTRUMENTED", False)
        instrument_promptthread()

        span("promptthread.run_prompt", model="gpt-4o-mini")

        assert opened == [("promptthread.run_prompt", {"model": "gpt-4o-mini"})]
