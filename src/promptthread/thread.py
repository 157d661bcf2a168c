"""promptthread chat-thread facade."""

from __future__ import annotations

import json
import logging
import warnings
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from promptthread.__about__ import DEFAULT_EMBEDDING_MODEL, DEFAULT_MODEL, DEFAULT_VISION_MODEL
from promptthread.clients.completion import CompletionRunner
from promptthread.clients.media import MediaTransport, OpenAIMediaTransport
from promptthread.clients.parsing import extract_embedding, extract_usage
from promptthread.clients.stream import CancellationController, StreamRunner
from promptthread.clients.transport import AnyLLMTransport, ModelTransport
from promptthread.core.config import DEFAULT_TEMPERATURE, DEFAULT_TIMEOUT, ResponseFormat, RunConfiguration
from promptthread.core.errors import ErrorKind, SnapshotError, ThreadError
from promptthread.core.execution import ErrorClassifier, ProviderCore, resolve_model_provider
from promptthread.core.messages import MessageInput, SystemMessage, UserMessage
from promptthread.core.observers import ObserverHub, StreamSink, ThreadObserver
from promptthread.core.results import Completion, LastResult, RunLedger, RunStatus, StreamOutcome, ThreadUsage
from promptthread.core.telemetry import span
from promptthread.core.transcript import AnyMessage, Transcript
from promptthread.tools.registry import ToolLike, ToolRegistry
from promptthread.tools.schema import Tool, ToolHandler, to_tool

logger = logging.getLogger(__name__)

SNAPSHOT_KEYS = frozenset(
    {
        "model",
        "provider",
        "temperature",
        "max_tokens",
        "timeout",
        "json_mode",
        "verbose",
        "messages",
        "tools",
        "handlers",
        "usage",
        "completions",
    }
)


def _check_verbose(verbose: int) -> int:
    if verbose not in (0, 1, 2):
        raise ThreadError(ErrorKind.INVALID_INPUT, "verbose must be 0, 1, or 2")
    return verbose


class ChatThread:
    """Stateful conversation with a remote chat model.

    The thread owns a transcript, a tool registry and the stored run
    configuration. ``run_prompt`` performs one request/response exchange and
    answers tool calls locally; ``run_prompt_stream`` streams text fragments
    to a sink and can be stopped with ``cancel``.
    """

    def __init__(
        self,
        model: str | None = None,
        *,
        provider: str | None = None,
        api_key: str | dict[str, str] | None = None,
        api_base: str | dict[str, str] | None = None,
        client_args: dict[str, Any] | None = None,
        verbose: int = 0,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        json_mode: bool = False,
        messages: Iterable[MessageInput] | None = None,
        transport: ModelTransport | None = None,
        media_transport: MediaTransport | None = None,
        observers: Sequence[ThreadObserver] | None = None,
        allow_tool_overwrite: bool = True,
        error_classifier: ErrorClassifier | None = None,
    ) -> None:
        _check_verbose(verbose)

        if not model:
            model = DEFAULT_MODEL
            warnings.warn(f"No model was provided, defaulting to {model}", UserWarning, stacklevel=2)

        resolved_provider, resolved_model = resolve_model_provider(model, provider)

        self._core = ProviderCore(
            provider=resolved_provider,
            model=resolved_model,
            api_key=api_key,
            api_base=api_base,
            client_args=client_args or {},
            verbose=verbose,
            error_classifier=error_classifier,
        )
        if transport is None:
            self._core.require_api_key(resolved_provider)
            transport = AnyLLMTransport(self._core)

        self._config = RunConfiguration(
            provider=resolved_provider,
            model=resolved_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            response_format=ResponseFormat.JSON_OBJECT if json_mode else ResponseFormat.TEXT,
        )
        self._transport = transport
        self._media: MediaTransport = media_transport or OpenAIMediaTransport(self._core)
        self._hub = ObserverHub(observers)
        self._transcript = Transcript(messages, hub=self._hub)
        self._registry = ToolRegistry(allow_overwrite=allow_tool_overwrite)
        self._ledger = RunLedger()
        self._controller = CancellationController()
        self._stream_sink: StreamSink | None = None

        self._completion_runner = CompletionRunner(
            self._core, self._transport, self._transcript, self._registry, self._ledger
        )
        self._stream_runner = StreamRunner(
            self._core, self._transport, self._transcript, self._ledger, self._controller, self._hub
        )

    def __repr__(self) -> str:
        return (
            f"<ChatThread provider={self.provider} model={self.model} "
            f"messages={len(self._transcript)} tools={len(self._registry)}>"
        )

    # Configuration

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def provider(self) -> str:
        return self._config.provider

    @property
    def config(self) -> RunConfiguration:
        return self._config

    @property
    def verbose(self) -> int:
        return self._core.verbose

    def set_model(self, model: str) -> ChatThread:
        """Switch models. A bare model id keeps the current provider."""
        provider, model_id = self._split_model(model)
        self._apply_config(provider=provider, model=model_id)
        return self

    def set_temperature(self, temperature: float) -> ChatThread:
        self._apply_config(temperature=temperature)
        return self

    def set_max_tokens(self, max_tokens: int | None) -> ChatThread:
        self._apply_config(max_tokens=max_tokens)
        return self

    def set_timeout(self, timeout: float | None) -> ChatThread:
        """Set the per-request timeout in seconds."""
        self._apply_config(timeout=timeout)
        return self

    def set_json_mode(self, enabled: bool = True) -> ChatThread:
        self._apply_config(json_mode=enabled)
        return self

    def set_verbose(self, verbose: int) -> ChatThread:
        self._core.verbose = _check_verbose(verbose)
        return self

    def _split_model(self, model: str) -> tuple[str, str]:
        if ":" in model:
            return resolve_model_provider(model, None)
        return self._config.provider, model

    def _apply_config(self, **changes: Any) -> None:
        self._config = self._config.resolve(**changes)
        self._core.provider = self._config.provider
        self._core.model = self._config.model

    def _resolve_config(self, overrides: dict[str, Any], *, default_model: str | None = None) -> RunConfiguration:
        provider = overrides.pop("provider", None)
        model = overrides.pop("model", None)
        if model is None and default_model:
            model = default_model
            if provider:
                # An explicit provider keeps the default's model id only.
                _, model = resolve_model_provider(default_model, None)
        if model:
            if provider or ":" in model:
                provider, model = resolve_model_provider(model, provider)
            else:
                provider = self._config.provider
            overrides["model"] = model
        if provider:
            overrides["provider"] = provider
        return self._config.resolve(**overrides)

    # Transcript

    @property
    def messages(self) -> tuple[AnyMessage, ...]:
        return self._transcript.snapshot()

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    def set_messages(self, messages: Iterable[MessageInput]) -> ChatThread:
        self._transcript.set_messages(messages)
        return self

    def append_message(self, message: MessageInput | Iterable[MessageInput]) -> ChatThread:
        self._transcript.append(message)
        return self

    def append_user_message(self, content: str | list[dict[str, Any]]) -> ChatThread:
        self._transcript.append(UserMessage(content=content))
        return self

    def append_system_message(self, content: str) -> ChatThread:
        self._transcript.append(SystemMessage(content=content))
        return self

    # Tools

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def tools(self) -> list[Tool]:
        return self._registry.declarations

    def set_tools(self, tools: Iterable[ToolLike]) -> ChatThread:
        self._registry.set_tools(tools)
        return self

    def add_tool(self, item: ToolLike) -> ChatThread:
        self._registry.register(item)
        return self

    def add_tool_with_handler(self, item: ToolLike, handler: ToolHandler) -> ChatThread:
        self._registry.register_with_handler(item, handler)
        return self

    def set_tool_handler(self, name: str, handler: ToolHandler) -> ChatThread:
        self._registry.set_handler(name, handler)
        return self

    def set_tool_handlers(self, handlers: Mapping[str, ToolHandler]) -> ChatThread:
        self._registry.set_handlers(handlers)
        return self

    # Observers

    def attach_observer(self, observer: ThreadObserver) -> ChatThread:
        self._hub.attach(observer)
        return self

    def detach_observer(self, observer: ThreadObserver) -> ChatThread:
        self._hub.detach(observer)
        return self

    def set_stream_sink(self, sink: StreamSink | None) -> ChatThread:
        """Default sink for ``run_prompt_stream`` calls that do not pass one."""
        self._stream_sink = sink
        return self

    # Results

    @property
    def usage(self) -> ThreadUsage:
        return self._ledger.usage

    @property
    def completions(self) -> tuple[Completion, ...]:
        return tuple(self._ledger.completions)

    @property
    def last_result(self) -> LastResult:
        return self._ledger.last_result

    @property
    def is_streaming(self) -> bool:
        return self._controller.active is not None

    # Runs

    async def run_prompt(self, **overrides: Any) -> RunStatus:
        """Send the transcript and append the reply.

        Returns ``RunStatus.TOOL_RESULTS_PENDING`` when the reply asked for
        tools; their results are already in the transcript and the caller
        should run again for the model's answer.
        """
        config = self._resolve_config(overrides)
        with span("promptthread.run_prompt", provider=config.provider, model=config.model):
            return await self._completion_runner.run(config)

    async def run_prompt_stream(self, sink: StreamSink | None = None, **overrides: Any) -> StreamOutcome:
        config = self._resolve_config(overrides)
        with span("promptthread.run_prompt_stream", provider=config.provider, model=config.model):
            return await self._stream_runner.run(config, sink or self._stream_sink)

    def cancel(self) -> bool:
        """Abort the stream in flight, if any."""
        cancelled = self._controller.cancel()
        if cancelled and self._core.verbose > 1:
            logger.debug("stream cancelled")
        return cancelled

    abort_stream = cancel

    async def run_vision_prompt(
        self,
        text: str,
        image_url: str,
        detail: str | None = None,
        **overrides: Any,
    ) -> Completion:
        config = self._resolve_config(overrides, default_model=DEFAULT_VISION_MODEL)
        with span("promptthread.run_vision_prompt", provider=config.provider, model=config.model):
            await self._completion_runner.run_vision(text, image_url, detail, config)
        return self._ledger.last_result.as_vision()

    async def run_embedding_prompt(self, text: str | list[str], model: str | None = None) -> list[float]:
        provider, model_id = resolve_model_provider(model or DEFAULT_EMBEDDING_MODEL, None)
        with span("promptthread.run_embedding_prompt", provider=provider, model=model_id):
            response = await self._transport.embed(text, provider=provider, model=model_id)
        self._ledger.usage.add(extract_usage(response))
        self._ledger.record(LastResult.embedding(extract_embedding(response)))
        return self._ledger.last_result.as_embedding()

    async def run_speech_prompt(
        self,
        text: str,
        model: str = "tts-1",
        voice: str = "alloy",
        response_format: str = "mp3",
        speed: float | None = None,
    ) -> bytes:
        with span("promptthread.run_speech_prompt", model=model, voice=voice):
            audio = await self._media.speech(
                text, model=model, voice=voice, response_format=response_format, speed=speed
            )
        self._ledger.record(LastResult.speech(audio))
        return audio

    async def run_moderation_prompt(self, text: str) -> Any:
        with span("promptthread.run_moderation_prompt"):
            verdict = await self._media.moderate(text)
        self._ledger.record(LastResult.moderation(verdict))
        return verdict

    async def run_image_prompt(self, prompt: str, **options: Any) -> Any:
        with span("promptthread.run_image_prompt", model=options.get("model")):
            image = await self._media.generate_image(prompt, **options)
        self._ledger.record(LastResult.image(image))
        return image

    # Persistence

    def snapshot(self) -> dict[str, Any]:
        """Every mutable field as a flat dict. Handlers are included as-is."""
        return {
            "model": self._config.model,
            "provider": self._config.provider,
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "timeout": self._config.timeout,
            "json_mode": self._config.json_mode,
            "verbose": self._core.verbose,
            "messages": self._transcript.payload(),
            "tools": self._registry.schemas(),
            "handlers": self._registry.handlers,
            "usage": self._ledger.usage.as_dict(),
            "completions": [completion.as_dict() for completion in self._ledger.completions],
        }

    def restore(self, state: Mapping[str, Any]) -> ChatThread:
        """Apply a snapshot. Nothing changes unless every key is known and every value parses."""
        unknown = sorted(set(state) - SNAPSHOT_KEYS)
        if unknown:
            raise SnapshotError(f"Unknown snapshot keys: {', '.join(unknown)}")

        try:
            config_changes: dict[str, Any] = {
                key: state[key] for key in ("temperature", "max_tokens", "timeout", "json_mode") if key in state
            }
            if "model" in state or "provider" in state:
                model = state.get("model", self._config.model)
                if ":" in model:
                    provider, model_id = resolve_model_provider(model, None)
                else:
                    provider, model_id = state.get("provider", self._config.provider), model
                config_changes.update(provider=provider, model=model_id)
            config = self._config.resolve(**config_changes)
            verbose = _check_verbose(state.get("verbose", self._core.verbose))
            messages = Transcript(state["messages"]).snapshot() if "messages" in state else None
            tools = [to_tool(item) for item in state["tools"]] if "tools" in state else None
            handlers = dict(state["handlers"]) if "handlers" in state else None
            if handlers is not None:
                for name, handler in handlers.items():
                    if not callable(handler):
                        raise TypeError(f"Handler for tool '{name}' must be callable.")
            usage = ThreadUsage.from_dict(state["usage"]) if "usage" in state else None
            completions = (
                [Completion.from_dict(item) for item in state["completions"]] if "completions" in state else None
            )
        except SnapshotError:
            raise
        except (ThreadError, ValueError, TypeError, KeyError) as exc:
            raise SnapshotError(f"Invalid snapshot: {exc}", cause=exc) from exc

        self._config = config
        self._core.provider = config.provider
        self._core.model = config.model
        self._core.verbose = verbose
        if tools is not None:
            self._registry.set_tools(tools)
        if handlers is not None:
            self._registry.set_handlers(handlers)
        if usage is not None:
            self._ledger.usage = usage
        if completions is not None:
            self._ledger.completions = completions
        if messages is not None:
            self._transcript.set_messages(messages)
        return self

    def to_json(self) -> str:
        state = self.snapshot()
        state.pop("handlers")
        return json.dumps(state)

    def from_json(self, text: str) -> ChatThread:
        """Restore from ``to_json`` output. Current handler bindings are kept."""
        try:
            state = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SnapshotError("Snapshot is not valid JSON.", cause=exc) from exc
        if not isinstance(state, dict):
            raise SnapshotError("Snapshot JSON must be an object.")
        return self.restore(state)


__all__ = ["SNAPSHOT_KEYS", "ChatThread"]
