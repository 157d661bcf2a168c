"""Client helpers for promptthread."""

from promptthread.clients.completion import CompletionRunner
from promptthread.clients.media import MediaTransport, OpenAIMediaTransport
from promptthread.clients.request import ChatRequest, build_request
from promptthread.clients.stream import CancellationController, StreamRunner, StreamSession
from promptthread.clients.transport import AnyLLMTransport, ModelTransport

__all__ = [
    "AnyLLMTransport",
    "CancellationController",
    "ChatRequest",
    "CompletionRunner",
    "MediaTransport",
    "ModelTransport",
    "OpenAIMediaTransport",
    "StreamRunner",
    "StreamSession",
    "build_request",
]
