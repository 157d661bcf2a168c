"""Observability helpers for promptthread."""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any

try:  # pragma: no cover - optional dependency
    import logfire  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - optional dependency
    logfire = None

from promptthread.core.errors import ConfigurationError

_INSTRUMENTED = False


def span(name: str, **attributes: Any):
    if not _INSTRUMENTED or logfire is None:
        return nullcontext()
    return logfire.span(name, **attributes)


def instrument_promptthread() -> None:
    """Enable Logfire spans around thread runs after users configure Logfire themselves."""
    if logfire is None:
        raise ConfigurationError(
            "Logfire is not installed. Install with 'promptthread[observability]' to enable tracing.",
        )
    global _INSTRUMENTED
    _INSTRUMENTED = True
