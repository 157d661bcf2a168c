"""Sequential execution of model-requested tool calls."""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter, ValidationError

from promptthread.core.errors import ThreadError, ToolArgumentsError, ToolExecutionError
from promptthread.core.messages import ToolCall, ToolMessage
from promptthread.core.telemetry import span
from promptthread.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_RESULT_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@dataclass
class ToolBatch:
    """Progress of one assistant message's tool calls."""

    calls: list[ToolCall]
    results: list[ToolMessage] = field(default_factory=list)

    @property
    def executed(self) -> int:
        return len(self.results)


def serialize_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if result is None:
        return ""
    return _RESULT_ADAPTER.dump_json(result).decode()


def parse_arguments(call: ToolCall) -> dict[str, Any]:
    raw = call.arguments.strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolArgumentsError(call.name, f"Tool '{call.name}' arguments are not valid JSON.", exc) from exc
    if not isinstance(parsed, dict):
        raise ToolArgumentsError(call.name, f"Tool '{call.name}' arguments must be an object.")
    return parsed


class ToolExecutor:
    """Run tool calls one at a time, in order, appending each result as it lands.

    Handlers may be plain or async callables; awaitables are awaited before
    the next call starts so the tool messages always follow the order of the
    calls. The first failure stops the batch; results already appended stay.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def execute(self, batch: ToolBatch, append: Callable[[ToolMessage], None]) -> ToolBatch:
        for call in batch.calls:
            handler = self._registry.handler_for(call.name, call_id=call.id)
            arguments = parse_arguments(call)
            logger.debug("tool call %s(%s) id=%s", call.name, arguments, call.id)
            with span("promptthread.tool", tool=call.name, call_id=call.id):
                result = await self._invoke(call, handler, arguments)
            message = ToolMessage(tool_call_id=call.id, name=call.name, content=serialize_result(result))
            append(message)
            batch.results.append(message)
        return batch

    @staticmethod
    async def _invoke(call: ToolCall, handler: Callable[..., Any], arguments: dict[str, Any]) -> Any:
        try:
            result = handler(**arguments)
            if inspect.isawaitable(result):
                result = await result
        except ThreadError:
            raise
        except ValidationError as exc:
            raise ToolArgumentsError(
                call.name,
                f"Tool '{call.name}' argument validation failed: {exc.errors(include_url=False)}",
                exc,
            ) from exc
        except Exception as exc:
            raise ToolExecutionError(call.name, exc) from exc
        return result
