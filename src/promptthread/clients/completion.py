"""Non-streaming request/response runs."""

from __future__ import annotations

import logging
from dataclasses import replace

from promptthread.clients.request import build_request
from promptthread.clients.transport import ModelTransport
from promptthread.core.config import RunConfiguration
from promptthread.core.execution import ProviderCore
from promptthread.core.messages import UserMessage
from promptthread.core.results import LastResult, RunLedger, RunStatus
from promptthread.core.transcript import Transcript
from promptthread.tools.executor import ToolBatch, ToolExecutor
from promptthread.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class CompletionRunner:
    """Drive one full request/response exchange and resolve any tool calls it asks for.

    The runner never loops: when the reply carries tool calls their results
    are appended and ``RunStatus.TOOL_RESULTS_PENDING`` is returned, and the
    caller runs again to get the model's follow-up.
    """

    def __init__(
        self,
        core: ProviderCore,
        transport: ModelTransport,
        transcript: Transcript,
        registry: ToolRegistry,
        ledger: RunLedger,
    ) -> None:
        self._core = core
        self._transport = transport
        self._transcript = transcript
        self._registry = registry
        self._ledger = ledger
        self._executor = ToolExecutor(registry)

    async def run(self, config: RunConfiguration) -> RunStatus:
        request = build_request(self._transcript.snapshot(), self._registry.payload(), config, stream=False)
        completion = await self._transport.complete(request)
        self._transcript.append(completion.message)

        calls = completion.message.tool_calls
        if not calls:
            self._ledger.record(LastResult.chat(completion), completion)
            self._debug_info("run_prompt done")
            return RunStatus.DONE

        if self._core.verbose > 1:
            logger.debug("tools to call: %s", [call.name for call in calls])
        batch = ToolBatch(calls=list(calls))
        try:
            await self._executor.execute(batch, self._transcript.append)
        finally:
            self._ledger.record(LastResult.chat(completion), completion, tool_calls=batch.executed)
            self._debug_info("run_prompt tool batch")
        return RunStatus.TOOL_RESULTS_PENDING

    async def run_vision(
        self,
        text: str,
        image_url: str,
        detail: str | None,
        config: RunConfiguration,
    ) -> None:
        image: dict[str, str] = {"url": image_url}
        if detail is not None:
            image["detail"] = detail
        prompt = UserMessage(
            content=[
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": image},
            ]
        )
        # Image prompts are answered as prose, never in JSON mode.
        request = replace(build_request([prompt], None, config, stream=False), response_format=None)
        completion = await self._transport.complete(request)
        self._transcript.append(completion.message)
        self._ledger.record(LastResult.vision(completion), completion)
        self._debug_info("run_vision_prompt done")

    def _debug_info(self, label: str) -> None:
        if self._core.verbose < 2:
            return
        usage = self._ledger.usage
        logger.debug(
            "%s: messages=%d completions=%d usage=%s",
            label,
            len(self._transcript),
            len(self._ledger.completions),
            usage.as_dict(),
        )
