"""Streaming runs and their cancellation."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import AsyncIterator

from promptthread.clients.request import build_request
from promptthread.clients.transport import ModelTransport
from promptthread.core.config import RunConfiguration
from promptthread.core.errors import SessionAlreadyActiveError
from promptthread.core.execution import ProviderCore
from promptthread.core.observers import END_OF_STREAM, ObserverHub, StreamSink
from promptthread.core.results import Completion, LastResult, RunLedger, StreamOutcome
from promptthread.core.transcript import Transcript

logger = logging.getLogger(__name__)


class StreamSession:
    """Ownership of one in-flight stream.

    Fragments are pulled through ``next_fragment``, which races the pending
    read against the cancel signal so a stalled transport does not hold the
    run open after ``cancel``.
    """

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex
        self._stream: AsyncIterator[str] | None = None
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def attach(self, stream: AsyncIterator[str]) -> None:
        self._stream = stream

    def cancel(self) -> None:
        self._cancelled.set()

    async def next_fragment(self) -> str | None:
        """Return the next fragment, or None once the stream ends or the session is cancelled."""
        if self._stream is None or self.cancelled:
            return None
        fetch = asyncio.ensure_future(_pull(self._stream))
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait({fetch, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not fetch.done():
                fetch.cancel()
                await asyncio.gather(fetch, return_exceptions=True)
        if self.cancelled:
            if not fetch.cancelled():
                fetch.exception()
            return None
        try:
            return fetch.result()
        except StopAsyncIteration:
            return None

    async def aclose(self) -> None:
        stream, self._stream = self._stream, None
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()


async def _pull(stream: AsyncIterator[str]) -> str:
    return await stream.__anext__()


class CancellationController:
    """Holds the session of the stream currently open on a thread, if any."""

    def __init__(self) -> None:
        self._session: StreamSession | None = None

    @property
    def active(self) -> StreamSession | None:
        return self._session

    def open(self) -> StreamSession:
        if self._session is not None:
            raise SessionAlreadyActiveError(self._session.run_id)
        self._session = StreamSession()
        return self._session

    def release(self, session: StreamSession) -> None:
        if self._session is session:
            self._session = None

    def cancel(self) -> bool:
        """Stop the active stream. Returns False when nothing was streaming."""
        session, self._session = self._session, None
        if session is None:
            return False
        session.cancel()
        return True


class StreamRunner:
    """Drive one streaming exchange, feeding fragments to a sink as they arrive.

    Cancelling the session interrupts a pending read on the transport stream,
    and a cancelled run discards what it accumulated.
    """

    def __init__(
        self,
        core: ProviderCore,
        transport: ModelTransport,
        transcript: Transcript,
        ledger: RunLedger,
        controller: CancellationController,
        hub: ObserverHub,
    ) -> None:
        self._core = core
        self._transport = transport
        self._transcript = transcript
        self._ledger = ledger
        self._controller = controller
        self._hub = hub

    async def run(self, config: RunConfiguration, sink: StreamSink | None = None) -> StreamOutcome:
        session = self._controller.open()
        opened = False
        try:
            request = build_request(self._transcript.snapshot(), None, config, stream=True)
            stream = await self._transport.stream(request)
            session.attach(stream)
            opened = True

            total = ""
            while (fragment := await session.next_fragment()) is not None:
                total += fragment
                await _deliver(sink, fragment)
                self._hub.fragment(fragment)
                self._hub.text(total)

            if session.cancelled:
                self._ledger.clear_last_result()
                if self._core.verbose > 1:
                    logger.debug("stream %s aborted after %d chars", session.run_id, len(total))
                return StreamOutcome.ABORTED

            completion = Completion.from_stream(total, config.model)
            self._transcript.append(completion.message)
            self._ledger.record(LastResult.chat(completion), completion)
            if self._core.verbose > 1:
                logger.debug("stream %s completed with %d chars", session.run_id, len(total))
            return StreamOutcome.COMPLETED
        finally:
            self._controller.release(session)
            try:
                await session.aclose()
            finally:
                if opened:
                    await _deliver(sink, END_OF_STREAM)
                    self._hub.stream_end()


async def _deliver(sink: StreamSink | None, value: object) -> None:
    if sink is None:
        return
    result = sink(value)
    if inspect.isawaitable(result):
        await result
