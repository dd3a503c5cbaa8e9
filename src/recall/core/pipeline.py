"""Pipeline: runs one source and ships its scrubbed messages.

Each message goes source -> channel -> scrub -> transmitter. The pipeline
owns neither end of the channel: the source closes it, the pipeline only
reads it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from recall.core.config import PipelineConfig
from recall.models.message import Message
from recall.scrubber.engine import Scrubber
from recall.sources.base import Source
from recall.sources.channel import DEFAULT_CHANNEL_SIZE, MessageChannel
from recall.telemetry.base import Attr, SpanKind, TelemetryProvider
from recall.telemetry.noop import NoopTelemetryProvider
from recall.transmitter.base import Transmitter
from recall.transmitter.http import HTTPTransmitter

logger = logging.getLogger("recall.pipeline")


@dataclass
class RunStats:
    """Counters for one :meth:`Pipeline.run`."""

    messages: int = 0
    drained: int = 0
    cancelled: bool = False
    session_id: str = ""
    """Last non-empty session id seen on a delivered message."""


class Pipeline:
    """Consumes a source's messages until it finishes or is cancelled.

    On source completion every message still buffered is processed before
    returning, and the source's error (if any) is re-raised. On
    cancellation the pipeline stops taking messages at once, lets the source
    shut down, and returns normally.

    Example:
        pipeline = Pipeline(HTTPTransmitter(url), scrubber=Scrubber(env_secrets=secrets))
        await pipeline.run(source, cancel)
    """

    def __init__(
        self,
        transmitter: Transmitter,
        *,
        scrubber: Scrubber | None = None,
        queue_size: int = DEFAULT_CHANNEL_SIZE,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._transmitter = transmitter
        self._scrubber = scrubber or Scrubber()
        self._queue_size = queue_size
        self._telemetry = telemetry or NoopTelemetryProvider()
        self.last_run: RunStats | None = None

    @property
    def scrubber(self) -> Scrubber:
        return self._scrubber

    def process(self, message: Message) -> str:
        """Scrub *message* and hand it to the transmitter. Returns the scrubbed text."""
        text = self._scrubber.scrub(message.raw)
        self._transmitter.send(message, text)
        return text

    async def run(self, source: Source, cancel: asyncio.Event | None = None) -> None:
        """Run *source* to completion, delivering everything it captures.

        Raises:
            Exception: Whatever the source raised, after buffered messages
                have been delivered. Never raised after *cancel* is set.
        """
        if cancel is None:
            cancel = asyncio.Event()
        stats = RunStats()
        self.last_run = stats
        attrs = {Attr.SOURCE_NAME: source.name}
        span_id = self._telemetry.start_span(
            SpanKind.SOURCE_RUN, f"pipeline.{source.name}", attributes=attrs
        )
        try:
            await self._consume(source, MessageChannel(self._queue_size), cancel, stats)
        except Exception as exc:
            self._telemetry.end_span(
                span_id, status="error", error_message=str(exc), attributes=self._span_attrs(stats)
            )
            raise
        finally:
            self._telemetry.record_metric(
                "recall.pipeline.messages", float(stats.messages), attributes=attrs
            )
            self._telemetry.record_metric(
                "recall.pipeline.drained", float(stats.drained), attributes=attrs
            )
        self._telemetry.end_span(span_id, attributes=self._span_attrs(stats))

    async def _consume(
        self,
        source: Source,
        channel: MessageChannel,
        cancel: asyncio.Event,
        stats: RunStats,
    ) -> None:
        source_task = asyncio.create_task(source.run(channel, cancel), name=f"source:{source.name}")
        cancel_wait = asyncio.create_task(cancel.wait(), name="pipeline:cancel")
        try:
            while True:
                receive = asyncio.ensure_future(channel.receive())
                await asyncio.wait(
                    {receive, cancel_wait, source_task}, return_when=asyncio.FIRST_COMPLETED
                )

                # Cancellation wins even over a message that is ready.
                if cancel.is_set():
                    await _discard(receive)
                    stats.cancelled = True
                    logger.info("Cancelled, waiting for source %s to stop", source.name)
                    await self._await_stopped(source_task)
                    return

                if receive.done():
                    message = receive.result()
                    if message is None:
                        # Closed and empty: the source is on its way out.
                        await source_task
                        return
                    self._deliver(message, stats)
                    continue

                await _discard(receive)
                stats.drained = self._drain(channel, stats)
                if stats.drained:
                    logger.debug("Drained %d buffered messages", stats.drained)
                source_task.result()
                return
        finally:
            cancel_wait.cancel()
            if not source_task.done():
                source_task.cancel()
            await asyncio.gather(cancel_wait, source_task, return_exceptions=True)

    def _drain(self, channel: MessageChannel, stats: RunStats) -> int:
        drained = 0
        while (message := channel.receive_nowait()) is not None:
            self._deliver(message, stats)
            drained += 1
        return drained

    def _deliver(self, message: Message, stats: RunStats) -> None:
        self.process(message)
        stats.messages += 1
        if message.session_id:
            stats.session_id = message.session_id

    async def _await_stopped(self, source_task: asyncio.Task[None]) -> None:
        try:
            await source_task
        except Exception as exc:
            logger.warning("Source failed while stopping: %s", exc)

    @staticmethod
    def _span_attrs(stats: RunStats) -> dict[str, object]:
        attrs: dict[str, object] = {
            Attr.PIPELINE_MESSAGES: stats.messages,
            Attr.PIPELINE_DRAINED: stats.drained,
            Attr.PIPELINE_CANCELLED: stats.cancelled,
        }
        if stats.session_id:
            attrs[Attr.SESSION_ID] = stats.session_id
        return attrs


async def _discard(task: asyncio.Future[Message | None]) -> None:
    """Cancel a pending receive; a receive cancelled in time loses nothing."""
    if not task.done():
        task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def run_pipeline(
    source: Source,
    config: PipelineConfig,
    cancel: asyncio.Event | None = None,
    *,
    telemetry: TelemetryProvider | None = None,
) -> None:
    """Run *source* through a pipeline that delivers to ``config.server_url``.

    The transmitter is closed on the way out, giving in-flight deliveries
    up to one delivery timeout to finish.
    """
    transmitter = HTTPTransmitter(
        config.server_url, timeout=config.delivery_timeout, telemetry=telemetry
    )
    pipeline = Pipeline(
        transmitter,
        scrubber=Scrubber(env_secrets=config.env_secrets),
        queue_size=config.queue_size,
        telemetry=telemetry,
    )
    try:
        await pipeline.run(source, cancel)
    finally:
        await transmitter.close()
