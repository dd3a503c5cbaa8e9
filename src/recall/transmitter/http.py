"""HTTP transmitter: POSTs each scrubbed message to the collector as JSON."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from recall.models.delivery import DeliveryPayload, DeliveryResult
from recall.models.message import Message
from recall.telemetry.base import Attr, SpanKind, TelemetryProvider
from recall.telemetry.noop import NoopTelemetryProvider
from recall.transmitter.base import Transmitter

logger = logging.getLogger("recall.transmitter")

DEFAULT_TIMEOUT = 5.0


class HTTPTransmitter(Transmitter):
    """Fire-and-forget delivery over HTTP.

    Every ``send`` schedules its own POST and returns immediately, so a
    slow or unreachable collector never stalls the proxied conversation.
    Each attempt is bounded by *timeout*; failures are logged at WARNING
    and the message is dropped.
    """

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        telemetry: TelemetryProvider | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._server_url = server_url
        self._timeout = timeout
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._telemetry = telemetry or NoopTelemetryProvider()
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)
        self._pending: set[asyncio.Task[DeliveryResult]] = set()

    @property
    def server_url(self) -> str:
        return self._server_url

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._pending)

    def send(self, message: Message, text: str) -> None:
        payload = DeliveryPayload.from_message(message, text)
        task = asyncio.get_running_loop().create_task(
            self.deliver(payload), name=f"deliver:{message.direction}"
        )
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[DeliveryResult]) -> None:
        """Done-callback: forget the task and log anything unexpected."""
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Delivery task %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def deliver(self, payload: DeliveryPayload) -> DeliveryResult:
        """POST one payload and report the outcome. Never raises on I/O errors."""
        span_id = self._telemetry.start_span(
            SpanKind.DELIVERY,
            "transmitter.deliver",
            attributes={Attr.DIRECTION: str(payload.direction)},
            session_id=payload.session_id or None,
        )
        result = await self._post(payload)
        attrs: dict[str, Any] = {Attr.DELIVERY_SUCCESS: result.success}
        if result.status_code is not None:
            attrs[Attr.DELIVERY_STATUS_CODE] = result.status_code
        if result.success:
            self._telemetry.end_span(span_id, attributes=attrs)
        else:
            attrs[Attr.DELIVERY_ERROR] = result.error
            self._telemetry.end_span(
                span_id, status="error", error_message=result.error, attributes=attrs
            )
        return result

    async def _post(self, payload: DeliveryPayload) -> DeliveryResult:
        try:
            resp = await self._client.post(
                self._server_url,
                content=payload.model_dump_json(),
                headers=self._headers,
            )
        except httpx.TimeoutException:
            logger.warning("Delivery to %s timed out", self._server_url)
            return DeliveryResult(success=False, error="timeout")
        except httpx.HTTPError as exc:
            logger.warning("Delivery to %s failed: %s", self._server_url, exc)
            return DeliveryResult(success=False, error=str(exc))

        if not resp.is_success:
            logger.warning("Collector returned HTTP %d", resp.status_code)
            return DeliveryResult(
                success=False,
                status_code=resp.status_code,
                error=f"http_{resp.status_code}",
            )
        return DeliveryResult(success=True, status_code=resp.status_code)

    async def close(self, timeout: float | None = None) -> None:
        """Wait up to *timeout* for in-flight deliveries, then close the client.

        *timeout* defaults to the per-request timeout. Deliveries still
        running after the wait are cancelled.
        """
        if timeout is None:
            timeout = self._timeout
        if self._pending:
            _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
            if still_running:
                logger.debug("Abandoning %d in-flight deliveries", len(still_running))
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)
        await self._client.aclose()
