"""Telemetry provider ABC, Span dataclass, SpanKind enum, and Attr constants."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SpanKind(StrEnum):
    """What a span measures."""

    SOURCE_RUN = "source.run"
    DELIVERY = "transmitter.delivery"
    CUSTOM = "custom"


class Attr:
    """Attribute keys shared by spans and metrics."""

    SOURCE_NAME = "source_name"
    SESSION_ID = "session_id"
    DIRECTION = "direction"

    PIPELINE_MESSAGES = "pipeline.messages"
    PIPELINE_DRAINED = "pipeline.drained"
    PIPELINE_CANCELLED = "pipeline.cancelled"

    DELIVERY_SUCCESS = "delivery.success"
    DELIVERY_STATUS_CODE = "delivery.status_code"
    DELIVERY_ERROR = "delivery.error"


@dataclass
class Span:
    """One timed operation: a source run or a delivery attempt."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    kind: SpanKind = SpanKind.CUSTOM
    name: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    status: str = "ok"
    error_message: str | None = None
    session_id: str | None = None

    @property
    def duration_ms(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000


class TelemetryProvider(ABC):
    """Receives spans and metrics from the pipeline and transmitter.

    Providers must be cheap and must never raise into the caller: they run
    on the hot path of every proxied line. The default
    :class:`~recall.telemetry.noop.NoopTelemetryProvider` does nothing.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        attributes: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        """Open a span and return its id."""
        ...

    @abstractmethod
    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Close *span_id*, merging in any final *attributes*."""
        ...

    @abstractmethod
    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None: ...

    def close(self) -> None:  # noqa: B027
        """Flush anything buffered."""


class RecordingTelemetryProvider(TelemetryProvider):
    """Keeps open spans in memory and hands finished ones to :meth:`_finish`.

    Subclasses decide what finishing means (log it, store it) and what to
    do with metrics.
    """

    def __init__(self) -> None:
        self._open: dict[str, Span] = {}

    @property
    def open_spans(self) -> int:
        return len(self._open)

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        attributes: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        span = Span(kind=kind, name=name, attributes=dict(attributes or {}), session_id=session_id)
        self._open[span.id] = span
        return span.id

    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        span = self._open.pop(span_id, None)
        if span is None:
            return
        span.end_time = datetime.now(UTC)
        span.status = status
        span.error_message = error_message
        span.attributes.update(attributes or {})
        self._finish(span)

    @abstractmethod
    def _finish(self, span: Span) -> None: ...
