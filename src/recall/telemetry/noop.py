"""No-op telemetry provider, the default."""

from __future__ import annotations

from typing import Any

from recall.telemetry.base import SpanKind, TelemetryProvider


class NoopTelemetryProvider(TelemetryProvider):
    """Discards everything. Span ids are always the empty string."""

    @property
    def name(self) -> str:
        return "noop"

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        attributes: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        return ""

    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        pass

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        pass
