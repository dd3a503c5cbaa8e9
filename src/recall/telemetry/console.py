"""Console telemetry provider: one log line per finished span or metric."""

from __future__ import annotations

import logging
from typing import Any

from recall.telemetry.base import RecordingTelemetryProvider, Span

logger = logging.getLogger("recall.telemetry")


def _format_attrs(attributes: dict[str, Any]) -> str:
    if not attributes:
        return ""
    return " [" + ", ".join(f"{k}={v}" for k, v in attributes.items()) + "]"


class ConsoleTelemetryProvider(RecordingTelemetryProvider):
    """Logs to ``recall.telemetry``.

    Output follows the logging configuration, which the CLI points at
    stderr; stdout carries protocol traffic only.

    Example::

        pipeline = Pipeline(transmitter, telemetry=ConsoleTelemetryProvider())
    """

    def __init__(self, *, level: int = logging.DEBUG) -> None:
        super().__init__()
        self._level = level

    @property
    def name(self) -> str:
        return "console"

    def _finish(self, span: Span) -> None:
        duration = f" {span.duration_ms:.1f}ms" if span.duration_ms is not None else ""
        attrs = _format_attrs(span.attributes)
        if span.status == "error":
            logger.log(
                self._level,
                "[SPAN ERROR] %s %s%s%s error=%s",
                span.kind,
                span.name,
                duration,
                attrs,
                span.error_message or "unknown",
            )
        else:
            logger.log(self._level, "[SPAN] %s %s%s%s", span.kind, span.name, duration, attrs)

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        suffix = f" {unit}" if unit else ""
        logger.log(
            self._level, "[METRIC] %s = %.2f%s%s", name, value, suffix, _format_attrs(attributes or {})
        )

    def close(self) -> None:
        if self.open_spans:
            logger.warning("Telemetry closed with %d active spans", self.open_spans)
        self._open.clear()
