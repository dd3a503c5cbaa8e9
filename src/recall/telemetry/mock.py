"""Mock telemetry provider for test assertions."""

from __future__ import annotations

from typing import Any

from recall.telemetry.base import RecordingTelemetryProvider, Span, SpanKind


class MockTelemetryProvider(RecordingTelemetryProvider):
    """Keeps every finished span and metric in lists.

    Example::

        telemetry = MockTelemetryProvider()
        await Pipeline(transmitter, telemetry=telemetry).run(source)
        [run] = telemetry.get_spans(SpanKind.SOURCE_RUN)
        assert run.attributes["pipeline.messages"] == 3
    """

    def __init__(self) -> None:
        super().__init__()
        self.spans: list[Span] = []
        self.metrics: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "mock"

    def _finish(self, span: Span) -> None:
        self.spans.append(span)

    def get_spans(self, kind: SpanKind) -> list[Span]:
        return [s for s in self.spans if s.kind == kind]

    def get_metrics(self, name: str) -> list[dict[str, Any]]:
        return [m for m in self.metrics if m["name"] == name]

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.metrics.append(
            {"name": name, "value": value, "unit": unit, "attributes": dict(attributes or {})}
        )

    def reset(self) -> None:
        self._open.clear()
        self.spans.clear()
        self.metrics.clear()
