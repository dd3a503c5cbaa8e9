"""Telemetry provider system for recall-proxy."""

from recall.telemetry.base import (
    Attr,
    RecordingTelemetryProvider,
    Span,
    SpanKind,
    TelemetryProvider,
)
from recall.telemetry.console import ConsoleTelemetryProvider
from recall.telemetry.mock import MockTelemetryProvider
from recall.telemetry.noop import NoopTelemetryProvider

__all__ = [
    "Attr",
    "ConsoleTelemetryProvider",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "RecordingTelemetryProvider",
    "Span",
    "SpanKind",
    "TelemetryProvider",
]
