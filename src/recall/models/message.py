"""The captured-traffic record passed between sources and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from recall.models.enums import Direction


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Message:
    """One line of traffic as a source observed it.

    Sources never scrub or rewrite ``raw``; redaction happens downstream
    and always produces new text.
    """

    raw: str
    """Exact captured text, without its line terminator."""

    direction: Direction
    """``upstream`` (client to agent), ``downstream`` or ``log``."""

    session_id: str = ""
    """Session current when the line was captured. Empty if none seen yet."""

    source_name: str = ""
    """Name of the source that produced this message, e.g. ``"acp"``."""

    captured_at: datetime = field(default_factory=_utcnow)
    """When the line was observed."""
