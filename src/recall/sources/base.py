"""Base abstraction for traffic sources."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import StrEnum, unique

from pydantic import BaseModel

from recall.models.enums import Direction
from recall.models.message import Message
from recall.sources.channel import MessageChannel


@unique
class SourceStatus(StrEnum):
    """Lifecycle status of a source."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


class SourceHealth(BaseModel):
    """Health information for a source."""

    status: SourceStatus = SourceStatus.STOPPED
    started_at: datetime | None = None
    last_message_at: datetime | None = None
    messages_captured: int = 0
    error: str | None = None


class Source(ABC):
    """Anything that produces captured agent traffic.

    A source knows how to observe an environment (a subprocess's stdio, a
    log file, a socket) and turn what it sees into :class:`Message` objects.
    It knows nothing about scrubbing or delivery; that is the pipeline's job.

    Contract for :meth:`run`:

    1. Emit messages into ``out`` in observation order.
    2. Return once the underlying activity ends, or promptly after
       ``cancel`` is set.
    3. Close ``out`` exactly once, on every path, including failures.
    4. Raise only when the activity could not start or terminated
       abnormally. A clean or requested stop returns ``None``.

    Example:
        class TailSource(Source):
            @property
            def name(self) -> str:
                return "tail"

            async def run(self, out: MessageChannel, cancel: asyncio.Event) -> None:
                try:
                    async for line in follow(self._path, cancel):
                        await out.send(Message(raw=line, direction=Direction.LOG,
                                               source_name=self.name))
                finally:
                    out.close()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier for this kind of source, e.g. ``"acp"``.

        Included in every delivered payload for server-side routing.
        """
        ...

    @abstractmethod
    async def run(self, out: MessageChannel, cancel: asyncio.Event) -> None:
        """Capture traffic into *out* until done or *cancel* is set."""
        ...

    @property
    def status(self) -> SourceStatus:
        """Current lifecycle status.

        Default implementation returns STOPPED.
        """
        return SourceStatus.STOPPED

    async def healthcheck(self) -> SourceHealth:
        """Return health information for monitoring."""
        return SourceHealth(status=self.status)


class BaseSource(Source):
    """Convenience base class with common source bookkeeping.

    Provides:
    - Status tracking
    - Capture counting and timestamps
    - A ``_capture`` helper that stamps source name and capture time
    """

    def __init__(self) -> None:
        self._status = SourceStatus.STOPPED
        self._started_at: datetime | None = None
        self._last_message_at: datetime | None = None
        self._messages_captured = 0
        self._error: str | None = None

    @property
    def status(self) -> SourceStatus:
        return self._status

    async def healthcheck(self) -> SourceHealth:
        return SourceHealth(
            status=self._status,
            started_at=self._started_at,
            last_message_at=self._last_message_at,
            messages_captured=self._messages_captured,
            error=self._error,
        )

    def _set_status(self, status: SourceStatus, error: str | None = None) -> None:
        """Update status and optionally set error message."""
        self._status = status
        self._error = error
        if status == SourceStatus.RUNNING:
            self._started_at = datetime.now(UTC)
            self._error = None

    def _capture(self, raw: str, direction: Direction, session_id: str = "") -> Message:
        """Build a message for *raw*, timestamped now, and count it."""
        message = Message(
            raw=raw,
            direction=direction,
            session_id=session_id,
            source_name=self.name,
        )
        self._messages_captured += 1
        self._last_message_at = message.captured_at
        return message
