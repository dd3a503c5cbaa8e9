"""Mock transmitter for testing."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from recall.models.message import Message
from recall.transmitter.base import Transmitter


@dataclass(frozen=True)
class SentMessage:
    message: Message
    text: str


class MockTransmitter(Transmitter):
    """Records every send for test assertions."""

    def __init__(self, on_send: Callable[[Message, str], None] | None = None) -> None:
        self.sent: list[SentMessage] = []
        self.closed = False
        self._on_send = on_send

    def send(self, message: Message, text: str) -> None:
        self.sent.append(SentMessage(message=message, text=text))
        if self._on_send is not None:
            self._on_send(message, text)

    @property
    def texts(self) -> list[str]:
        return [s.text for s in self.sent]

    async def close(self, timeout: float | None = None) -> None:
        self.closed = True
