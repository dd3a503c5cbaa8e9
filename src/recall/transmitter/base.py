"""Transmitter ABC: the best-effort delivery boundary."""

from __future__ import annotations

from abc import ABC, abstractmethod

from recall.models.message import Message


class Transmitter(ABC):
    """Ships scrubbed messages to a collector.

    ``send`` must never block the caller: delivery happens in the
    background, failures are logged and dropped, nothing is retried.
    """

    @abstractmethod
    def send(self, message: Message, text: str) -> None:
        """Queue *text* (the scrubbed form of *message*) for delivery."""
        ...

    async def close(self, timeout: float | None = None) -> None:  # noqa: B027
        """Release resources, waiting at most *timeout* for in-flight work."""
