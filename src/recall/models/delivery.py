"""Delivery payload and result models."""

from __future__ import annotations

from pydantic import BaseModel

from recall.models.enums import Direction
from recall.models.message import Message


class DeliveryPayload(BaseModel):
    """JSON body sent to the collector for each scrubbed message."""

    direction: Direction
    raw: str
    session_id: str = ""
    source_name: str = ""
    captured_at: str

    @classmethod
    def from_message(cls, message: Message, text: str) -> DeliveryPayload:
        """Build a payload carrying *text* (already scrubbed) and the
        metadata of *message*.
        """
        return cls(
            direction=message.direction,
            raw=text,
            session_id=message.session_id,
            source_name=message.source_name,
            captured_at=message.captured_at.isoformat(),
        )


class DeliveryResult(BaseModel):
    """Outcome of one delivery attempt."""

    success: bool
    status_code: int | None = None
    error: str | None = None
