"""Data models for recall-proxy."""

from recall.models.delivery import DeliveryPayload, DeliveryResult
from recall.models.enums import Direction
from recall.models.message import Message

__all__ = [
    "DeliveryPayload",
    "DeliveryResult",
    "Direction",
    "Message",
]
