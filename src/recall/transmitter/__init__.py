"""Delivery of scrubbed messages to the collector."""

from recall.transmitter.base import Transmitter
from recall.transmitter.http import DEFAULT_TIMEOUT, HTTPTransmitter
from recall.transmitter.mock import MockTransmitter, SentMessage

__all__ = [
    "DEFAULT_TIMEOUT",
    "HTTPTransmitter",
    "MockTransmitter",
    "SentMessage",
    "Transmitter",
]
