"""Traffic sources for recall-proxy."""

from recall.sources.base import BaseSource, Source, SourceHealth, SourceStatus
from recall.sources.channel import DEFAULT_CHANNEL_SIZE, MessageChannel

__all__ = [
    "DEFAULT_CHANNEL_SIZE",
    "BaseSource",
    "MessageChannel",
    "Source",
    "SourceHealth",
    "SourceStatus",
]
