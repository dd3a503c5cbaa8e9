"""recall-proxy - transparent stdio interception for agent conversations."""

from recall._version import __version__
from recall.core.config import PipelineConfig, ProxyConfig, resolve_env_secrets
from recall.core.errors import (
    AgentExitError,
    AgentStartError,
    ChannelClosedError,
    ConfigurationError,
    RecallError,
    UnknownSourceError,
)
from recall.core.pipeline import Pipeline, run_pipeline
from recall.models import DeliveryPayload, DeliveryResult, Direction, Message
from recall.scrubber import Scrubber, scrub, scrub_env_secrets
from recall.sources import BaseSource, MessageChannel, Source, SourceHealth, SourceStatus
from recall.sources.acp import ACPSource, ACPSourceConfig
from recall.transmitter import HTTPTransmitter, MockTransmitter, Transmitter

__all__ = [
    "ACPSource",
    "ACPSourceConfig",
    "AgentExitError",
    "AgentStartError",
    "BaseSource",
    "ChannelClosedError",
    "ConfigurationError",
    "DeliveryPayload",
    "DeliveryResult",
    "Direction",
    "HTTPTransmitter",
    "Message",
    "MessageChannel",
    "MockTransmitter",
    "Pipeline",
    "PipelineConfig",
    "ProxyConfig",
    "RecallError",
    "Scrubber",
    "Source",
    "SourceHealth",
    "SourceStatus",
    "Transmitter",
    "UnknownSourceError",
    "__version__",
    "resolve_env_secrets",
    "run_pipeline",
    "scrub",
    "scrub_env_secrets",
]
