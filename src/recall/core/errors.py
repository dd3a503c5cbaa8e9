"""Exception hierarchy for recall-proxy."""

from __future__ import annotations


class RecallError(Exception):
    """Base exception for all recall-proxy errors."""


class ConfigurationError(RecallError):
    """Required configuration is missing or invalid."""


class UnknownSourceError(ConfigurationError):
    """No source is registered under the requested type."""


class AgentStartError(RecallError):
    """The agent subprocess could not be started."""


class AgentExitError(RecallError):
    """The agent subprocess exited with a non-zero status."""

    def __init__(self, returncode: int) -> None:
        super().__init__(f"agent exited with status {returncode}")
        self.returncode = returncode


class ChannelClosedError(RecallError):
    """Send on, or second close of, an already closed message channel."""
