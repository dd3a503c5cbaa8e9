"""Proxy configuration from environment variables and command-line flags."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from recall.core.errors import ConfigurationError

ENV_SERVER = "RECALL_SERVER"
ENV_SECRETS = "RECALL_SECRETS"

DEFAULT_SOURCE = "acp"
DEFAULT_DELIVERY_TIMEOUT = 5.0
DEFAULT_QUEUE_SIZE = 100


def _validate_server_url(v: str) -> str:
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"server_url scheme must be http or https, got {parsed.scheme!r}")
    if not parsed.hostname:
        raise ValueError("server_url must include a host")
    return v


class PipelineConfig(BaseModel):
    """What a pipeline run needs: where to deliver and what to redact."""

    server_url: str
    env_secrets: dict[str, str] = Field(default_factory=dict, repr=False)
    queue_size: int = Field(default=DEFAULT_QUEUE_SIZE, gt=0)
    delivery_timeout: float = Field(default=DEFAULT_DELIVERY_TIMEOUT, gt=0)

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        return _validate_server_url(v)


class ProxyConfig(BaseModel):
    """Full configuration of one proxy invocation."""

    source_type: str = DEFAULT_SOURCE
    agent_args: list[str] = Field(default_factory=list)
    server_url: str
    secret_var_names: list[str] = Field(default_factory=list)
    delivery_timeout: float = Field(default=DEFAULT_DELIVERY_TIMEOUT, gt=0)
    queue_size: int = Field(default=DEFAULT_QUEUE_SIZE, gt=0)

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        return _validate_server_url(v)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> ProxyConfig:
        """Build a config from ``RECALL_SERVER`` / ``RECALL_SECRETS`` plus *overrides*.

        Raises:
            ConfigurationError: If ``RECALL_SERVER`` is unset or any value
                is invalid.
        """
        env = os.environ if environ is None else environ
        server_url = env.get(ENV_SERVER, "")
        if not server_url:
            raise ConfigurationError(f"{ENV_SERVER} environment variable is required")
        values: dict[str, Any] = {
            "server_url": server_url,
            "secret_var_names": parse_secret_names(env.get(ENV_SECRETS, "")),
        }
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    def pipeline_config(self, environ: Mapping[str, str] | None = None) -> PipelineConfig:
        """Resolve secret values and return the pipeline's share of the config."""
        return PipelineConfig(
            server_url=self.server_url,
            env_secrets=resolve_env_secrets(self.secret_var_names, environ),
            queue_size=self.queue_size,
            delivery_timeout=self.delivery_timeout,
        )


def parse_secret_names(value: str) -> list[str]:
    """Split a comma-separated list of variable names, dropping blanks."""
    return [name.strip() for name in value.split(",") if name.strip()]


def resolve_env_secrets(
    names: Iterable[str], environ: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Look up each named variable, keeping only those with a non-empty value."""
    env = os.environ if environ is None else environ
    secrets: dict[str, str] = {}
    for name in names:
        value = env.get(name, "")
        if value:
            secrets[name] = value
    return secrets
