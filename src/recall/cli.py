"""recall-proxy command line.

Usage:
  recall-proxy --source acp --agent claude -- --experimental-acp
  recall-proxy --agent claude -- --experimental-acp   (--source defaults to acp)

Everything after ``--`` is passed to the agent unchanged.

Environment:
  RECALL_SERVER     collector endpoint (required)
  RECALL_SECRETS    comma-separated names of variables whose values are redacted
  RECALL_LOG_LEVEL  default for --log-level
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable

import click

from recall._version import __version__
from recall.core.config import PipelineConfig, ProxyConfig
from recall.core.errors import ConfigurationError, RecallError, UnknownSourceError
from recall.core.pipeline import run_pipeline
from recall.sources.acp import ACPSource, ACPSourceConfig
from recall.sources.base import Source
from recall.telemetry.base import TelemetryProvider
from recall.telemetry.console import ConsoleTelemetryProvider

logger = logging.getLogger("recall")

_LOG_FORMAT = "[recall] %(levelname)s %(name)s: %(message)s"
_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

_handler: logging.Handler | None = None


def _acp_source(config: ProxyConfig) -> Source:
    if not config.agent_args:
        raise ConfigurationError(
            "acp source requires --agent. "
            "Usage: recall-proxy --source acp --agent <binary> [-- <args>]"
        )
    return ACPSource(ACPSourceConfig(agent_args=config.agent_args))


SOURCES: dict[str, Callable[[ProxyConfig], Source]] = {
    "acp": _acp_source,
}


def create_source(config: ProxyConfig) -> Source:
    """Build the source named by ``config.source_type``.

    Raises:
        UnknownSourceError: If no source is registered under that name.
        ConfigurationError: If the source's own requirements are not met.
    """
    factory = SOURCES.get(config.source_type)
    if factory is None:
        raise UnknownSourceError(f"unknown source type: {config.source_type}")
    return factory(config)


def configure_logging(level: str) -> None:
    """Send the ``recall`` loggers to stderr; stdout is reserved for protocol bytes."""
    global _handler
    if _handler is not None:
        logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(_handler)
    logger.setLevel(level.upper())


async def serve(
    source: Source,
    config: PipelineConfig,
    *,
    telemetry: TelemetryProvider | None = None,
) -> None:
    """Run the pipeline until the source ends or SIGINT/SIGTERM arrives."""
    loop = asyncio.get_running_loop()
    cancel = asyncio.Event()

    def _shutdown() -> None:
        if not cancel.is_set():
            logger.info("shutting down gracefully...")
            cancel.set()

    signals = (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        loop.add_signal_handler(sig, _shutdown)
    try:
        await run_pipeline(source, config, cancel, telemetry=telemetry)
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


@click.command(
    context_settings={"help_option_names": ["-h", "--help"], "ignore_unknown_options": True}
)
@click.version_option(__version__, "--version", "-V", message="recall-proxy %(version)s")
@click.option("--source", "source_type", default="acp", show_default=True, help="Source type")
@click.option("--agent", default=None, help="Agent binary to launch (acp source)")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="INFO",
    envvar="RECALL_LOG_LEVEL",
    show_default=True,
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log spans and metrics")
@click.argument("agent_args", nargs=-1, type=click.UNPROCESSED)
def main(
    source_type: str,
    agent: str | None,
    log_level: str,
    verbose: bool,
    agent_args: tuple[str, ...],
) -> None:
    """Transparent stdio proxy that captures and redacts agent traffic."""
    configure_logging(log_level)

    command = [agent, *agent_args] if agent else list(agent_args)
    try:
        config = ProxyConfig.from_env(source_type=source_type, agent_args=command)
        source = create_source(config)
        pipeline_config = config.pipeline_config()
    except ConfigurationError as exc:
        logger.error("config error: %s", exc)
        sys.exit(1)

    logger.info("proxy starting, source: %s | server: %s", source.name, config.server_url)
    telemetry = ConsoleTelemetryProvider(level=logging.INFO) if verbose else None
    try:
        asyncio.run(serve(source, pipeline_config, telemetry=telemetry))
    except RecallError as exc:
        logger.error("proxy exited with error: %s", exc)
        sys.exit(1)
    finally:
        if telemetry is not None:
            telemetry.close()
