"""Tests for the pipeline orchestrator."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
import pytest

from recall.core.config import PipelineConfig
from recall.core.errors import AgentExitError, ConfigurationError
from recall.core.pipeline import Pipeline, run_pipeline
from recall.models.message import Message
from recall.scrubber import Scrubber
from recall.sources.base import BaseSource
from recall.sources.channel import MessageChannel
from recall.telemetry import Attr, MockTelemetryProvider, SpanKind
from recall.transmitter import HTTPTransmitter, MockTransmitter
from tests.conftest import EndlessSource, ListSource, make_message


class _FailsToStart(BaseSource):
    @property
    def name(self) -> str:
        return "broken"

    async def run(self, out: MessageChannel, cancel: asyncio.Event) -> None:
        out.close()
        raise ConfigurationError("no agent command specified")


class TestPipelineProcess:
    def test_process_scrubs_before_sending(self) -> None:
        transmitter = MockTransmitter()
        pipeline = Pipeline(transmitter)
        msg = make_message("mail bob@example.com")

        assert pipeline.process(msg) == "mail <EMAIL>"
        assert transmitter.sent[0].message is msg
        assert transmitter.texts == ["mail <EMAIL>"]

    def test_custom_scrubber_with_env_secrets(self) -> None:
        transmitter = MockTransmitter()
        pipeline = Pipeline(transmitter, scrubber=Scrubber(env_secrets={"DB": "hunter22"}))
        pipeline.process(make_message("pw hunter22"))
        assert transmitter.texts == ["pw <ENV:DB>"]


class TestPipelineRun:
    async def test_delivers_everything_in_order(self) -> None:
        transmitter = MockTransmitter()
        pipeline = Pipeline(transmitter)
        lines = [f"line {i}" for i in range(5)]

        await pipeline.run(ListSource(lines))

        assert transmitter.texts == lines
        assert pipeline.last_run is not None
        assert pipeline.last_run.messages == 5
        assert not pipeline.last_run.cancelled

    async def test_drains_more_than_one_channel_worth(self) -> None:
        transmitter = MockTransmitter()
        lines = [f"line {i}" for i in range(250)]
        await Pipeline(transmitter, queue_size=10).run(ListSource(lines))
        assert transmitter.texts == lines

    async def test_source_error_reraised_after_drain(self) -> None:
        transmitter = MockTransmitter()
        source = ListSource(["a", "b"], error=AgentExitError(2))

        with pytest.raises(AgentExitError):
            await Pipeline(transmitter).run(source)
        assert transmitter.texts == ["a", "b"]

    async def test_startup_failure_propagates(self) -> None:
        transmitter = MockTransmitter()
        with pytest.raises(ConfigurationError):
            await Pipeline(transmitter).run(_FailsToStart())
        assert transmitter.sent == []

    async def test_empty_source(self) -> None:
        transmitter = MockTransmitter()
        await Pipeline(transmitter).run(ListSource([]))
        assert transmitter.sent == []


class TestPipelineCancel:
    async def test_nothing_delivered_after_cancel(self) -> None:
        cancel = asyncio.Event()

        def _on_send(message: Message, text: str) -> None:
            cancel.set()

        transmitter = MockTransmitter(on_send=_on_send)
        pipeline = Pipeline(transmitter)

        result = await asyncio.wait_for(pipeline.run(EndlessSource(), cancel), 5.0)

        assert result is None
        assert len(transmitter.sent) == 1
        assert pipeline.last_run is not None
        assert pipeline.last_run.cancelled

    async def test_cancel_before_start(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        transmitter = MockTransmitter()

        await asyncio.wait_for(Pipeline(transmitter).run(EndlessSource(), cancel), 5.0)
        assert transmitter.sent == []

    async def test_source_error_during_stop_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        cancel = asyncio.Event()
        transmitter = MockTransmitter(on_send=lambda m, t: cancel.set())
        source = EndlessSource(stop_error=RuntimeError("teardown failed"))

        with caplog.at_level(logging.WARNING, logger="recall.pipeline"):
            await asyncio.wait_for(Pipeline(transmitter).run(source, cancel), 5.0)

        assert any("teardown failed" in r.getMessage() for r in caplog.records)


class TestPipelineTelemetry:
    async def test_source_run_span_and_metrics(self) -> None:
        telemetry = MockTelemetryProvider()
        pipeline = Pipeline(MockTransmitter(), telemetry=telemetry)

        await pipeline.run(ListSource(["a", "b", "c"]))

        spans = telemetry.get_spans(SpanKind.SOURCE_RUN)
        assert len(spans) == 1
        assert spans[0].status == "ok"
        assert spans[0].attributes[Attr.SOURCE_NAME] == "list"
        assert spans[0].attributes[Attr.PIPELINE_MESSAGES] == 3
        assert spans[0].attributes[Attr.PIPELINE_CANCELLED] is False
        assert Attr.SESSION_ID not in spans[0].attributes

        metrics = telemetry.get_metrics("recall.pipeline.messages")
        assert metrics[0]["value"] == 3.0
        assert telemetry.get_metrics("recall.pipeline.drained")

    async def test_source_run_span_carries_session(self) -> None:
        telemetry = MockTelemetryProvider()
        pipeline = Pipeline(MockTransmitter(), telemetry=telemetry)

        await pipeline.run(ListSource(["a", "b"], session_id="sess-9"))

        [span] = telemetry.get_spans(SpanKind.SOURCE_RUN)
        assert span.attributes[Attr.SESSION_ID] == "sess-9"
        assert pipeline.last_run is not None
        assert pipeline.last_run.session_id == "sess-9"

    async def test_failed_run_span(self) -> None:
        telemetry = MockTelemetryProvider()
        source = ListSource(["a"], error=AgentExitError(1))

        with pytest.raises(AgentExitError):
            await Pipeline(MockTransmitter(), telemetry=telemetry).run(source)

        span = telemetry.get_spans(SpanKind.SOURCE_RUN)[0]
        assert span.status == "error"
        assert span.error_message == "agent exited with status 1"


class TestRunPipeline:
    async def test_posts_scrubbed_payloads(self, monkeypatch: pytest.MonkeyPatch) -> None:
        received: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        def _transmitter(url: str, **kwargs: Any) -> HTTPTransmitter:
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            return HTTPTransmitter(url, client=client, **kwargs)

        monkeypatch.setattr("recall.core.pipeline.HTTPTransmitter", _transmitter)
        config = PipelineConfig(
            server_url="https://recall.example.com/ingest",
            env_secrets={"DB_PASS": "hunter22"},
        )

        await run_pipeline(ListSource(["pw hunter22", "mail bob@example.com"]), config)

        assert [p["raw"] for p in received] == ["pw <ENV:DB_PASS>", "mail <EMAIL>"]
        assert all(p["source_name"] == "list" for p in received)
        assert all(p["direction"] == "log" for p in received)
