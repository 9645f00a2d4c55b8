"""Unit tests for tracing spans and structured logging."""

from __future__ import annotations

import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from structlog.testing import capture_logs

from dotforge.constructs.base import Stack
from dotforge.errors import PluginExecutionError
from dotforge.logging import add_trace_context, configure_logging
from dotforge.plugins.manager import PluginManager
from dotforge.schemas import PluginConfig, StackConfig
from dotforge.synthesizer import StackSynthesizer
from dotforge.telemetry import (
    PLUGIN_ATTRIBUTE,
    PLUGIN_SPAN,
    STACK_ATTRIBUTE,
    STACK_SPAN,
    create_span,
    get_tracer,
    set_tracer,
)


@pytest.fixture
def exporter() -> Generator[InMemorySpanExporter, None, None]:
    """Route dotforge spans to an in-memory exporter."""
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    set_tracer(provider.get_tracer("dotforge"))
    yield span_exporter
    set_tracer(None)
    provider.shutdown()


class TestTracer:
    def test_tracer_is_cached(self) -> None:
        assert get_tracer() is get_tracer()

    def test_set_tracer_overrides(self) -> None:
        tracer = trace.NoOpTracer()
        set_tracer(tracer)
        assert get_tracer() is tracer


class TestCreateSpan:
    """Tests for create_span()."""

    def test_attributes_recorded(self, exporter: InMemorySpanExporter) -> None:
        with create_span(STACK_SPAN, {STACK_ATTRIBUTE: "main"}) as span:
            span.set_attribute("dotforge.file_count", 2)

        (finished,) = exporter.get_finished_spans()
        assert finished.name == STACK_SPAN
        assert finished.attributes[STACK_ATTRIBUTE] == "main"
        assert finished.attributes["dotforge.file_count"] == 2

    def test_error_status_on_exception(self, exporter: InMemorySpanExporter) -> None:
        with pytest.raises(RuntimeError):
            with create_span(PLUGIN_SPAN, {PLUGIN_ATTRIBUTE: "ci"}):
                raise RuntimeError("boom")

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR
        assert finished.attributes["exception.type"] == "RuntimeError"
        assert finished.attributes["exception.message"] == "boom"

    @pytest.mark.asyncio
    async def test_plugin_spans_nested_in_stack_span(
        self, exporter: InMemorySpanExporter, tmp_path: Path, make_plugin: Any, dict_loader: Any
    ) -> None:
        from dotforge.schemas import ProjectConfig

        config = ProjectConfig.model_validate(
            {
                "plugins": [{"name": "a", "package": "a"}, {"name": "b", "package": "b"}],
                "stacks": [{"name": "main", "plugins": ["a", "b"]}],
            }
        )
        synthesizer = StackSynthesizer(
            config, tmp_path, loader=dict_loader({"a": make_plugin("a"), "b": make_plugin("b")})
        )

        await synthesizer.synthesize_all()

        (stack_span,) = [span for span in exporter.get_finished_spans() if span.name == STACK_SPAN]
        plugin_spans = [span for span in exporter.get_finished_spans() if span.name == PLUGIN_SPAN]
        assert [span.attributes[PLUGIN_ATTRIBUTE] for span in plugin_spans] == ["a", "b"]
        assert all(span.parent.span_id == stack_span.context.span_id for span in plugin_spans)
        assert stack_span.attributes["dotforge.file_count"] == 2

    @pytest.mark.asyncio
    async def test_failing_plugin_span_marked_error(
        self, exporter: InMemorySpanExporter, tmp_path: Path, make_plugin: Any, dict_loader: Any
    ) -> None:
        def explode(stack: Stack) -> None:
            raise RuntimeError("nope")

        manager = PluginManager(tmp_path, loader=dict_loader({"p": make_plugin("p", synthesize=explode)}))
        await manager.load_plugins([PluginConfig(name="p", package="p")])

        with pytest.raises(PluginExecutionError):
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["p"]), [PluginConfig(name="p", package="p")]
            )

        (span,) = exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert span.attributes[PLUGIN_ATTRIBUTE] == "p"


class TestLogging:
    """Tests for configure_logging() and the trace context processor."""

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(log_level="VERBOSE")

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="INFO", json_output=True)

        structlog.get_logger("dotforge.test").info("synthesize_all.started", stack_count=2)

        record = json.loads(capsys.readouterr().err.strip())
        assert record["event"] == "synthesize_all.started"
        assert record["stack_count"] == 2
        assert record["level"] == "info"

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="WARNING", json_output=True)

        structlog.get_logger("dotforge.test").info("hidden")

        assert capsys.readouterr().err == ""

    def test_trace_context_added_inside_span(self, exporter: InMemorySpanExporter) -> None:
        with create_span(STACK_SPAN) as span:
            event = add_trace_context(None, "info", {"event": "x"})
            context = span.get_span_context()

        assert event["trace_id"] == format(context.trace_id, "032x")
        assert event["span_id"] == format(context.span_id, "016x")

    def test_trace_context_absent_outside_span(self) -> None:
        assert add_trace_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_resolver_logs_failures(self, tmp_path: Path) -> None:
        from dotforge.errors import PluginLoadError
        from dotforge.plugins.resolver import PluginResolver

        with capture_logs() as logs:
            with pytest.raises(PluginLoadError):
                PluginResolver(tmp_path).resolve_plugin(PluginConfig(name="x", package="./missing.py"))

        assert any(log["event"] == "resolve_plugin.failed" and log["log_level"] == "error" for log in logs)
