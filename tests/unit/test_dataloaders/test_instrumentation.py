"""Unit tests for data loader instrumentation, metrics and tracing."""
from __future__ import annotations

import logging
from contextlib import contextmanager

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY

from batchloader import DataLoader, DataLoaderInstrumentation, DataLoaderOptions
from batchloader.features.dataloaders import LoggingInstrumentation
from batchloader.features.dataloaders.metrics import MetricsInstrumentation
from batchloader.features.dataloaders.tracing import TracingInstrumentation
from batchloader.infra.logging import get_log_context


class EventRecorder(DataLoaderInstrumentation):
    """Records every hook call as a tuple."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_load(self, loader, key, cached):
        self.events.append(("load", key, cached))

    def on_dispatch(self, loader, keys):
        self.events.append(("dispatch", list(keys)))

    @contextmanager
    def batch_scope(self, loader, keys):
        self.events.append(("enter", list(keys)))
        try:
            yield
        finally:
            self.events.append(("exit", list(keys)))

    def on_batch_loaded(self, loader, keys, duration):
        self.events.append(("loaded", list(keys)))

    def on_batch_failed(self, loader, keys, error, duration):
        self.events.append(("failed", list(keys), type(error).__name__))


def sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


async def failing(keys):
    raise RuntimeError("backend down")


@pytest.mark.unit
class TestInstrumentationHooks:
    """Hooks fire in load, dispatch, batch order."""

    @pytest.mark.asyncio
    async def test_successful_dispatch_events(self, recording_loader):
        """Test the full hook sequence for a successful batch."""
        recorder = EventRecorder()
        loader = DataLoader(
            recording_loader.load_batch,
            name="hooks",
            options=DataLoaderOptions(instrumentations=[recorder]),
        )

        loader.load(1)
        loader.load(1)
        await loader.dispatch()

        assert recorder.events == [
            ("load", 1, False),
            ("load", 1, True),
            ("dispatch", [1]),
            ("enter", [1]),
            ("exit", [1]),
            ("loaded", [1]),
        ]

    @pytest.mark.asyncio
    async def test_failed_batch_events(self):
        """Test that failures are reported through on_batch_failed."""
        recorder = EventRecorder()
        loader = DataLoader(
            failing, name="hooks", options=DataLoaderOptions(instrumentations=[recorder])
        )

        future = loader.load(1)
        await loader.dispatch()

        assert recorder.events[-1] == ("failed", [1], "BatchExecutionError")
        assert future.exception() is not None

    @pytest.mark.asyncio
    async def test_base_class_hooks_are_no_ops(self, recording_loader):
        """Test that the base instrumentation changes nothing."""
        loader = DataLoader(
            recording_loader.load_batch,
            options=DataLoaderOptions(instrumentations=[DataLoaderInstrumentation()]),
        )

        future = loader.load(1)
        await loader.dispatch()

        assert future.result() == "value-1"


@pytest.mark.unit
class TestMetricsInstrumentation:
    """Prometheus metrics recorded per loader name."""

    @pytest.mark.asyncio
    async def test_loads_batches_and_hits_are_counted(self, recording_loader):
        """Test counters and histograms after a batch."""
        name = "metrics-success"
        loads_before = sample("dataloader_loads_total", loader_name=name)
        hits_before = sample("dataloader_cache_hits_total", loader_name=name)
        batches_before = sample("dataloader_batches_total", loader_name=name)
        sizes_before = sample("dataloader_batch_size_sum", loader_name=name)

        loader = DataLoader(
            recording_loader.load_batch,
            name=name,
            options=DataLoaderOptions(instrumentations=[MetricsInstrumentation()]),
        )
        loader.load_many([1, 2, 2])
        await loader.dispatch()

        assert sample("dataloader_loads_total", loader_name=name) - loads_before == 3
        assert sample("dataloader_cache_hits_total", loader_name=name) - hits_before == 1
        assert sample("dataloader_batches_total", loader_name=name) - batches_before == 1
        assert sample("dataloader_batch_size_sum", loader_name=name) - sizes_before == 2

    @pytest.mark.asyncio
    async def test_batch_errors_are_counted_by_type(self):
        """Test that failed batches increment the error counter."""
        name = "metrics-failure"
        before = sample(
            "dataloader_batch_errors_total",
            loader_name=name,
            error_type="BatchExecutionError",
        )

        loader = DataLoader(
            failing,
            name=name,
            options=DataLoaderOptions(instrumentations=[MetricsInstrumentation()]),
        )
        loader.load(1)
        await loader.dispatch()

        after = sample(
            "dataloader_batch_errors_total",
            loader_name=name,
            error_type="BatchExecutionError",
        )
        assert after - before == 1


@pytest.mark.unit
class TestTracingInstrumentation:
    """One span per batch function call."""

    @pytest.fixture
    def exporter(self) -> InMemorySpanExporter:
        return InMemorySpanExporter()

    @pytest.fixture
    def tracing(self, exporter) -> TracingInstrumentation:
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        return TracingInstrumentation(tracer=provider.get_tracer("tests"))

    @pytest.mark.asyncio
    async def test_span_per_chunk(self, exporter, tracing, recording_loader):
        """Test that every chunk gets its own named span."""
        loader = DataLoader(
            recording_loader.load_batch,
            name="users",
            options=DataLoaderOptions(max_batch_size=2, instrumentations=[tracing]),
        )

        loader.load_many([1, 2, 3])
        await loader.dispatch()

        spans = exporter.get_finished_spans()
        assert [span.name for span in spans] == ["dataloader.users", "dataloader.users"]
        assert sorted(span.attributes["dataloader.batch_size"] for span in spans) == [1, 2]
        assert spans[0].attributes["dataloader.variant"] == "list"

    @pytest.mark.asyncio
    async def test_failed_batch_marks_span_as_error(self, exporter, tracing):
        """Test that exceptions are recorded on the span."""
        loader = DataLoader(
            failing, name="broken", options=DataLoaderOptions(instrumentations=[tracing])
        )

        loader.load(1)
        await loader.dispatch()

        (span,) = exporter.get_finished_spans()
        assert span.status.status_code is StatusCode.ERROR
        assert span.events[0].name == "exception"


@pytest.mark.unit
class TestLoggingInstrumentation:
    """Structured logs for dispatches and batches."""

    @pytest.mark.asyncio
    async def test_batch_function_logs_carry_loader_name(self):
        """Test that records logged inside a batch function see the loader in context."""
        seen = []

        def load(keys):
            seen.append(get_log_context())
            return keys

        loader = DataLoader(
            load,
            name="users",
            options=DataLoaderOptions(instrumentations=[LoggingInstrumentation()]),
        )
        loader.load(1)
        await loader.dispatch()

        assert seen == [{"loader": "users"}]
        assert get_log_context() == {}

    @pytest.mark.asyncio
    async def test_dispatch_and_batch_records(self, caplog, recording_loader):
        """Test the records emitted for a successful dispatch."""
        loader = DataLoader(
            recording_loader.load_batch,
            name="users",
            options=DataLoaderOptions(
                instrumentations=[LoggingInstrumentation(level=logging.INFO)]
            ),
        )
        loader.load_many([1, 2])

        with caplog.at_level(logging.INFO, logger="batchloader.features.dataloaders"):
            await loader.dispatch()

        messages = {record.getMessage(): record for record in caplog.records}
        assert messages["Data loader dispatched"].key_count == 2
        assert messages["Data loader batch loaded"].loader == "users"

    @pytest.mark.asyncio
    async def test_failed_batch_is_logged_as_error(self, caplog):
        """Test that a failed chunk produces an error record."""
        loader = DataLoader(
            failing,
            name="broken",
            options=DataLoaderOptions(instrumentations=[LoggingInstrumentation()]),
        )
        loader.load(1)

        with caplog.at_level(logging.ERROR, logger="batchloader.features.dataloaders"):
            await loader.dispatch()

        (record,) = [r for r in caplog.records if r.getMessage() == "Data loader batch failed"]
        assert record.levelno == logging.ERROR
        assert record.error_type == "BatchExecutionError"


class BrokenInstrumentation(DataLoaderInstrumentation):
    """Raises from every hook."""

    def on_load(self, loader, key, cached):
        raise RuntimeError("on_load")

    def on_dispatch(self, loader, keys):
        raise RuntimeError("on_dispatch")

    def batch_scope(self, loader, keys):
        raise RuntimeError("batch_scope")

    def on_batch_loaded(self, loader, keys, duration):
        raise RuntimeError("on_batch_loaded")


@pytest.mark.unit
class TestFailingInstrumentation:
    """A broken instrumentation never stops keys from being fetched."""

    @pytest.mark.asyncio
    async def test_keys_resolve_when_every_hook_raises(self, caplog, recording_loader):
        """Test that hook errors are logged and the batch still runs."""
        recorder = EventRecorder()
        loader = DataLoader(
            recording_loader.load_batch,
            name="guarded",
            options=DataLoaderOptions(instrumentations=[BrokenInstrumentation(), recorder]),
        )

        with caplog.at_level(logging.ERROR, logger="batchloader.features.dataloaders"):
            future = loader.load(1)
            await loader.dispatch()

        assert future.result() == "value-1"
        assert recording_loader.calls == [[1]]
        assert ("loaded", [1]) in recorder.events
        hooks = [r.hook for r in caplog.records if r.getMessage() == "Data loader instrumentation failed"]
        assert hooks == ["on_load", "on_dispatch", "batch_scope", "on_batch_loaded"]

    @pytest.mark.asyncio
    async def test_later_loads_are_not_stuck_after_dispatch_hook_fails(self, recording_loader):
        """Test that a raising on_dispatch leaves no unresolved cached future."""

        class DispatchRaises(DataLoaderInstrumentation):
            def on_dispatch(self, loader, keys):
                raise RuntimeError("metrics backend down")

        loader = DataLoader(
            recording_loader.load_batch,
            options=DataLoaderOptions(instrumentations=[DispatchRaises()]),
        )

        first = loader.load(1)
        await loader.dispatch()
        second = loader.load(1)

        assert first.done()
        assert second is first
        assert await second == "value-1"
        assert loader.dispatch_depth == 0
