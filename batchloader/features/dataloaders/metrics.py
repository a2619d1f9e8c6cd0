"""Prometheus metrics for data loaders.

Switched on for every registry with ``DATALOADER_METRICS_ENABLED=true``,
or per loader by adding ``MetricsInstrumentation`` in an options
customizer. Collectors live in the default Prometheus registry and are
labelled by loader name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from prometheus_client import Counter, Histogram

from batchloader.features.dataloaders.instrumentation import DataLoaderInstrumentation

if TYPE_CHECKING:
    from batchloader.features.dataloaders.loader import DataLoader

__all__ = [
    "dataloader_batch_duration_seconds",
    "dataloader_batch_errors_total",
    "dataloader_batch_size",
    "dataloader_batches_total",
    "dataloader_cache_hits_total",
    "dataloader_loads_total",
    "MetricsInstrumentation",
]

_LABELS = ["loader_name"]

dataloader_loads_total = Counter(
    "dataloader_loads_total",
    "Keys requested through DataLoader.load",
    _LABELS,
)

dataloader_cache_hits_total = Counter(
    "dataloader_cache_hits_total",
    "Loads answered by an existing future",
    _LABELS,
)

dataloader_batches_total = Counter(
    "dataloader_batches_total",
    "Batch function calls, one per chunk",
    _LABELS,
)

dataloader_batch_size = Histogram(
    "dataloader_batch_size",
    "Keys per batch function call",
    _LABELS,
    buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500, 1000),
)

dataloader_batch_duration_seconds = Histogram(
    "dataloader_batch_duration_seconds",
    "Time spent inside the batch function",
    _LABELS,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

dataloader_batch_errors_total = Counter(
    "dataloader_batch_errors_total",
    "Chunks whose batch function failed or returned a malformed result",
    [*_LABELS, "error_type"],
)


class MetricsInstrumentation(DataLoaderInstrumentation):
    """Feeds the collectors above from the loader hooks."""

    def on_load(self, loader: DataLoader[Any, Any], key: Any, cached: bool) -> None:
        dataloader_loads_total.labels(loader.name).inc()
        if cached:
            dataloader_cache_hits_total.labels(loader.name).inc()

    def on_batch_loaded(
        self, loader: DataLoader[Any, Any], keys: list[Any], duration: float
    ) -> None:
        self._observe_chunk(loader.name, len(keys), duration)

    def on_batch_failed(
        self,
        loader: DataLoader[Any, Any],
        keys: list[Any],
        error: BaseException,
        duration: float,
    ) -> None:
        self._observe_chunk(loader.name, len(keys), duration)
        dataloader_batch_errors_total.labels(loader.name, type(error).__name__).inc()

    @staticmethod
    def _observe_chunk(name: str, size: int, duration: float) -> None:
        dataloader_batches_total.labels(name).inc()
        dataloader_batch_size.labels(name).observe(size)
        dataloader_batch_duration_seconds.labels(name).observe(duration)
