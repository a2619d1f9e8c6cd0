"""OpenTelemetry tracing for data loader batches.

Each batch function call runs inside a ``dataloader.<name>`` span, so
queries issued by the batch function nest under it.

Usage:
    DATALOADER_TRACING_ENABLED=true

    # or per loader, from an options customizer
    options.instrumentations.append(TracingInstrumentation())
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from batchloader.features.dataloaders.instrumentation import DataLoaderInstrumentation

if TYPE_CHECKING:
    from collections.abc import Iterator

    from batchloader.features.dataloaders.loader import DataLoader

__all__ = ["TracingInstrumentation", "get_dataloader_tracer"]


def get_dataloader_tracer() -> trace.Tracer:
    """Get OpenTelemetry tracer for data loader batches."""
    return trace.get_tracer("batchloader", "1.0.0")


class TracingInstrumentation(DataLoaderInstrumentation):
    """Wraps every batch function call in a span.

    Span attributes:
    - dataloader.name
    - dataloader.variant
    - dataloader.batch_size
    """

    def __init__(self, tracer: trace.Tracer | None = None) -> None:
        self._tracer = tracer or get_dataloader_tracer()

    @contextmanager
    def batch_scope(self, loader: DataLoader[Any, Any], keys: list[Any]) -> Iterator[trace.Span]:
        with self._tracer.start_as_current_span(
            f"dataloader.{loader.name}",
            attributes={
                "dataloader.name": loader.name,
                "dataloader.variant": loader.variant.value,
                "dataloader.batch_size": len(keys),
            },
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield span
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise
