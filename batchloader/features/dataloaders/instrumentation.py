"""Instrumentation hooks for data loaders.

Instrumentations observe a loader without changing its results. Each
hook is a no-op by default, so subclasses override only what they need.
A ``DataLoaderInstrumentationProvider`` found in the host container
contributes instrumentations to every loader at registry build time.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from batchloader.infra.logging.context import log_context

if TYPE_CHECKING:
    from batchloader.features.dataloaders.descriptors import LoaderDescriptor
    from batchloader.features.dataloaders.loader import DataLoader

logger = logging.getLogger(__name__)


class DataLoaderInstrumentation:
    """Base class for loader instrumentation."""

    def on_load(self, loader: DataLoader[Any, Any], key: Any, cached: bool) -> None:
        """Called for every ``load``; ``cached`` is True when no new fetch was queued."""

    def on_dispatch(self, loader: DataLoader[Any, Any], keys: list[Any]) -> None:
        """Called once per dispatch with every key taken from the queue."""

    def batch_scope(
        self, loader: DataLoader[Any, Any], keys: list[Any]
    ) -> AbstractContextManager[Any]:
        """Context manager wrapped around a single batch function call."""
        return nullcontext()

    def on_batch_loaded(
        self, loader: DataLoader[Any, Any], keys: list[Any], duration: float
    ) -> None:
        """Called after a chunk resolved its futures."""

    def on_batch_failed(
        self,
        loader: DataLoader[Any, Any],
        keys: list[Any],
        error: BaseException,
        duration: float,
    ) -> None:
        """Called after a chunk was rejected as a whole."""


class LoggingInstrumentation(DataLoaderInstrumentation):
    """Logs batches and tags records emitted inside batch functions.

    Every record logged while a batch function runs carries ``loader`` in
    its log context, so repository queries can be traced back to the
    loader that issued them.

    Args:
        level: Level used for dispatch and batch completion records.
    """

    def __init__(self, level: int = logging.DEBUG) -> None:
        self.level = level

    def on_dispatch(self, loader: DataLoader[Any, Any], keys: list[Any]) -> None:
        logger.log(
            self.level,
            "Data loader dispatched",
            extra={"loader": loader.name, "key_count": len(keys)},
        )

    def batch_scope(
        self, loader: DataLoader[Any, Any], keys: list[Any]
    ) -> AbstractContextManager[Any]:
        return log_context(loader=loader.name)

    def on_batch_loaded(
        self, loader: DataLoader[Any, Any], keys: list[Any], duration: float
    ) -> None:
        logger.log(
            self.level,
            "Data loader batch loaded",
            extra={
                "loader": loader.name,
                "key_count": len(keys),
                "duration_ms": round(duration * 1000, 3),
            },
        )

    def on_batch_failed(
        self,
        loader: DataLoader[Any, Any],
        keys: list[Any],
        error: BaseException,
        duration: float,
    ) -> None:
        logger.error(
            "Data loader batch failed",
            extra={
                "loader": loader.name,
                "key_count": len(keys),
                "error_type": type(error).__name__,
                "duration_ms": round(duration * 1000, 3),
            },
        )


@runtime_checkable
class DataLoaderInstrumentationProvider(Protocol):
    """Supplies per-loader instrumentation during a registry build."""

    def provide(self, descriptor: LoaderDescriptor) -> DataLoaderInstrumentation | None:
        """Return an instrumentation for ``descriptor``, or None to skip it."""
        ...


__all__ = [
    "DataLoaderInstrumentation",
    "DataLoaderInstrumentationProvider",
    "LoggingInstrumentation",
]
