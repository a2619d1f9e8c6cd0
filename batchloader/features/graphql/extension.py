"""Strawberry extension that drives data loader dispatch.

Loaders never dispatch on their own. During execution this extension
watches every loader of the request's registry and, after the first new
key of an event loop tick, schedules one ``registry.dispatch_all()`` for
the end of that tick. Sibling resolvers started in the same tick share
the batch; loads issued by batch functions arm the next tick.

Usage:
    schema = strawberry.Schema(
        query=Query,
        extensions=[DataLoaderDispatchExtension],
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from strawberry.extensions import SchemaExtension

from batchloader.features.dataloaders.instrumentation import DataLoaderInstrumentation
from batchloader.features.dataloaders.registry import DataLoaderRegistry

if TYPE_CHECKING:
    from batchloader.features.dataloaders.loader import DataLoader

logger = logging.getLogger(__name__)

__all__ = ["DataLoaderDispatchExtension", "TickDispatcher", "get_registry"]


def get_registry(context: Any) -> DataLoaderRegistry | None:
    """Find the registry on a GraphQL context object or dict."""
    if isinstance(context, Mapping):
        registry = context.get("loaders")
    else:
        registry = getattr(context, "loaders", None)
    return registry if isinstance(registry, DataLoaderRegistry) else None


class TickDispatcher(DataLoaderInstrumentation):
    """Schedules ``dispatch_all`` once per event loop tick with new keys."""

    def __init__(self, registry: DataLoaderRegistry) -> None:
        self.registry = registry
        self.dispatch_count = 0
        self._handle: asyncio.Handle | None = None

    def on_load(self, loader: DataLoader[Any, Any], key: Any, cached: bool) -> None:
        if cached or self._handle is not None:
            return
        self._handle = asyncio.get_running_loop().call_soon(self._flush)

    def _flush(self) -> None:
        self._handle = None
        self.dispatch_count += 1
        self.registry.dispatch_all()

    def attach(self) -> None:
        """Start watching every loader of the registry."""
        for loader in self.registry.loaders():
            loader.options.instrumentations.append(self)

    def detach(self) -> None:
        """Stop watching and drop any scheduled dispatch."""
        for loader in self.registry.loaders():
            if self in loader.options.instrumentations:
                loader.options.instrumentations.remove(self)
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class DataLoaderDispatchExtension(SchemaExtension):
    """Dispatches the request's data loaders at the end of each resolution tick.

    The registry is read from ``context.loaders`` (or ``context["loaders"]``).
    Operations without a registry are executed untouched.
    """

    def on_execute(self) -> Iterator[None]:
        registry = get_registry(self.execution_context.context)
        if registry is None:
            yield
            return

        dispatcher = TickDispatcher(registry)
        dispatcher.attach()
        try:
            yield
        finally:
            dispatcher.detach()
            logger.debug(
                "GraphQL data loader dispatch finished",
                extra={
                    "operation_name": self.execution_context.operation_name or "anonymous",
                    "dispatch_count": dispatcher.dispatch_count,
                    "loaders": registry.keys(),
                },
            )
