"""Batching, deduplicating and caching key-to-value loader.

A ``DataLoader`` collects keys from ``load`` calls and hands them to its
batch function in as few calls as possible. Nothing is fetched until the
caller invokes ``dispatch``; the loader never schedules itself.

Usage:
    loader = DataLoader(fetch_users, name="users", options=DataLoaderOptions(max_batch_size=50))

    first = loader.load(1)
    second = loader.load(2)
    await loader.dispatch()       # fetch_users([1, 2]) runs once
    user = await first
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Hashable, Iterable, Mapping, Sequence
from contextlib import ExitStack
from dataclasses import dataclass, fields
from functools import partial
from typing import Any, Generic, NamedTuple, TypeVar

from batchloader.core.exceptions import (
    BatchExecutionError,
    BatchShapeError,
    DataLoaderKeyNotFoundError,
)
from batchloader.features.dataloaders.options import DataLoaderOptions, MissingKeyPolicy
from batchloader.features.dataloaders.variants import (
    BatchFunction,
    BatchLoaderEnvironment,
    LoaderVariant,
)

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class DataLoaderStatistics:
    """Running counters for one loader.

    Attributes:
        load_count: Calls to ``load``.
        cache_hit_count: Loads answered by an existing future (cache or pending batch).
        batch_invoke_count: Batch function invocations.
        batch_load_count: Keys handed to the batch function.
        batch_error_count: Chunks rejected as a whole.
    """

    load_count: int = 0
    cache_hit_count: int = 0
    batch_invoke_count: int = 0
    batch_load_count: int = 0
    batch_error_count: int = 0

    def merge(self, other: DataLoaderStatistics) -> DataLoaderStatistics:
        """Return the element-wise sum of two statistics objects."""
        return DataLoaderStatistics(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def to_dict(self) -> dict[str, int]:
        """Get counters as a plain dict."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


class _PendingLoad(NamedTuple):
    key: Any
    cache_key: Hashable
    future: asyncio.Future[Any]
    key_context: Any


def _chunked(items: list[_PendingLoad], size: int | None) -> list[list[_PendingLoad]]:
    if size is None:
        return [items]
    return [items[i : i + size] for i in range(0, len(items), size)]


class DataLoader(Generic[K, V]):
    """Request-scoped batching loader.

    Args:
        batch_fn: Sync or async callable. List variants receive ``list[K]``,
            mapped variants receive ``set[K]``; ``*_WITH_CONTEXT`` variants
            also receive a ``BatchLoaderEnvironment``.
        name: Registry name, used in errors, logs and metrics.
        variant: Shape of ``batch_fn``.
        options: Final options; not copied.
    """

    def __init__(
        self,
        batch_fn: BatchFunction,
        *,
        name: str = "anonymous",
        variant: LoaderVariant = LoaderVariant.LIST,
        options: DataLoaderOptions | None = None,
    ) -> None:
        self.name = name
        self.variant = variant
        self.options = options if options is not None else DataLoaderOptions()
        self.statistics = DataLoaderStatistics()
        self._batch_fn = batch_fn
        # Insertion ordered; one entry per cache key per dispatch window
        self._queue: dict[Hashable, _PendingLoad] = {}
        self._cache: dict[Hashable, asyncio.Future[V]] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"<DataLoader name={self.name!r} variant={self.variant.value}>"

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _cache_key(self, key: K) -> Hashable:
        if self.options.cache_key_fn is not None:
            return self.options.cache_key_fn(key)
        return key

    def load(self, key: K, key_context: Any = None) -> asyncio.Future[V]:
        """Queue ``key`` for the next dispatch and return its future.

        Must be called with a running event loop. If the key is cached or
        already waiting for dispatch, the existing future is returned.

        Args:
            key: Key to load.
            key_context: Optional per-key value exposed to context loaders.
        """
        cache_key = self._cache_key(key)
        self.statistics.load_count += 1

        existing = self._cache.get(cache_key) if self.options.caching_enabled else None
        if existing is None:
            pending = self._queue.get(cache_key)
            existing = pending.future if pending is not None else None
        if existing is not None:
            self.statistics.cache_hit_count += 1
            self._notify("on_load", key, True)
            return existing

        future: asyncio.Future[V] = asyncio.get_running_loop().create_future()
        future.add_done_callback(partial(self._discard_cancelled, cache_key))
        self._queue[cache_key] = _PendingLoad(key, cache_key, future, key_context)
        if self.options.caching_enabled:
            self._cache[cache_key] = future
        self._notify("on_load", key, False)
        return future

    def load_many(self, keys: Iterable[K]) -> asyncio.Future[list[V]]:
        """Queue several keys; the future resolves to values in key order."""
        futures = [self.load(key) for key in keys]
        if not futures:
            done: asyncio.Future[list[V]] = asyncio.get_running_loop().create_future()
            done.set_result([])
            return done
        return asyncio.gather(*futures)

    def _notify(self, hook: str, *args: Any) -> None:
        for instrumentation in self.options.instrumentations:
            try:
                getattr(instrumentation, hook)(self, *args)
            except Exception:
                logger.exception(
                    "Data loader instrumentation failed",
                    extra={
                        "loader": self.name,
                        "hook": hook,
                        "instrumentation": type(instrumentation).__name__,
                    },
                )

    def _discard_cancelled(self, cache_key: Hashable, future: asyncio.Future[Any]) -> None:
        # A caller cancelling its load must not poison later loads of the key
        if not future.cancelled():
            return
        if self._cache.get(cache_key) is future:
            del self._cache[cache_key]
        pending = self._queue.get(cache_key)
        if pending is not None and pending.future is future:
            del self._queue[cache_key]

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def prime(self, key: K, value: V | BaseException) -> DataLoader[K, V]:
        """Seed the cache with a value (or exception) unless the key is present."""
        if not self.options.caching_enabled:
            return self
        cache_key = self._cache_key(key)
        if cache_key not in self._cache:
            future: asyncio.Future[V] = asyncio.get_running_loop().create_future()
            if isinstance(value, BaseException):
                future.set_exception(value)
            else:
                future.set_result(value)
            self._cache[cache_key] = future
        return self

    def clear(self, key: K) -> DataLoader[K, V]:
        """Drop ``key`` from the cache; a pending fetch still resolves its future."""
        self._cache.pop(self._cache_key(key), None)
        return self

    def clear_all(self) -> DataLoader[K, V]:
        """Drop every cached future."""
        self._cache.clear()
        return self

    @property
    def dispatch_depth(self) -> int:
        """Number of keys waiting for the next dispatch."""
        return len(self._queue)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self) -> asyncio.Future[Any]:
        """Send every queued key to the batch function.

        The queue is taken and emptied before anything is awaited, so keys
        loaded while batches run belong to the next dispatch. Chunks of at
        most ``max_batch_size`` keys run as concurrent tasks.

        Returns:
            A future that completes once every chunk has settled. Awaiting it
            is optional; the chunk futures resolve either way.
        """
        loop = asyncio.get_running_loop()
        pending = list(self._queue.values())
        self._queue = {}

        if not pending:
            done = loop.create_future()
            done.set_result([])
            return done

        self._notify("on_dispatch", [item.key for item in pending])

        chunks = _chunked(pending, self.options.effective_batch_size)
        logger.debug(
            "Dispatching data loader batch",
            extra={"loader": self.name, "key_count": len(pending), "chunk_count": len(chunks)},
        )

        tasks = []
        for chunk in chunks:
            task = loop.create_task(self._run_chunk(chunk), name=f"dataloader:{self.name}")
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return asyncio.gather(*tasks, return_exceptions=True)

    async def _run_chunk(self, chunk: list[_PendingLoad]) -> None:
        keys = [item.key for item in chunk]
        self.statistics.batch_invoke_count += 1
        self.statistics.batch_load_count += len(keys)
        started = time.perf_counter()

        try:
            with ExitStack() as stack:
                for instrumentation in self.options.instrumentations:
                    self._enter_scope(stack, instrumentation, keys)
                result = await self._call_batch_fn(chunk)
        except asyncio.CancelledError:
            # Cancelled chunks leave their futures unresolved
            raise
        except Exception as exc:
            error = BatchExecutionError(
                detail=f"Batch function of data loader {self.name!r} failed: {exc}",
                extra={"loader": self.name, "key_count": len(keys)},
            )
            error.__cause__ = exc
            logger.warning(
                "Data loader batch function failed",
                extra={"loader": self.name, "key_count": len(keys), "error": repr(exc)},
            )
            self._fail_chunk(chunk, error, started)
            return

        try:
            if self.variant.mapped:
                self._resolve_mapped(chunk, result)
            else:
                self._resolve_list(chunk, result)
        except BatchShapeError as error:
            logger.warning(
                "Data loader batch returned a malformed result",
                extra={"loader": self.name, "key_count": len(keys), "error": error.detail},
            )
            self._fail_chunk(chunk, error, started)
            return

        self._notify("on_batch_loaded", keys, time.perf_counter() - started)

    def _enter_scope(self, stack: ExitStack, instrumentation: Any, keys: list[Any]) -> None:
        try:
            stack.enter_context(instrumentation.batch_scope(self, keys))
        except Exception:
            logger.exception(
                "Data loader instrumentation failed",
                extra={
                    "loader": self.name,
                    "hook": "batch_scope",
                    "instrumentation": type(instrumentation).__name__,
                },
            )

    async def _call_batch_fn(self, chunk: list[_PendingLoad]) -> Any:
        keys: Any = [item.key for item in chunk]
        if self.variant.mapped:
            keys = {item.key for item in chunk}

        args: tuple[Any, ...] = (keys,)
        if self.variant.with_context:
            args += (self._environment(chunk),)

        result = self._batch_fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _environment(self, chunk: list[_PendingLoad]) -> BatchLoaderEnvironment:
        provider = self.options.context_provider
        return BatchLoaderEnvironment(
            context=provider() if provider is not None else None,
            key_contexts={
                item.key: item.key_context for item in chunk if item.key_context is not None
            },
            key_context_list=[item.key_context for item in chunk],
        )

    def _resolve_list(self, chunk: list[_PendingLoad], result: Any) -> None:
        if isinstance(result, (str, bytes)) or not isinstance(result, Sequence):
            raise BatchShapeError(
                detail=(
                    f"Data loader {self.name!r} must return a sequence, "
                    f"got {type(result).__name__}"
                ),
                extra={"loader": self.name},
            )
        if len(result) != len(chunk):
            raise BatchShapeError(
                detail=(
                    f"Data loader {self.name!r} returned {len(result)} values "
                    f"for {len(chunk)} keys"
                ),
                extra={"loader": self.name, "expected": len(chunk), "received": len(result)},
            )
        for item, value in zip(chunk, result):
            self._settle(item, value)

    def _resolve_mapped(self, chunk: list[_PendingLoad], result: Any) -> None:
        if not isinstance(result, Mapping):
            raise BatchShapeError(
                detail=(
                    f"Mapped data loader {self.name!r} must return a mapping, "
                    f"got {type(result).__name__}"
                ),
                extra={"loader": self.name},
            )
        raise_missing = self.options.missing_key_policy is MissingKeyPolicy.RAISE
        for item in chunk:
            if item.key in result:
                self._settle(item, result[item.key])
            elif raise_missing:
                self._settle(item, DataLoaderKeyNotFoundError(self.name, item.key))
            else:
                self._settle(item, None)

    def _settle(self, item: _PendingLoad, value: Any) -> None:
        if item.future.done():
            return
        if isinstance(value, BaseException):
            item.future.set_exception(value)
            self._forget(item)
        else:
            item.future.set_result(value)

    def _fail_chunk(self, chunk: list[_PendingLoad], error: BaseException, started: float) -> None:
        self.statistics.batch_error_count += 1
        for item in chunk:
            if not item.future.done():
                item.future.set_exception(error)
            self._forget(item)
        keys = [item.key for item in chunk]
        self._notify("on_batch_failed", keys, error, time.perf_counter() - started)

    def _forget(self, item: _PendingLoad) -> None:
        # Failed keys are refetched on the next load
        if self._cache.get(item.cache_key) is item.future:
            del self._cache[item.cache_key]


__all__ = ["DataLoader", "DataLoaderStatistics"]
