"""Batch loader capability variants.

A batch loader is either a list loader (ordered keys in, index-aligned
values out) or a mapped loader (key set in, partial mapping out), each
optionally receiving a ``BatchLoaderEnvironment``. The variant is
classified once, when a loader is declared, and carried as a tag from
then on.

Implement a loader by subclassing one of the four base classes:

    class UserLoader(BatchLoader[int, User]):
        async def load_batch(self, keys: list[int]) -> list[User | None]:
            rows = await repo.get_many(keys)
            return [rows.get(k) for k in keys]

Plain functions are accepted too, with the variant given explicitly
through ``@dataloader(variant=...)`` or ``loader_field(..., variant=...)``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar, Union

from batchloader.core.exceptions import InvalidDataLoaderTypeError

K = TypeVar("K")
V = TypeVar("V")

ListResult = Sequence[Union[V, BaseException]]
MappedResult = Mapping[K, Union[V, BaseException]]

BatchFunction = Callable[..., Any]


class LoaderVariant(str, Enum):
    """Closed set of batch loader shapes."""

    LIST = "list"
    LIST_WITH_CONTEXT = "list_with_context"
    MAPPED = "mapped"
    MAPPED_WITH_CONTEXT = "mapped_with_context"

    @property
    def mapped(self) -> bool:
        """True for loaders that return a key-to-value mapping."""
        return self in (LoaderVariant.MAPPED, LoaderVariant.MAPPED_WITH_CONTEXT)

    @property
    def with_context(self) -> bool:
        """True for loaders that receive a BatchLoaderEnvironment."""
        return self in (LoaderVariant.LIST_WITH_CONTEXT, LoaderVariant.MAPPED_WITH_CONTEXT)


@dataclass(frozen=True)
class BatchLoaderEnvironment:
    """Call context handed to ``*WithContext`` batch loaders.

    Attributes:
        context: Request-level object from the loader's context provider.
        key_contexts: Per-key context passed to ``load(key, key_context)``.
        key_context_list: The same key contexts, aligned with the key order.
    """

    context: Any = None
    key_contexts: Mapping[Any, Any] = field(default_factory=dict)
    key_context_list: Sequence[Any] = ()


class _BatchLoaderBase(ABC):
    variant: ClassVar[LoaderVariant]


class BatchLoader(_BatchLoaderBase, Generic[K, V]):
    """Loads an ordered list of keys into an index-aligned list of values."""

    variant = LoaderVariant.LIST

    @abstractmethod
    def load_batch(self, keys: list[K]) -> ListResult[V] | Awaitable[ListResult[V]]:
        """Return one value (or exception instance) per key, in key order."""


class BatchLoaderWithContext(_BatchLoaderBase, Generic[K, V]):
    """List loader that also receives the batch environment."""

    variant = LoaderVariant.LIST_WITH_CONTEXT

    @abstractmethod
    def load_batch(
        self, keys: list[K], environment: BatchLoaderEnvironment
    ) -> ListResult[V] | Awaitable[ListResult[V]]:
        """Return one value (or exception instance) per key, in key order."""


class MappedBatchLoader(_BatchLoaderBase, Generic[K, V]):
    """Loads a set of keys into a mapping; absent keys are allowed."""

    variant = LoaderVariant.MAPPED

    @abstractmethod
    def load_batch(self, keys: set[K]) -> MappedResult[K, V] | Awaitable[MappedResult[K, V]]:
        """Return values for the keys that exist."""


class MappedBatchLoaderWithContext(_BatchLoaderBase, Generic[K, V]):
    """Mapped loader that also receives the batch environment."""

    variant = LoaderVariant.MAPPED_WITH_CONTEXT

    @abstractmethod
    def load_batch(
        self, keys: set[K], environment: BatchLoaderEnvironment
    ) -> MappedResult[K, V] | Awaitable[MappedResult[K, V]]:
        """Return values for the keys that exist."""


def classify(candidate: Any, declared: LoaderVariant | None = None) -> LoaderVariant | None:
    """Return the variant of a batch loader instance, class or function.

    Subclasses of the base loader classes carry their own variant. Other
    callables match only when a variant was declared for them. Anything
    else returns None.
    """
    if isinstance(candidate, type):
        if issubclass(candidate, _BatchLoaderBase):
            return candidate.variant
        return None
    if isinstance(candidate, _BatchLoaderBase):
        return candidate.variant
    if declared is not None and callable(candidate):
        return declared
    return None


def resolve_batch_function(batch_object: Any, name: str) -> BatchFunction:
    """Return the callable a DataLoader invokes for ``batch_object``."""
    if isinstance(batch_object, _BatchLoaderBase):
        return batch_object.load_batch
    if callable(batch_object):
        return batch_object
    raise InvalidDataLoaderTypeError(
        detail=f"Data loader {name!r} resolved to a non-callable {type(batch_object).__name__}",
        extra={"loader": name},
    )


__all__ = [
    "BatchFunction",
    "BatchLoader",
    "BatchLoaderEnvironment",
    "BatchLoaderWithContext",
    "LoaderVariant",
    "MappedBatchLoader",
    "MappedBatchLoaderWithContext",
    "classify",
    "resolve_batch_function",
]
