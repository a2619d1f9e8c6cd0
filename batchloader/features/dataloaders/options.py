"""Data loader options and the options customizer chain.

Every loader gets a fresh, mutable ``DataLoaderOptions`` seeded from
``DataLoaderSettings`` and its declaration. Customizers registered in the
host container then run against it, in container order, before the
loader is instantiated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

from batchloader.core.exceptions import DiscoveryError

if TYPE_CHECKING:
    from batchloader.core.settings.dataloader import DataLoaderSettings
    from batchloader.features.dataloaders.descriptors import LoaderDescriptor
    from batchloader.features.dataloaders.instrumentation import DataLoaderInstrumentation

logger = logging.getLogger(__name__)


class MissingKeyPolicy(str, Enum):
    """Outcome for keys a mapped batch loader leaves out of its result."""

    RESOLVE_NONE = "none"
    RAISE = "error"


@dataclass
class DataLoaderOptions:
    """Mutable configuration for a single DataLoader.

    Attributes:
        max_batch_size: Largest chunk handed to the batch function.
            None or a value <= 0 means unlimited.
        batching_enabled: When False every key is dispatched on its own.
        caching_enabled: Keep loaded futures for the lifetime of the loader.
        cache_key_fn: Maps a key to the value used for caching and dedup.
        missing_key_policy: What mapped loaders do with absent keys.
        context_provider: Supplies ``BatchLoaderEnvironment.context``.
        instrumentations: Hooks notified about loads and batches.
    """

    max_batch_size: int | None = None
    batching_enabled: bool = True
    caching_enabled: bool = True
    cache_key_fn: Callable[[Any], Hashable] | None = None
    missing_key_policy: MissingKeyPolicy = MissingKeyPolicy.RESOLVE_NONE
    context_provider: Callable[[], Any] | None = None
    instrumentations: list[DataLoaderInstrumentation] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: DataLoaderSettings) -> DataLoaderOptions:
        """Build engine defaults from settings."""
        return cls(
            max_batch_size=settings.effective_max_batch_size,
            batching_enabled=settings.batching_enabled,
            caching_enabled=settings.caching_enabled,
            missing_key_policy=MissingKeyPolicy(settings.missing_key_policy),
        )

    @property
    def effective_batch_size(self) -> int | None:
        """Chunk size used by dispatch, or None for a single chunk."""
        if not self.batching_enabled:
            return 1
        if self.max_batch_size is None or self.max_batch_size <= 0:
            return None
        return self.max_batch_size


@runtime_checkable
class DataLoaderOptionsCustomizer(Protocol):
    """Mutates the options of every loader before it is built.

    Example:
        class LimitBatches:
            def customize(self, descriptor, options):
                options.max_batch_size = 100
    """

    def customize(self, descriptor: LoaderDescriptor, options: DataLoaderOptions) -> None:
        """Adjust ``options`` in place for the loader described by ``descriptor``."""
        ...


CustomizerFunction = Callable[["LoaderDescriptor", DataLoaderOptions], None]
Customizer = Union[DataLoaderOptionsCustomizer, CustomizerFunction]


def apply_customizers(
    descriptor: LoaderDescriptor,
    options: DataLoaderOptions,
    customizers: Iterable[Customizer],
) -> DataLoaderOptions:
    """Run every customizer, in order, against the same options object.

    Args:
        descriptor: The loader about to be built.
        options: Options to mutate in place.
        customizers: Customizer objects or plain ``(descriptor, options)`` callables.

    Returns:
        The same ``options`` object, for chaining.

    Raises:
        DiscoveryError: If a customizer raises; the original error is the cause.
    """
    for customizer in customizers:
        customize = (
            customizer.customize
            if isinstance(customizer, DataLoaderOptionsCustomizer)
            else customizer
        )
        try:
            customize(descriptor, options)
        except Exception as exc:
            logger.exception(
                "Options customizer failed",
                extra={"loader": descriptor.name, "customizer": repr(customizer)},
            )
            raise DiscoveryError(
                detail=f"Options customizer {customizer!r} failed for data loader {descriptor.name!r}",
                extra={"loader": descriptor.name, "customizer": repr(customizer)},
            ) from exc
    return options


__all__ = [
    "Customizer",
    "DataLoaderOptions",
    "DataLoaderOptionsCustomizer",
    "MissingKeyPolicy",
    "apply_customizers",
]
