"""Registry builder.

Turns descriptors into a frozen ``DataLoaderRegistry`` for one request:

1. reject duplicate names before anything is built;
2. for each descriptor, seed options from settings and the declaration,
   run the options customizer chain, then build the DataLoader;
3. hand the finished registry to batch objects that asked for it;
4. freeze and return the registry.

Any failure aborts the build; no partial registry escapes.
"""

from __future__ import annotations

import copy
import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from batchloader.core.exceptions import DiscoveryError, DuplicateLoaderNameError
from batchloader.core.settings import get_dataloader_settings
from batchloader.features.dataloaders.instrumentation import LoggingInstrumentation
from batchloader.features.dataloaders.loader import DataLoader
from batchloader.features.dataloaders.options import DataLoaderOptions, apply_customizers
from batchloader.features.dataloaders.registry import DataLoaderRegistry
from batchloader.features.dataloaders.variants import resolve_batch_function

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from batchloader.core.settings.dataloader import DataLoaderSettings
    from batchloader.features.dataloaders.descriptors import LoaderDescriptor
    from batchloader.features.dataloaders.instrumentation import (
        DataLoaderInstrumentation,
        DataLoaderInstrumentationProvider,
    )
    from batchloader.features.dataloaders.options import Customizer

logger = logging.getLogger(__name__)


@runtime_checkable
class DataLoaderRegistryConsumer(Protocol):
    """Batch objects implementing this receive the registry they belong to.

    The registry is injected after every loader has been registered, so
    the consumer sees all of its siblings, itself included. A consumer
    registered as an instance is shallow-copied for each build; the
    registered object itself is never handed a registry.
    """

    def set_dataloader_registry(self, registry: DataLoaderRegistry) -> None:
        """Store ``registry`` for use inside the batch function."""
        ...


@runtime_checkable
class ResettableBatchLoader(Protocol):
    """Singleton batch objects implementing this are reset on every build."""

    def reset(self) -> None:
        """Drop any request-scoped state."""
        ...


def _constant(value: Any) -> Any:
    return lambda: value


class RegistryBuilder:
    """Builds DataLoaderRegistry instances from descriptors.

    Args:
        settings: Engine defaults; loaded from the environment when omitted.
        instrumentation_providers: Contribute instrumentation per loader.
    """

    def __init__(
        self,
        settings: DataLoaderSettings | None = None,
        instrumentation_providers: Sequence[DataLoaderInstrumentationProvider] = (),
    ) -> None:
        self.settings = settings or get_dataloader_settings()
        self.instrumentation_providers = list(instrumentation_providers)
        self._builtin_instrumentations = self._create_builtin_instrumentations()

    def _create_builtin_instrumentations(self) -> list[DataLoaderInstrumentation]:
        instrumentations: list[DataLoaderInstrumentation] = []
        if self.settings.log_batches:
            instrumentations.append(LoggingInstrumentation())
        if self.settings.metrics_enabled:
            from batchloader.features.dataloaders.metrics import MetricsInstrumentation

            instrumentations.append(MetricsInstrumentation())
        if self.settings.tracing_enabled:
            from batchloader.features.dataloaders.tracing import TracingInstrumentation

            instrumentations.append(TracingInstrumentation())
        return instrumentations

    def default_options(self, descriptor: LoaderDescriptor) -> DataLoaderOptions:
        """Engine defaults overlaid with the descriptor's declared options."""
        options = DataLoaderOptions.from_settings(self.settings)
        if descriptor.max_batch_size is not None:
            options.max_batch_size = descriptor.max_batch_size
        if descriptor.caching is not None:
            options.caching_enabled = descriptor.caching
        if descriptor.batching is not None:
            options.batching_enabled = descriptor.batching

        options.instrumentations.extend(self._builtin_instrumentations)
        for provider in self.instrumentation_providers:
            instrumentation = provider.provide(descriptor)
            if instrumentation is not None:
                options.instrumentations.append(instrumentation)
        return options

    def build(
        self,
        descriptors: Iterable[LoaderDescriptor],
        customizers: Iterable[Customizer] = (),
        context: Any = None,
    ) -> DataLoaderRegistry:
        """Build a frozen registry.

        Args:
            descriptors: Loaders to build.
            customizers: Options customizers, applied in order to every loader.
            context: Default value returned by context providers of
                ``*_WITH_CONTEXT`` loaders.

        Raises:
            DuplicateLoaderNameError: Two descriptors share a name.
            DiscoveryError: A customizer or a loader factory failed.
        """
        descriptors = list(descriptors)
        customizers = list(customizers)
        self._check_unique(descriptors)

        registry = DataLoaderRegistry()
        consumers: list[DataLoaderRegistryConsumer] = []

        for descriptor in descriptors:
            options = apply_customizers(descriptor, self.default_options(descriptor), customizers)
            if descriptor.context_required and options.context_provider is None:
                options.context_provider = _constant(context)

            batch_object = self._batch_object(descriptor)
            loader: DataLoader[Any, Any] = DataLoader(
                resolve_batch_function(batch_object, descriptor.name),
                name=descriptor.name,
                variant=descriptor.variant,
                options=options,
            )
            registry.register(descriptor.name, loader)
            if isinstance(batch_object, DataLoaderRegistryConsumer):
                consumers.append(batch_object)

        for consumer in consumers:
            consumer.set_dataloader_registry(registry)

        registry.freeze()
        logger.debug(
            "Built data loader registry",
            extra={"loader_count": len(registry), "loaders": registry.keys()},
        )
        return registry

    @staticmethod
    def _check_unique(descriptors: list[LoaderDescriptor]) -> None:
        counts = Counter(descriptor.name for descriptor in descriptors)
        duplicates = sorted(name for name, count in counts.items() if count > 1)
        if duplicates:
            raise DuplicateLoaderNameError(duplicates[0], extra={"duplicates": duplicates})

    @staticmethod
    def _batch_object(descriptor: LoaderDescriptor) -> Any:
        try:
            batch_object = descriptor.create_batch_object()
        except Exception as exc:
            raise DiscoveryError(
                detail=f"Creating data loader {descriptor.name!r} failed: {exc}",
                extra={"loader": descriptor.name},
            ) from exc
        if not descriptor.is_singleton:
            return batch_object
        if isinstance(batch_object, ResettableBatchLoader):
            batch_object.reset()
        # Shared objects must not hold another request's registry
        if isinstance(batch_object, DataLoaderRegistryConsumer):
            batch_object = copy.copy(batch_object)
        return batch_object


__all__ = ["DataLoaderRegistryConsumer", "RegistryBuilder", "ResettableBatchLoader"]
