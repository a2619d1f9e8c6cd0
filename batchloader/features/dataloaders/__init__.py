"""Request-scoped batched data loading.

DataLoaders batch and cache key lookups within a single request,
preventing N+1 query problems common in GraphQL resolvers.

Each request gets its own DataLoaderRegistry to ensure proper batching
boundaries and cache isolation.
"""

from __future__ import annotations

from batchloader.features.dataloaders.builder import (
    DataLoaderRegistryConsumer,
    RegistryBuilder,
    ResettableBatchLoader,
)
from batchloader.features.dataloaders.container import HostContainer, Marker, StaticContainer
from batchloader.features.dataloaders.declarations import (
    DataLoaderComponent,
    DataLoaderSpec,
    LoaderField,
    dataloader,
    loader_field,
)
from batchloader.features.dataloaders.descriptors import LoaderDescriptor
from batchloader.features.dataloaders.discovery import discover
from batchloader.features.dataloaders.instrumentation import (
    DataLoaderInstrumentation,
    DataLoaderInstrumentationProvider,
    LoggingInstrumentation,
)
from batchloader.features.dataloaders.loader import DataLoader, DataLoaderStatistics
from batchloader.features.dataloaders.options import (
    DataLoaderOptions,
    DataLoaderOptionsCustomizer,
    MissingKeyPolicy,
    apply_customizers,
)
from batchloader.features.dataloaders.provider import DataLoaderProvider
from batchloader.features.dataloaders.registry import DataLoaderRegistry
from batchloader.features.dataloaders.variants import (
    BatchLoader,
    BatchLoaderEnvironment,
    BatchLoaderWithContext,
    LoaderVariant,
    MappedBatchLoader,
    MappedBatchLoaderWithContext,
)

__all__ = [
    "BatchLoader",
    "BatchLoaderEnvironment",
    "BatchLoaderWithContext",
    "DataLoader",
    "DataLoaderComponent",
    "DataLoaderInstrumentation",
    "DataLoaderInstrumentationProvider",
    "DataLoaderOptions",
    "DataLoaderOptionsCustomizer",
    "DataLoaderProvider",
    "DataLoaderRegistry",
    "DataLoaderRegistryConsumer",
    "DataLoaderSpec",
    "DataLoaderStatistics",
    "HostContainer",
    "LoaderDescriptor",
    "LoaderField",
    "LoaderVariant",
    "LoggingInstrumentation",
    "MappedBatchLoader",
    "MappedBatchLoaderWithContext",
    "Marker",
    "MissingKeyPolicy",
    "RegistryBuilder",
    "ResettableBatchLoader",
    "StaticContainer",
    "apply_customizers",
    "dataloader",
    "discover",
    "loader_field",
]
