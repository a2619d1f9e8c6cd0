"""Request-scoped batched data loading with declarative loader discovery."""

from __future__ import annotations

from batchloader.core.exceptions import (
    BatchExecutionError,
    BatchShapeError,
    DataLoaderError,
    DataLoaderKeyNotFoundError,
    DiscoveryError,
    DuplicateLoaderNameError,
    InvalidDataLoaderTypeError,
    RegistryFrozenError,
)
from batchloader.features.dataloaders import (
    BatchLoader,
    BatchLoaderEnvironment,
    BatchLoaderWithContext,
    DataLoader,
    DataLoaderComponent,
    DataLoaderInstrumentation,
    DataLoaderOptions,
    DataLoaderOptionsCustomizer,
    DataLoaderProvider,
    DataLoaderRegistry,
    DataLoaderRegistryConsumer,
    LoaderDescriptor,
    LoaderVariant,
    MappedBatchLoader,
    MappedBatchLoaderWithContext,
    MissingKeyPolicy,
    StaticContainer,
    dataloader,
    loader_field,
)

__version__ = "1.0.0"

__all__ = [
    "BatchExecutionError",
    "BatchLoader",
    "BatchLoaderEnvironment",
    "BatchLoaderWithContext",
    "BatchShapeError",
    "DataLoader",
    "DataLoaderComponent",
    "DataLoaderError",
    "DataLoaderInstrumentation",
    "DataLoaderKeyNotFoundError",
    "DataLoaderOptions",
    "DataLoaderOptionsCustomizer",
    "DataLoaderProvider",
    "DataLoaderRegistry",
    "DataLoaderRegistryConsumer",
    "DiscoveryError",
    "DuplicateLoaderNameError",
    "InvalidDataLoaderTypeError",
    "LoaderDescriptor",
    "LoaderVariant",
    "MappedBatchLoader",
    "MappedBatchLoaderWithContext",
    "MissingKeyPolicy",
    "RegistryFrozenError",
    "StaticContainer",
    "dataloader",
    "loader_field",
]
