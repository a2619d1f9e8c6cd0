"""Loader descriptors produced by discovery."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from batchloader.features.dataloaders.variants import LoaderVariant


@dataclass(frozen=True)
class LoaderDescriptor:
    """Everything needed to build one named DataLoader.

    Exactly one of ``source`` and ``factory`` is set: singletons reuse
    ``source`` across registry builds, factory loaders get a fresh batch
    object per build.

    Attributes:
        name: Registry name, unique within a build.
        variant: Shape of the batch function.
        origin: The container candidate the loader was found on.
        source: Batch object or function shared by every build.
        factory: Zero-argument callable producing a fresh batch object.
        field: Attribute name when declared as a component field.
        max_batch_size: Declared batch size limit, None for the engine default.
        caching: Declared caching flag, None for the engine default.
        batching: Declared batching flag, None for the engine default.
    """

    name: str
    variant: LoaderVariant
    origin: Any
    source: Any = None
    factory: Callable[[], Any] | None = None
    field: str | None = None
    max_batch_size: int | None = None
    caching: bool | None = None
    batching: bool | None = None

    @property
    def context_required(self) -> bool:
        """True when the batch function expects a BatchLoaderEnvironment."""
        return self.variant.with_context

    @property
    def is_singleton(self) -> bool:
        """True when the same batch object is reused across builds."""
        return self.factory is None

    def create_batch_object(self) -> Any:
        """Return the batch object for a new registry build."""
        if self.factory is not None:
            return self.factory()
        return self.source


__all__ = ["LoaderDescriptor"]
