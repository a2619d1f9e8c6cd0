"""Data loader provider.

Glues discovery and the registry builder together: discovery runs once
(or per request, with ``DATALOADER_REDISCOVER_PER_REQUEST=true``) and
every call to ``build_registry`` returns a fresh registry.

Usage:
    container = StaticContainer()
    container.add_dataloader(UserLoader)

    provider = DataLoaderProvider(container)
    provider.find_dataloaders()           # optional, done lazily otherwise

    registry = provider.build_registry()  # once per request
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from batchloader.core.settings import get_dataloader_settings
from batchloader.features.dataloaders.builder import RegistryBuilder
from batchloader.features.dataloaders.discovery import (
    discover,
    discover_customizers,
    discover_instrumentation_providers,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from batchloader.core.settings.dataloader import DataLoaderSettings
    from batchloader.features.dataloaders.container import HostContainer
    from batchloader.features.dataloaders.descriptors import LoaderDescriptor
    from batchloader.features.dataloaders.options import Customizer
    from batchloader.features.dataloaders.registry import DataLoaderRegistry


class DataLoaderProvider:
    """Discovers loaders in a host container and builds per-request registries.

    Args:
        container: Source of loader declarations, customizers and
            instrumentation providers.
        settings: Engine settings; loaded from the environment when omitted.
        customizers: Extra customizers applied after the container's own.
    """

    def __init__(
        self,
        container: HostContainer,
        settings: DataLoaderSettings | None = None,
        customizers: Iterable[Customizer] = (),
    ) -> None:
        self.container = container
        self.settings = settings or get_dataloader_settings()
        self._extra_customizers = list(customizers)
        self._descriptors: list[LoaderDescriptor] | None = None
        self._customizers: list[Customizer] = []
        self._builder: RegistryBuilder | None = None

    @property
    def descriptors(self) -> list[LoaderDescriptor]:
        """Descriptors from the last discovery run (discovering if needed)."""
        if self._descriptors is None:
            self.find_dataloaders()
        return list(self._descriptors or [])

    def find_dataloaders(self) -> list[LoaderDescriptor]:
        """Run discovery against the container and cache the result.

        Raises:
            InvalidDataLoaderTypeError: A declared loader matches no variant.
            DiscoveryError: The container failed.
        """
        self._discover()
        return list(self._descriptors or [])

    def _discover(self) -> RegistryBuilder:
        descriptors = discover(self.container)
        customizers: list[Customizer] = [
            *discover_customizers(self.container),
            *self._extra_customizers,
        ]
        builder = RegistryBuilder(
            self.settings,
            instrumentation_providers=discover_instrumentation_providers(self.container),
        )

        self._descriptors = descriptors
        self._customizers = customizers
        self._builder = builder
        return builder

    def build_registry(self, context: Any = None) -> DataLoaderRegistry:
        """Build a fresh registry for one request.

        Args:
            context: Request context handed to ``*_WITH_CONTEXT`` loaders.
        """
        builder = self._builder
        if builder is None or self.settings.rediscover_per_request:
            builder = self._discover()
        return builder.build(self._descriptors or [], self._customizers, context=context)


__all__ = ["DataLoaderProvider"]
