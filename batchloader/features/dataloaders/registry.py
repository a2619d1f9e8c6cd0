"""Per-request registry of named data loaders."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from batchloader.core.exceptions import DuplicateLoaderNameError, RegistryFrozenError
from batchloader.features.dataloaders.loader import DataLoader, DataLoaderStatistics

if TYPE_CHECKING:
    from collections.abc import Iterator


class DataLoaderRegistry:
    """Named DataLoaders for one request.

    Membership is fixed once ``freeze`` has been called (the registry
    builder does this); the loaders themselves keep queuing and caching.

    Usage in resolver:
        loaders = info.context.loaders
        user = await loaders["users"].load(user_id)
    """

    def __init__(self) -> None:
        self._loaders: dict[str, DataLoader[Any, Any]] = {}
        self._frozen = False

    def __repr__(self) -> str:
        return f"<DataLoaderRegistry loaders={list(self._loaders)!r} frozen={self._frozen}>"

    def register(self, name: str, loader: DataLoader[Any, Any]) -> DataLoaderRegistry:
        """Add a loader under ``name``.

        Raises:
            RegistryFrozenError: The registry was already built.
            DuplicateLoaderNameError: ``name`` is taken.
        """
        if self._frozen:
            raise RegistryFrozenError(
                detail=f"Cannot register data loader {name!r}: registry is frozen",
                extra={"loader": name},
            )
        if name in self._loaders:
            raise DuplicateLoaderNameError(name)
        self._loaders[name] = loader
        return self

    def freeze(self) -> DataLoaderRegistry:
        """Fix the registry's membership."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> DataLoader[Any, Any] | None:
        """Return the loader registered as ``name``, or None."""
        return self._loaders.get(name)

    def __getitem__(self, name: str) -> DataLoader[Any, Any]:
        return self._loaders[name]

    def __contains__(self, name: object) -> bool:
        return name in self._loaders

    def __iter__(self) -> Iterator[str]:
        return iter(self._loaders)

    def __len__(self) -> int:
        return len(self._loaders)

    def keys(self) -> list[str]:
        """Loader names in registration order."""
        return list(self._loaders)

    def loaders(self) -> list[DataLoader[Any, Any]]:
        """Loaders in registration order."""
        return list(self._loaders.values())

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch_all(self) -> asyncio.Future[Any]:
        """Dispatch every loader.

        Returns:
            A future completing once every chunk started by this call settled.
        """
        dispatched = [loader.dispatch() for loader in self._loaders.values()]
        if not dispatched:
            done = asyncio.get_running_loop().create_future()
            done.set_result([])
            return done
        return asyncio.gather(*dispatched)

    def dispatch_depth(self) -> int:
        """Total number of keys waiting across all loaders."""
        return sum(loader.dispatch_depth for loader in self._loaders.values())

    def statistics(self) -> dict[str, DataLoaderStatistics]:
        """Statistics of each loader, keyed by name."""
        return {name: loader.statistics for name, loader in self._loaders.items()}

    def combined_statistics(self) -> DataLoaderStatistics:
        """Statistics summed over every loader."""
        total = DataLoaderStatistics()
        for loader in self._loaders.values():
            total = total.merge(loader.statistics)
        return total


__all__ = ["DataLoaderRegistry"]
