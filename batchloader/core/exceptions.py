"""Errors raised by registry assembly and batch dispatch."""

from __future__ import annotations

from typing import Any


class DataLoaderError(Exception):
    """Root of every error raised while building registries or dispatching batches.

    ``type`` is a stable slug suitable for logs and GraphQL error extensions;
    ``extra`` carries structured details such as the loader name.
    """

    default_type = "dataloader-error"

    def __init__(
        self,
        detail: str,
        type: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.detail = detail
        self.type = type or self.default_type
        self.extra = extra or {}
        super().__init__(detail)


# Assembly: fatal to the registry build


class InvalidDataLoaderTypeError(DataLoaderError):
    """Raised when a declared loader matches none of the batch loader variants."""

    default_type = "invalid-dataloader-type"


class DuplicateLoaderNameError(DataLoaderError):
    """Raised when two descriptors resolve to the same loader name."""

    default_type = "duplicate-loader-name"

    def __init__(self, name: str, extra: dict[str, Any] | None = None) -> None:
        self.name = name
        super().__init__(
            detail=f"Duplicate data loader name: {name!r}",
            extra={"loader": name, **(extra or {})},
        )


class DiscoveryError(DataLoaderError):
    """Raised when a container lookup or an options customizer fails.

    The original exception is chained as ``__cause__``.
    """

    default_type = "discovery-error"


class RegistryFrozenError(DataLoaderError):
    """Raised when a loader is registered after the registry was built."""

    default_type = "registry-frozen"


# Dispatch: scoped to one chunk or one key


class BatchShapeError(DataLoaderError):
    """Raised when a batch function returns a result of the wrong shape.

    List loaders must return one entry per key; mapped loaders must return
    a mapping.
    """

    default_type = "batch-shape"


class BatchExecutionError(DataLoaderError):
    """Raised for every key of a chunk whose batch function failed.

    The batch function's exception is chained as ``__cause__``.
    """

    default_type = "batch-execution"


class DataLoaderKeyNotFoundError(DataLoaderError):
    """Raised when a mapped batch result omits a key and the policy is RAISE."""

    default_type = "key-not-found"

    def __init__(self, loader: str, key: Any) -> None:
        self.loader = loader
        self.key = key
        super().__init__(
            detail=f"Key {key!r} not returned by data loader {loader!r}",
            extra={"loader": loader, "key": repr(key)},
        )


__all__ = [
    "BatchExecutionError",
    "BatchShapeError",
    "DataLoaderError",
    "DataLoaderKeyNotFoundError",
    "DiscoveryError",
    "DuplicateLoaderNameError",
    "InvalidDataLoaderTypeError",
    "RegistryFrozenError",
]
