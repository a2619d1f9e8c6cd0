"""Data loader discovery.

Turns the candidates of a ``HostContainer`` into ``LoaderDescriptor``s.
Discovery is a pure function of the container's contents: it can run once
at startup or again for every request, and yields the same descriptors in
the same order each time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from batchloader.core.exceptions import DiscoveryError, InvalidDataLoaderTypeError
from batchloader.features.dataloaders.container import HostContainer, Marker
from batchloader.features.dataloaders.declarations import (
    DataLoaderSpec,
    LoaderField,
    default_loader_name,
    get_dataloader_spec,
    iter_loader_fields,
)
from batchloader.features.dataloaders.descriptors import LoaderDescriptor
from batchloader.features.dataloaders.instrumentation import DataLoaderInstrumentationProvider
from batchloader.features.dataloaders.options import DataLoaderOptionsCustomizer
from batchloader.features.dataloaders.variants import classify

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _candidates(container: HostContainer, marker: Marker) -> Mapping[str, Any]:
    try:
        return container.find_candidates_by_marker(marker)
    except Exception as exc:
        raise DiscoveryError(
            detail=f"Looking up {marker.value} candidates failed: {exc}",
            extra={"marker": marker.value},
        ) from exc


def _beans(container: HostContainer, type_: type[T]) -> Sequence[T]:
    try:
        return container.resolve_beans_of_type(type_)
    except Exception as exc:
        raise DiscoveryError(
            detail=f"Resolving {type_.__name__} beans failed: {exc}",
            extra={"type": type_.__name__},
        ) from exc


def _describe(
    name: str,
    target: Any,
    spec: DataLoaderSpec,
    origin: Any,
    field: str | None = None,
) -> LoaderDescriptor | None:
    variant = classify(target, spec.variant)
    if variant is None:
        return None
    is_class = isinstance(target, type)
    return LoaderDescriptor(
        name=name,
        variant=variant,
        origin=origin,
        source=None if is_class else target,
        factory=target if is_class else None,
        field=field,
        max_batch_size=spec.max_batch_size,
        caching=spec.caching,
        batching=spec.batching,
    )


def describe_candidate(candidate: Any) -> LoaderDescriptor | None:
    """Describe a candidate that is itself a batch loader, or return None."""
    spec = get_dataloader_spec(candidate) or DataLoaderSpec()
    name = spec.name or default_loader_name(candidate)
    return _describe(name, candidate, spec, origin=candidate)


def describe_fields(bean_name: str, candidate: Any) -> list[LoaderDescriptor]:
    """Describe every loader field declared on a candidate.

    Raises:
        InvalidDataLoaderTypeError: If a declared field is not a batch loader.
    """
    descriptors = []
    for attribute, declared in iter_loader_fields(candidate):
        descriptor = _describe_field(bean_name, candidate, attribute, declared)
        descriptors.append(descriptor)
    return descriptors


def _describe_field(
    bean_name: str, candidate: Any, attribute: str, declared: LoaderField
) -> LoaderDescriptor:
    name = declared.name or attribute
    descriptor = _describe(name, declared.target, declared.spec, origin=candidate, field=attribute)
    if descriptor is None:
        raise InvalidDataLoaderTypeError(
            detail=(
                f"Field {attribute!r} of {bean_name!r} is declared as a data loader "
                f"but {type(declared.target).__name__} is not a batch loader"
            ),
            extra={"candidate": bean_name, "field": attribute},
        )
    return descriptor


def discover(container: HostContainer) -> list[LoaderDescriptor]:
    """Find every data loader declared in ``container``.

    Direct loaders come first, in container order, followed by field
    loaders in container and declaration order.

    Raises:
        InvalidDataLoaderTypeError: A declared loader matches no variant.
        DiscoveryError: The container failed.
    """
    direct = _candidates(container, Marker.DATALOADER)
    components = _candidates(container, Marker.COMPONENT)

    descriptors: list[LoaderDescriptor] = []
    field_descriptors: list[LoaderDescriptor] = []
    scanned: set[int] = set()

    for bean_name, candidate in direct.items():
        descriptor = describe_candidate(candidate)
        fields = describe_fields(bean_name, candidate)
        scanned.add(id(candidate))
        if descriptor is None and not fields:
            raise InvalidDataLoaderTypeError(
                detail=(
                    f"{bean_name!r} is declared as a data loader but "
                    f"{type(candidate).__name__} implements no batch loader variant"
                ),
                extra={"candidate": bean_name, "type": type(candidate).__name__},
            )
        if descriptor is not None:
            descriptors.append(descriptor)
        field_descriptors.extend(fields)

    for bean_name, candidate in components.items():
        if id(candidate) in scanned:
            continue
        scanned.add(id(candidate))
        field_descriptors.extend(describe_fields(bean_name, candidate))

    found = descriptors + field_descriptors
    logger.info(
        "Discovered data loaders",
        extra={"loader_count": len(found), "loaders": [d.name for d in found]},
    )
    return found


def discover_customizers(container: HostContainer) -> list[DataLoaderOptionsCustomizer]:
    """Return the options customizers registered in ``container``, in order."""
    return list(_beans(container, DataLoaderOptionsCustomizer))


def discover_instrumentation_providers(
    container: HostContainer,
) -> list[DataLoaderInstrumentationProvider]:
    """Return the instrumentation providers registered in ``container``, in order."""
    return list(_beans(container, DataLoaderInstrumentationProvider))


__all__ = [
    "describe_candidate",
    "describe_fields",
    "discover",
    "discover_customizers",
    "discover_instrumentation_providers",
]
