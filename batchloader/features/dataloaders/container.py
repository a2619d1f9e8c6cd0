"""Host container abstraction.

Discovery only needs two things from the application's component
container: named candidates carrying a marker, and beans of a given type.
``HostContainer`` captures that contract; ``StaticContainer`` is an
explicit registration table implementing it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, Protocol, TypeVar, runtime_checkable

from batchloader.features.dataloaders.declarations import default_loader_name

T = TypeVar("T")


class Marker(str, Enum):
    """Markers a candidate can be registered under."""

    DATALOADER = "dataloader"
    COMPONENT = "component"


@runtime_checkable
class HostContainer(Protocol):
    """Protocol for the component container loaders are discovered from.

    This protocol enables:
    - Unit testing with StaticContainer
    - Adapters over other dependency injection containers
    """

    def find_candidates_by_marker(self, marker: Marker) -> Mapping[str, Any]:
        """Return candidates registered under ``marker``, keyed by bean name.

        Iteration order must be stable between calls.
        """
        ...

    def resolve_beans_of_type(self, type_: type[T]) -> Sequence[T]:
        """Return every registered object that is an instance of ``type_``."""
        ...


def _bean_name(obj: Any) -> str:
    name = default_loader_name(obj)
    return name[:1].lower() + name[1:]


class StaticContainer:
    """In-memory registration table.

    Example:
        container = StaticContainer()
        container.add_dataloader(UserLoader())
        container.add_component(ReminderComponent(session_factory))
        container.add_bean("limitBatches", LimitBatches())

        provider = DataLoaderProvider(container)
    """

    def __init__(self) -> None:
        self._candidates: dict[Marker, dict[str, Any]] = {marker: {} for marker in Marker}
        self._beans: dict[str, Any] = {}

    def add_dataloader(self, obj: T, name: str | None = None) -> T:
        """Register a ``@dataloader`` class, instance or function."""
        return self._add(Marker.DATALOADER, obj, name)

    def add_component(self, obj: T, name: str | None = None) -> T:
        """Register a component whose loader fields should be discovered."""
        return self._add(Marker.COMPONENT, obj, name)

    def add_bean(self, name: str, obj: T) -> T:
        """Register a plain bean, such as an options customizer."""
        self._beans[name] = obj
        return obj

    def _add(self, marker: Marker, obj: T, name: str | None) -> T:
        bean_name = name or _bean_name(obj)
        self._candidates[marker][bean_name] = obj
        self._beans[bean_name] = obj
        return obj

    def find_candidates_by_marker(self, marker: Marker) -> dict[str, Any]:
        return dict(self._candidates[marker])

    def resolve_beans_of_type(self, type_: type[T]) -> list[T]:
        return [
            bean
            for bean in self._beans.values()
            if not isinstance(bean, type) and isinstance(bean, type_)
        ]


__all__ = ["HostContainer", "Marker", "StaticContainer"]
