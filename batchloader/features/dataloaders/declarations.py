"""Declaring data loaders.

Two ways to declare a loader:

1. Decorate a batch loader class or function with ``@dataloader`` and
   register it (or an instance of it) in the host container:

    @dataloader(name="users", max_batch_size=100)
    class UserLoader(BatchLoader[int, User]):
        ...

    @dataloader(name="tags", variant=LoaderVariant.MAPPED)
    async def load_tags(keys: set[UUID]) -> dict[UUID, Tag]:
        ...

2. Declare loader fields on a component with ``loader_field``:

    class ReminderComponent(DataLoaderComponent):
        reminders = loader_field(ReminderLoader, name="reminders")

        def __init__(self, session_factory):
            self._owners = loader_field(OwnerLoader(session_factory))

   Class-level and instance-level fields are both picked up, including
   underscore-prefixed ones.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, TypeVar, overload, runtime_checkable

from batchloader.features.dataloaders.variants import LoaderVariant

T = TypeVar("T")

SPEC_ATTRIBUTE = "__dataloader_spec__"


@dataclass(frozen=True)
class DataLoaderSpec:
    """Declaration metadata attached by ``@dataloader``.

    Attributes:
        name: Registry name; defaults to the class or function name.
        max_batch_size: Batch size limit for this loader.
        caching: Per-loader caching flag.
        batching: Per-loader batching flag.
        variant: Shape of a plain function (classes carry their own).
    """

    name: str | None = None
    max_batch_size: int | None = None
    caching: bool | None = None
    batching: bool | None = None
    variant: LoaderVariant | None = None

    def merged(self, other: DataLoaderSpec | None) -> DataLoaderSpec:
        """Return a spec where set values of ``self`` win over ``other``."""
        if other is None:
            return self
        return DataLoaderSpec(
            name=self.name if self.name is not None else other.name,
            max_batch_size=(
                self.max_batch_size if self.max_batch_size is not None else other.max_batch_size
            ),
            caching=self.caching if self.caching is not None else other.caching,
            batching=self.batching if self.batching is not None else other.batching,
            variant=self.variant if self.variant is not None else other.variant,
        )


@overload
def dataloader(target: T) -> T: ...


@overload
def dataloader(
    target: None = None,
    *,
    name: str | None = None,
    max_batch_size: int | None = None,
    caching: bool | None = None,
    batching: bool | None = None,
    variant: LoaderVariant | None = None,
) -> Callable[[T], T]: ...


def dataloader(
    target: Any = None,
    *,
    name: str | None = None,
    max_batch_size: int | None = None,
    caching: bool | None = None,
    batching: bool | None = None,
    variant: LoaderVariant | None = None,
) -> Any:
    """Mark a class or function as a data loader declaration.

    Usable bare (``@dataloader``) or with arguments.
    """
    spec = DataLoaderSpec(
        name=name,
        max_batch_size=max_batch_size,
        caching=caching,
        batching=batching,
        variant=variant,
    )

    def decorate(obj: T) -> T:
        setattr(obj, SPEC_ATTRIBUTE, spec)
        return obj

    if target is not None:
        return decorate(target)
    return decorate


def get_dataloader_spec(obj: Any) -> DataLoaderSpec | None:
    """Return the ``@dataloader`` metadata of a class, instance or function."""
    spec = getattr(obj, SPEC_ATTRIBUTE, None)
    return spec if isinstance(spec, DataLoaderSpec) else None


def default_loader_name(obj: Any) -> str:
    """Deterministic name for an unnamed loader: its class or function name."""
    if isinstance(obj, type) or (callable(obj) and hasattr(obj, "__name__")):
        return obj.__name__
    return type(obj).__name__


@dataclass(frozen=True)
class LoaderField:
    """A loader declared as a member of a component.

    ``target`` is a batch loader instance, a batch loader class (built fresh
    per request) or a function with an explicit variant.
    """

    target: Any
    spec: DataLoaderSpec

    @property
    def name(self) -> str | None:
        return self.spec.name


def loader_field(
    target: Any,
    *,
    name: str | None = None,
    max_batch_size: int | None = None,
    caching: bool | None = None,
    batching: bool | None = None,
    variant: LoaderVariant | None = None,
) -> LoaderField:
    """Declare a loader as a component field.

    Arguments override any ``@dataloader`` metadata already on ``target``.
    Without a name the attribute name is used.
    """
    spec = DataLoaderSpec(
        name=name,
        max_batch_size=max_batch_size,
        caching=caching,
        batching=batching,
        variant=variant,
    )
    return LoaderField(target=target, spec=spec.merged(get_dataloader_spec(target)))


@runtime_checkable
class LoaderFieldSource(Protocol):
    """Anything that can enumerate its declared loader fields."""

    def dataloader_fields(self) -> Mapping[str, LoaderField]:
        """Return declared loader fields keyed by attribute name."""
        ...


class DataLoaderComponent:
    """Base class for components that declare loaders as fields.

    Class attributes holding a ``LoaderField`` are collected when the
    subclass is created; instance attributes are added per instance.
    """

    __loader_fields__: ClassVar[dict[str, LoaderField]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        collected: dict[str, LoaderField] = {}
        for base in reversed(cls.__mro__[1:]):
            collected.update(getattr(base, "__loader_fields__", {}))
        collected.update(
            {attr: value for attr, value in vars(cls).items() if isinstance(value, LoaderField)}
        )
        cls.__loader_fields__ = collected

    def dataloader_fields(self) -> dict[str, LoaderField]:
        """Return class-level then instance-level loader fields."""
        declared = dict(type(self).__loader_fields__)
        declared.update(
            {attr: value for attr, value in vars(self).items() if isinstance(value, LoaderField)}
        )
        return declared


def iter_loader_fields(candidate: Any) -> list[tuple[str, LoaderField]]:
    """Return ``(attribute, field)`` pairs a candidate declares, in order.

    Classes only contribute their class-level fields; instance fields
    exist once the factory has run.
    """
    if isinstance(candidate, type):
        return list(getattr(candidate, "__loader_fields__", {}).items())
    if not isinstance(candidate, LoaderFieldSource):
        return []
    return list(candidate.dataloader_fields().items())


__all__ = [
    "DataLoaderComponent",
    "DataLoaderSpec",
    "LoaderField",
    "LoaderFieldSource",
    "dataloader",
    "default_loader_name",
    "get_dataloader_spec",
    "iter_loader_fields",
    "loader_field",
]
