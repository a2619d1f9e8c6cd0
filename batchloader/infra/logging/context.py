"""Per-task log context.

Fields bound here are copied onto every log record by
``ContextInjectingFilter``. The store is a ``ContextVar`` holding an
immutable mapping, so each asyncio task (every chunk task started by a
dispatch included) inherits a snapshot and its own changes stay local.

    set_log_context(correlation_id="abc-123")
    with log_context(loader="users"):
        logger.debug("Running batch")   # correlation_id and loader attached
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

_EMPTY: Mapping[str, Any] = MappingProxyType({})

_fields: ContextVar[Mapping[str, Any]] = ContextVar("batchloader_log_context", default=_EMPTY)


def _replace(fields: dict[str, Any]) -> Any:
    return _fields.set(MappingProxyType(fields))


def set_log_context(**fields: Any) -> None:
    """Bind fields for the rest of the current task."""
    _replace({**_fields.get(), **fields})


def get_log_context() -> dict[str, Any]:
    """Return the bound fields as a new dict."""
    return dict(_fields.get())


def clear_log_context() -> None:
    _fields.set(_EMPTY)


def remove_from_log_context(*names: str) -> None:
    """Unbind ``names``; unknown names are ignored."""
    _replace({k: v for k, v in _fields.get().items() if k not in names})


@contextmanager
def log_context(**fields: Any) -> Iterator[Mapping[str, Any]]:
    """Bind fields for the duration of a block.

    Yields the active fields. Whatever was bound before the block is
    restored on exit, including changes made inside it.
    """
    token = _replace({**_fields.get(), **fields})
    try:
        yield _fields.get()
    finally:
        _fields.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Copies bound log context fields onto each record.

    Attributes already present on the record (``extra=...`` included) win.

    Args:
        prefix: Optional prefix for injected attribute names.
    """

    def __init__(self, name: str = "", prefix: str = "") -> None:
        super().__init__(name)
        self.prefix = prefix

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _fields.get().items():
            attribute = f"{self.prefix}{key}"
            if attribute not in record.__dict__:
                setattr(record, attribute, value)
        return True
