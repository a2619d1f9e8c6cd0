"""Process-wide settings accessors.

Each accessor builds its settings model on first use and returns the same
frozen instance afterwards. Tests that change the environment call
``clear_all_caches()``; code that needs different values constructs the
model directly, e.g. ``DataLoaderSettings(max_batch_size=10)``.
"""

from __future__ import annotations

from functools import lru_cache

from .dataloader import DataLoaderSettings
from .logs import LoggingSettings


@lru_cache(maxsize=1)
def get_dataloader_settings() -> DataLoaderSettings:
    """``DATALOADER_*`` settings used by registry builders and providers."""
    return DataLoaderSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()


_CACHED = (get_dataloader_settings, get_logging_settings)


def clear_all_caches() -> None:
    """Drop every cached settings instance so the next call re-reads the environment."""
    for accessor in _CACHED:
        accessor.cache_clear()
