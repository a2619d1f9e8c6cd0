"""Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from batchloader.core.settings import get_dataloader_settings

    settings = get_dataloader_settings()
    print(settings.max_batch_size)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file (development only)
"""

from __future__ import annotations

from .dataloader import DataLoaderSettings
from .loader import clear_all_caches, get_dataloader_settings, get_logging_settings
from .logs import LoggingSettings

__all__ = [
    "DataLoaderSettings",
    "LoggingSettings",
    "clear_all_caches",
    "get_dataloader_settings",
    "get_logging_settings",
]
