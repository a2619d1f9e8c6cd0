"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings isolation between tests
    - Container Fixtures: host container and provider
    - Loader Fixtures: recording batch loaders

When adding new features:
    1. Add fixtures to the appropriate section below
    2. Use @pytest.fixture with clear docstrings
    3. Make fixtures composable (fixtures can depend on other fixtures)
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from batchloader import DataLoaderProvider, StaticContainer
from batchloader.core.settings import DataLoaderSettings, clear_all_caches
from batchloader.infra.logging import clear_log_context
from tests.fixtures import RecordingBatchLoader, RecordingMappedLoader

# Keep engine defaults independent from the developer's environment
os.environ.setdefault("DATALOADER_METRICS_ENABLED", "false")
os.environ.setdefault("DATALOADER_TRACING_ENABLED", "false")


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def _isolate_settings() -> Iterator[None]:
    """Clear cached settings and log context around every test."""
    clear_all_caches()
    clear_log_context()
    yield
    clear_all_caches()
    clear_log_context()


@pytest.fixture
def settings() -> DataLoaderSettings:
    """Engine settings with library defaults."""
    return DataLoaderSettings()


# ============================================================================
# Container Fixtures
# ============================================================================


@pytest.fixture
def container() -> StaticContainer:
    """Empty registration table."""
    return StaticContainer()


@pytest.fixture
def provider(container: StaticContainer, settings: DataLoaderSettings) -> DataLoaderProvider:
    """Provider over the ``container`` fixture."""
    return DataLoaderProvider(container, settings=settings)


# ============================================================================
# Loader Fixtures
# ============================================================================


@pytest.fixture
def recording_loader() -> RecordingBatchLoader:
    """List batch loader that records its calls."""
    return RecordingBatchLoader()


@pytest.fixture
def recording_mapped_loader() -> RecordingMappedLoader:
    """Mapped batch loader that records its calls and only knows even keys."""
    return RecordingMappedLoader()
