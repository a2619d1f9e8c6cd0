"""Unit tests for DataLoaderProvider: discovery plus per-request builds."""
from __future__ import annotations

import pytest

from batchloader import (
    DataLoaderComponent,
    DataLoaderProvider,
    DiscoveryError,
    DuplicateLoaderNameError,
    InvalidDataLoaderTypeError,
    StaticContainer,
    loader_field,
)
from batchloader.core.settings import DataLoaderSettings
from tests.fixtures import (
    ContextEchoLoader,
    ExampleBatchLoader,
    ExampleBatchLoaderFromField,
    ExampleDataLoaderWithRegistry,
    ExampleMappedBatchLoader,
    ExampleMappedBatchLoaderFromField,
    NotALoader,
    RecordingBatchLoader,
    RegistryEchoLoader,
    SelfLoadingComponent,
)


class MaxBatchSizeCustomizer:
    """Limits every loader to ten keys per batch."""

    def customize(self, descriptor, options):
        options.max_batch_size = 10


class RecordingInstrumentationProvider:
    def __init__(self) -> None:
        self.seen: list[str] = []

    def provide(self, descriptor):
        self.seen.append(descriptor.name)
        return None


@pytest.mark.unit
class TestFindDataLoaders:
    """Loaders declared in the container end up in the registry."""

    def test_find_dataloaders_applies_container_customizers(self, container, provider):
        """Test that customizer beans shape the options of discovered loaders."""
        container.add_dataloader(ExampleBatchLoader())
        container.add_bean("maxBatchSizeCustomizer", MaxBatchSizeCustomizer())

        registry = provider.build_registry()

        assert registry.keys() == ["exampleLoader"]
        assert registry["exampleLoader"].options.max_batch_size == 10

    def test_invalid_loader_type_is_rejected(self, container, provider):
        """Test that a candidate implementing no variant fails the build."""
        container.add_dataloader(NotALoader(), name="helloFetcher")

        with pytest.raises(InvalidDataLoaderTypeError):
            provider.build_registry()

    def test_find_dataloaders_from_fields(self, container, provider):
        """Test that public and private field loaders are registered."""
        container.add_component(ExampleBatchLoaderFromField())

        registry = provider.build_registry()

        assert len(registry) == 2
        assert "exampleLoaderFromField" in registry
        assert "privateExampleLoaderFromField" in registry

    def test_find_mapped_dataloaders(self, container, provider):
        """Test that mapped loaders are registered."""
        container.add_dataloader(ExampleMappedBatchLoader())

        registry = provider.build_registry()

        assert registry.keys() == ["exampleMappedLoader"]

    def test_find_mapped_dataloaders_from_fields(self, container, provider):
        """Test that mapped field loaders are registered."""
        container.add_component(ExampleMappedBatchLoaderFromField())

        registry = provider.build_registry()

        assert len(registry) == 2
        assert "exampleMappedLoaderFromField" in registry
        assert "privateExampleMappedLoaderFromField" in registry

    @pytest.mark.asyncio
    async def test_registry_consumer_sees_the_registry(self, container, provider):
        """Test that a consumer loader can read its siblings."""
        container.add_dataloader(ExampleDataLoaderWithRegistry())

        registry = provider.build_registry()
        future = registry["withRegistry"].load("")
        await registry.dispatch_all()

        assert future.result() == "withRegistry"

    @pytest.mark.asyncio
    async def test_loader_and_its_fields_are_registered_separately(self, container, provider):
        """Test that a loader class declaring loader fields builds both loaders."""
        container.add_dataloader(SelfLoadingComponent)

        registry = provider.build_registry()
        own = registry["selfLoading"].load("a")
        child = registry["childLoader"].load("a")
        await registry.dispatch_all()

        assert registry.keys() == ["selfLoading", "childLoader"]
        assert own.result() == "A"
        assert child.result() == "value-a"

    def test_find_dataloaders_returns_descriptors(self, container, provider):
        """Test that explicit discovery returns the descriptors."""
        container.add_dataloader(ExampleBatchLoader())
        container.add_component(ExampleBatchLoaderFromField())

        descriptors = provider.find_dataloaders()

        assert descriptors[0].name == "exampleLoader"
        assert [d.name for d in provider.descriptors] == [d.name for d in descriptors]

    def test_duplicate_names_across_sources_fail(self, container, provider):
        """Test that a field loader may not reuse a direct loader's name."""

        class Clashing(DataLoaderComponent):
            example = loader_field(RecordingBatchLoader(), name="exampleLoader")

        container.add_dataloader(ExampleBatchLoader())
        container.add_component(Clashing())

        with pytest.raises(DuplicateLoaderNameError):
            provider.build_registry()


@pytest.mark.unit
class TestPerRequestBuilds:
    """Every build returns an independent registry."""

    def test_each_build_returns_new_registry(self, container, provider):
        """Test that registries and loaders are never shared between builds."""
        container.add_dataloader(ExampleBatchLoader())

        first = provider.build_registry()
        second = provider.build_registry()

        assert first is not second
        assert first["exampleLoader"] is not second["exampleLoader"]

    @pytest.mark.asyncio
    async def test_caches_are_isolated_between_builds(self, container, provider):
        """Test that a cached value in one registry is unknown to the next."""
        loader = RecordingBatchLoader()
        container.add_dataloader(loader)

        first = provider.build_registry()
        first["RecordingBatchLoader"].load(1)
        await first.dispatch_all()

        second = provider.build_registry()
        second["RecordingBatchLoader"].load(1)
        await second.dispatch_all()

        assert loader.calls == [[1], [1]]

    @pytest.mark.asyncio
    async def test_shared_consumer_gets_each_request_registry(self, container, provider):
        """Test that a consumer registered as an instance never sees another request's registry."""
        container.add_dataloader(RegistryEchoLoader())

        first = provider.build_registry()
        second = provider.build_registry()
        first_future = first["registryEcho"].load("me")
        await first.dispatch_all()
        second_future = second["registryEcho"].load("me")
        await second.dispatch_all()

        assert first_future.result() is first
        assert second_future.result() is second

    def test_discovery_runs_once_by_default(self, container, provider):
        """Test that later registrations are ignored without rediscovery."""
        container.add_dataloader(ExampleBatchLoader())
        provider.build_registry()

        container.add_dataloader(ExampleMappedBatchLoader())

        assert provider.build_registry().keys() == ["exampleLoader"]

    def test_rediscovery_per_request(self, container):
        """Test that rediscovery picks up new registrations."""
        provider = DataLoaderProvider(
            container, settings=DataLoaderSettings(rediscover_per_request=True)
        )
        container.add_dataloader(ExampleBatchLoader())
        provider.build_registry()

        container.add_dataloader(ExampleMappedBatchLoader())

        assert provider.build_registry().keys() == ["exampleLoader", "exampleMappedLoader"]

    def test_extra_customizers_run_after_container_customizers(self, container, settings):
        """Test that constructor customizers see container customizer changes."""
        seen = []

        def halve(descriptor, options):
            seen.append(options.max_batch_size)
            options.max_batch_size //= 2

        container.add_dataloader(ExampleBatchLoader())
        container.add_bean("maxBatchSizeCustomizer", MaxBatchSizeCustomizer())
        provider = DataLoaderProvider(container, settings=settings, customizers=[halve])

        registry = provider.build_registry()

        assert seen == [10]
        assert registry["exampleLoader"].options.max_batch_size == 5

    def test_instrumentation_providers_are_consulted(self, container, provider):
        """Test that instrumentation provider beans see every descriptor."""
        instrumentation_provider = RecordingInstrumentationProvider()
        container.add_dataloader(ExampleBatchLoader())
        container.add_bean("instrumentation", instrumentation_provider)

        provider.build_registry()

        assert instrumentation_provider.seen == ["exampleLoader"]

    @pytest.mark.asyncio
    async def test_build_context_reaches_context_loaders(self, container, provider):
        """Test that build_registry(context=...) feeds context loaders."""
        container.add_dataloader(ContextEchoLoader())

        registry = provider.build_registry(context="request-1")
        future = registry["contextual"].load("a")
        await registry.dispatch_all()

        assert future.result() == ("request-1", None)

    def test_failing_customizer_yields_no_registry(self, container, provider):
        """Test that customizer failures abort the build."""

        class Broken:
            def customize(self, descriptor, options):
                raise RuntimeError("boom")

        container.add_dataloader(ExampleBatchLoader())
        container.add_bean("broken", Broken())

        with pytest.raises(DiscoveryError):
            provider.build_registry()

    def test_provider_loads_settings_from_environment(self, monkeypatch):
        """Test that the provider falls back to cached environment settings."""
        monkeypatch.setenv("DATALOADER_MAX_BATCH_SIZE", "7")
        container = StaticContainer()
        container.add_dataloader(ExampleBatchLoader())

        registry = DataLoaderProvider(container).build_registry()

        assert registry["exampleLoader"].options.max_batch_size == 7
