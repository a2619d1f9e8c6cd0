"""Test fixtures for pytest.

This module re-exports commonly used test loaders for easier importing.
"""

from .dataloaders import (
    ContextEchoLoader,
    ExampleBatchLoader,
    ExampleBatchLoaderFromField,
    ExampleDataLoaderWithRegistry,
    ExampleMappedBatchLoader,
    ExampleMappedBatchLoaderFromField,
    NotALoader,
    RecordingBatchLoader,
    RecordingMappedLoader,
    RegistryEchoLoader,
    SelfLoadingComponent,
    load_squares,
)

__all__ = [
    "ContextEchoLoader",
    "ExampleBatchLoader",
    "ExampleBatchLoaderFromField",
    "ExampleDataLoaderWithRegistry",
    "ExampleMappedBatchLoader",
    "ExampleMappedBatchLoaderFromField",
    "NotALoader",
    "RecordingBatchLoader",
    "RecordingMappedLoader",
    "RegistryEchoLoader",
    "SelfLoadingComponent",
    "load_squares",
]
