"""Strawberry GraphQL integration for request-scoped data loaders."""

from __future__ import annotations

from batchloader.features.graphql.context import GraphQLContext
from batchloader.features.graphql.extension import DataLoaderDispatchExtension, get_registry
from batchloader.features.graphql.router import create_graphql_router, make_context_getter

__all__ = [
    "DataLoaderDispatchExtension",
    "GraphQLContext",
    "create_graphql_router",
    "get_registry",
    "make_context_getter",
]
