"""FastAPI mounting for a data-loader-aware GraphQL schema."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from fastapi import APIRouter, BackgroundTasks, Request, Response
from strawberry.fastapi import GraphQLRouter

from batchloader.features.graphql.context import GraphQLContext
from batchloader.infra.logging import set_log_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import strawberry

    from batchloader.features.dataloaders.provider import DataLoaderProvider

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "x-correlation-id"


def make_context_getter(provider: DataLoaderProvider) -> Callable[
    [Request, Response, BackgroundTasks], Awaitable[GraphQLContext]
]:
    """Return a strawberry ``context_getter`` that builds a registry per request.

    The correlation header, when sent, is bound to the log context and
    stored on the GraphQL context.
    """

    async def context_getter(
        request: Request,
        response: Response,
        background_tasks: BackgroundTasks,
    ) -> GraphQLContext:
        correlation_id = request.headers.get(CORRELATION_HEADER)
        if correlation_id:
            set_log_context(correlation_id=correlation_id)

        context = GraphQLContext(
            request=request,
            response=response,
            background_tasks=background_tasks,
            correlation_id=correlation_id,
        )
        context.loaders = provider.build_registry(context=context)
        return context

    return context_getter


def create_graphql_router(
    schema: strawberry.Schema,
    provider: DataLoaderProvider,
    *,
    graphql_ide: str | None = "graphiql",
) -> APIRouter:
    """Wrap ``schema`` in an APIRouter; mount it with the prefix of your choice.

    Loads are only dispatched when the schema carries
    ``DataLoaderDispatchExtension``.
    """
    graphql_app: GraphQLRouter[Any, Any] = GraphQLRouter(
        schema,
        context_getter=cast("Any", make_context_getter(provider)),
        graphql_ide=cast("Any", graphql_ide),
        path="/",
    )

    router = APIRouter()
    router.include_router(graphql_app)
    logger.debug(
        "GraphQL router created",
        extra={"loaders": [descriptor.name for descriptor in provider.descriptors]},
    )
    return router


__all__ = ["CORRELATION_HEADER", "create_graphql_router", "make_context_getter"]
