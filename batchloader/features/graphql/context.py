"""Per-request GraphQL context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from strawberry.fastapi import BaseContext

if TYPE_CHECKING:
    from starlette.background import BackgroundTasks
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.websockets import WebSocket

    from batchloader.features.dataloaders.registry import DataLoaderRegistry


@dataclass
class GraphQLContext(BaseContext):
    """Strawberry context carrying the request's data loaders.

    ``loaders`` is filled in by the router's context getter once the
    context exists, because loaders built with context receive this
    object as ``environment.context``. Resolvers use it as::

        await info.context.loaders["users"].load(user_id)
    """

    request: Request | WebSocket | None = None
    response: Response | None = None
    background_tasks: BackgroundTasks | None = None

    loaders: DataLoaderRegistry = field(default=None)  # type: ignore[assignment]
    correlation_id: str | None = None


__all__ = ["GraphQLContext"]
