"""
FastAPI/Strawberry integration.

Mounts a generated schema on a FastAPI application. The router's context
getter builds the same ServiceContext the REST adapter builds, so
permission rules see identical data for both protocols.
"""

from __future__ import annotations

from typing import Any

import strawberry
from fastapi import FastAPI, Response
from starlette.requests import HTTPConnection
from strawberry.fastapi import GraphQLRouter

from type_server.runtime.context import create_context_from_request


async def get_graphql_context(connection: HTTPConnection, response: Response) -> dict[str, Any]:
    """Context getter for GraphQLRouter (HTTP and WebSocket requests)."""
    return {"service_context": create_context_from_request(connection, response)}  # type: ignore[arg-type]


def create_graphql_router(schema: strawberry.Schema, graphiql: bool = True) -> GraphQLRouter:
    return GraphQLRouter(schema, graphiql=graphiql, context_getter=get_graphql_context)


def mount_graphql(
    app: FastAPI,
    schema: strawberry.Schema,
    path: str = "/graphql",
    enable_graphiql: bool = True,
) -> None:
    """
    Mount GraphQL endpoint on an existing FastAPI application.

    Args:
        app: Existing FastAPI application
        schema: Schema built by StrawberryGraphQLAdapter
        path: URL path for GraphQL endpoint (default: /graphql)
        enable_graphiql: Enable GraphiQL IDE (default: True)

    Example:
        adapter = StrawberryGraphQLAdapter()
        bind_model(Widget, graphql_adapter=adapter)
        mount_graphql(app, adapter.build_schema())
    """
    app.include_router(create_graphql_router(schema, enable_graphiql), prefix=path)
