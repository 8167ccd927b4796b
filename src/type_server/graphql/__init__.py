"""
GraphQL protocol adapter built on strawberry.
"""

from type_server.graphql.integration import create_graphql_router, mount_graphql
from type_server.graphql.resolver_generator import (
    StrawberryGraphQLAdapter,
    create_resolver,
    service_context_from,
)
from type_server.graphql.type_inference import TypeInferrer, default_inferrer

__all__ = [
    "StrawberryGraphQLAdapter",
    "TypeInferrer",
    "create_graphql_router",
    "create_resolver",
    "default_inferrer",
    "mount_graphql",
    "service_context_from",
]
