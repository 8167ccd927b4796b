"""
Action binding specification types.

This module exports all specification types.
"""

from type_server.specs.action import (
    ActionDescriptor,
    GraphQLFieldOptions,
    GraphQLOperationKind,
    HttpMethod,
    MemberScope,
    RestOptions,
    SubscriptionOptions,
    path_segments,
)
from type_server.specs.binding import (
    BoundHandler,
    GraphQLArgument,
    GraphQLBinding,
    GraphQLTypeHint,
    ParamExtractor,
    RestBinding,
)
from type_server.specs.param import ParamBinding, ParamOrigin
from type_server.specs.permission import CallableMetadata, CrudPhase, PermissionRule

__all__ = [
    "ActionDescriptor",
    "BoundHandler",
    "CallableMetadata",
    "CrudPhase",
    "GraphQLArgument",
    "GraphQLBinding",
    "GraphQLFieldOptions",
    "GraphQLOperationKind",
    "GraphQLTypeHint",
    "HttpMethod",
    "MemberScope",
    "ParamBinding",
    "ParamExtractor",
    "ParamOrigin",
    "PermissionRule",
    "RestBinding",
    "RestOptions",
    "SubscriptionOptions",
    "path_segments",
]
