"""
type-server runtime

Action binding runtime (FastAPI + Strawberry + Pydantic).

This module provides:
- Descriptor building and instance lifting for annotated members
- Permission evaluation with per-phase contexts
- Dual-protocol binding (FastAPI REST routes, Strawberry GraphQL fields)
- Generated CRUD actions
- Application assembly

Example usage:
    >>> from type_server.runtime import InMemoryEntityStore
    >>> from type_server.runtime.app_factory import create_app
    >>>
    >>> app = create_app([Widget], store=InMemoryEntityStore())
"""

from type_server.runtime.access_evaluator import (
    ActionPermissionContext,
    CreatePermissionContext,
    DeletePermissionContext,
    PermissionContext,
    ReadPermissionContext,
    UpdatePermissionContext,
    all_of,
    any_of,
    enforce,
    evaluate,
    has_role,
    is_authenticated,
    is_owner,
    not_,
    to_predicate,
    to_value,
)
from type_server.runtime.binder import (
    ActionHandler,
    BoundAction,
    GraphQLAdapter,
    RestAdapter,
    bind_action,
    bind_model,
    invoke_action,
)
from type_server.runtime.builder import (
    DescriptorTable,
    build_descriptor,
    descriptor_table,
    merge_options,
    register_action,
)
from type_server.runtime.classifier import classify, is_instance, is_static
from type_server.runtime.config import TypeServerSettings, get_settings
from type_server.runtime.context import (
    ServiceContext,
    create_anonymous_context,
    create_context_from_request,
)
from type_server.runtime.crud import crud_api
from type_server.runtime.ledger import BindingLedger
from type_server.runtime.lifter import lift_instance_method
from type_server.runtime.naming import derive_name, derive_static_name, to_snake_case
from type_server.runtime.params import (
    Body,
    Context,
    Cookie,
    Header,
    Param,
    Path,
    Query,
    RequestObject,
    ResponseObject,
    map_parameters,
)
from type_server.runtime.repository import (
    EntityLoader,
    EntityStore,
    InMemoryEntityStore,
    Model,
    resolve_loader,
    use_loader,
)
from type_server.runtime.route_generator import FastAPIRestAdapter

__all__ = [
    # Permissions
    "ActionPermissionContext",
    "CreatePermissionContext",
    "DeletePermissionContext",
    "PermissionContext",
    "ReadPermissionContext",
    "UpdatePermissionContext",
    "all_of",
    "any_of",
    "enforce",
    "evaluate",
    "has_role",
    "is_authenticated",
    "is_owner",
    "not_",
    "to_predicate",
    "to_value",
    # Settings
    "TypeServerSettings",
    "get_settings",
    # Binding
    "ActionHandler",
    "BindingLedger",
    "BoundAction",
    "FastAPIRestAdapter",
    "GraphQLAdapter",
    "RestAdapter",
    "bind_action",
    "bind_model",
    "invoke_action",
    # Descriptors
    "DescriptorTable",
    "build_descriptor",
    "classify",
    "crud_api",
    "derive_name",
    "derive_static_name",
    "descriptor_table",
    "is_instance",
    "is_static",
    "lift_instance_method",
    "map_parameters",
    "merge_options",
    "register_action",
    "to_snake_case",
    # Parameters
    "Body",
    "Context",
    "Cookie",
    "Header",
    "Param",
    "Path",
    "Query",
    "RequestObject",
    "ResponseObject",
    # Context and persistence
    "EntityLoader",
    "EntityStore",
    "InMemoryEntityStore",
    "Model",
    "ServiceContext",
    "create_anonymous_context",
    "create_context_from_request",
    "resolve_loader",
    "use_loader",
]
