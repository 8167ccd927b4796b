"""
type-server

Declare actions once on an entity class and expose them through both a
REST API (FastAPI) and a GraphQL API (Strawberry).

This package provides:
- ``action`` / ``permission`` decorators
- Instance lifting: instance actions become ``<name>_static(id, ...)``
- Permission rules evaluated identically for both protocols
- ``crud_api`` generated create/read/update/delete actions
"""

__version__ = "0.1.0"

from type_server.decorators import ActionMember, action, permission
from type_server.errors import (
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    TypeServerError,
)
from type_server.runtime import (
    InMemoryEntityStore,
    Model,
    ServiceContext,
    TypeServerSettings,
    all_of,
    any_of,
    bind_model,
    crud_api,
    has_role,
    invoke_action,
    is_authenticated,
    is_owner,
    not_,
)
from type_server.runtime.app_factory import create_app
from type_server.runtime.params import (
    Body,
    Context,
    Cookie,
    Header,
    Path,
    Query,
    RequestObject,
    ResponseObject,
)
from type_server.specs import ActionDescriptor, ParamBinding, ParamOrigin, SubscriptionOptions

__all__ = [
    "ActionDescriptor",
    "ActionMember",
    "AuthorizationError",
    "Body",
    "ConfigurationError",
    "ConflictError",
    "Context",
    "Cookie",
    "Header",
    "InMemoryEntityStore",
    "InvalidInputError",
    "Model",
    "NotFoundError",
    "ParamBinding",
    "ParamOrigin",
    "Path",
    "Query",
    "RequestObject",
    "ResponseObject",
    "ServiceContext",
    "SubscriptionOptions",
    "TypeServerError",
    "TypeServerSettings",
    "__version__",
    "action",
    "all_of",
    "any_of",
    "bind_model",
    "create_app",
    "crud_api",
    "has_role",
    "invoke_action",
    "is_authenticated",
    "is_owner",
    "not_",
    "permission",
]
