"""
Strawberry GraphQL adapter.

Collects GraphQLBindings and builds a ``strawberry.Schema`` whose Query,
Mutation and Subscription root types hold one field per bound action.

Every resolver:
- takes the ServiceContext from ``info.context``
- hands the GraphQL arguments to the binding's handler, which enforces
  permission rules before anything else runs
- sends results without a GraphQL type through the JSON scalar
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncGenerator, Callable, Mapping
from typing import Annotated, Any, Optional

import strawberry
from fastapi.encoders import jsonable_encoder

from type_server.errors import ConfigurationError
from type_server.graphql.type_inference import is_json_output
from type_server.runtime.context import (
    ServiceContext,
    create_anonymous_context,
    create_context_from_request,
)
from type_server.runtime.ledger import BindingKey, BindingLedger
from type_server.specs import GraphQLArgument, GraphQLBinding, GraphQLOperationKind, ParamOrigin

logger = logging.getLogger(__name__)

_FIELD_CONSTRUCTORS: dict[GraphQLOperationKind, Callable[..., Any]] = {
    GraphQLOperationKind.QUERY: strawberry.field,
    GraphQLOperationKind.MUTATION: strawberry.mutation,
    GraphQLOperationKind.SUBSCRIPTION: strawberry.subscription,
}


# =============================================================================
# Context
# =============================================================================


def service_context_from(info: Any) -> ServiceContext:
    """
    Get the ServiceContext for a GraphQL request.

    Accepts a ServiceContext passed directly as the execution context (tests,
    in-process execution) or the dict built by the FastAPI GraphQLRouter.
    """
    context = info.context
    if isinstance(context, ServiceContext):
        return context
    if isinstance(context, Mapping):
        service_context = context.get("service_context")
        if service_context is not None:
            return service_context
        request = context.get("request")
        if request is not None:
            return create_context_from_request(request, context.get("response"))
    return create_anonymous_context()


# =============================================================================
# Resolver Generation
# =============================================================================


def _argument_annotation(arg: GraphQLArgument) -> Any:
    annotation = Optional[arg.python_type] if arg.nullable else arg.python_type  # noqa: UP007
    if arg.name != arg.python_name:
        annotation = Annotated[annotation, strawberry.argument(name=arg.name)]
    return annotation


def _resolver_signature(
    binding: GraphQLBinding, return_annotation: Any
) -> tuple[inspect.Signature, dict[str, Any]]:
    annotations: dict[str, Any] = {"info": strawberry.Info}
    parameters = [
        inspect.Parameter(
            "info", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=strawberry.Info
        )
    ]
    for arg in binding.args:
        annotation = _argument_annotation(arg)
        default = inspect.Parameter.empty
        if arg.nullable:
            default = arg.default
        parameters.append(
            inspect.Parameter(
                arg.python_name,
                inspect.Parameter.KEYWORD_ONLY,
                default=default,
                annotation=annotation,
            )
        )
        annotations[arg.python_name] = annotation

    annotations["return"] = return_annotation
    return inspect.Signature(parameters, return_annotation=return_annotation), annotations


def _arguments(
    binding: GraphQLBinding, context: ServiceContext, values: Mapping[str, Any]
) -> dict[str, Any]:
    arguments: dict[str, Any] = {}
    for arg in binding.args:
        if arg.python_name in values:
            arguments[arg.python_name] = values[arg.python_name]
        elif arg.nullable:
            arguments[arg.python_name] = arg.default

    for point in binding.context_injection_points:
        if point.origin == ParamOrigin.HEADER:
            value = context.header(point.name)
        elif point.origin == ParamOrigin.COOKIE:
            value = context.cookie(point.name)
        else:
            continue
        if value is not None:
            arguments[point.python_name] = value
    return arguments


def create_resolver(binding: GraphQLBinding) -> Callable[..., Any]:
    """Create the strawberry resolver for one binding."""
    handler = binding.handler
    encode = is_json_output(binding.return_type_hint)
    field_type = binding.return_type_hint

    def convert(result: Any) -> Any:
        return jsonable_encoder(result) if encode else result

    if binding.operation_kind == GraphQLOperationKind.SUBSCRIPTION:
        subscription_options = binding.descriptor.gql_subscription_options
        publish_filter = subscription_options.filter if subscription_options else None

        async def subscribe(info: strawberry.Info, **kwargs: Any) -> AsyncGenerator[Any, None]:
            context = service_context_from(info)
            stream = await handler(context, _arguments(binding, context, kwargs))
            if not hasattr(stream, "__aiter__"):
                raise TypeError(
                    f"Subscription action '{binding.field_name}' must return an async iterator"
                )
            async for item in stream:
                if publish_filter is None or publish_filter(item, context):
                    yield convert(item)

        resolver: Callable[..., Any] = subscribe
        return_annotation: Any = AsyncGenerator[field_type, None]  # type: ignore[valid-type]
    else:

        async def resolve(info: strawberry.Info, **kwargs: Any) -> Any:
            context = service_context_from(info)
            result = await handler(context, _arguments(binding, context, kwargs))
            return convert(result)

        resolver = resolve
        return_annotation = field_type

    signature, annotations = _resolver_signature(binding, return_annotation)
    resolver.__name__ = binding.field_name
    resolver.__qualname__ = binding.field_name
    options = binding.descriptor.field_options
    resolver.__doc__ = options.description if options else None
    resolver.__signature__ = signature  # type: ignore[attr-defined]
    resolver.__annotations__ = annotations
    return resolver


# =============================================================================
# Adapter
# =============================================================================


def _ping() -> bool:
    return True


class StrawberryGraphQLAdapter:
    """
    GraphQL adapter building a strawberry schema from bound actions.

    Example:
        adapter = StrawberryGraphQLAdapter()
        bind_model(Widget, graphql_adapter=adapter)
        schema = adapter.build_schema()
    """

    supported_operations = frozenset(GraphQLOperationKind)

    def __init__(self) -> None:
        self.ledger = BindingLedger("graphql")
        self._bindings: dict[BindingKey, GraphQLBinding] = {}
        self._schema: strawberry.Schema | None = None

    def check(self, binding: GraphQLBinding) -> None:
        """
        Validate ``binding`` without registering it.

        Raises:
            ConfigurationError: if the field name is not a valid identifier
            ConflictError: if another action already owns the field
        """
        if not binding.field_name.isidentifier():
            raise ConfigurationError(
                f"GraphQL field name '{binding.field_name}' is not a valid identifier"
            )
        self.ledger.check(binding.key, binding.descriptor)

    def bind(self, binding: GraphQLBinding) -> None:
        """Register a root field for ``binding``, replacing an earlier binding of it."""
        self.check(binding)
        replaced = self.ledger.claim(binding.key, binding.descriptor)
        self._bindings[binding.key] = binding
        self._schema = None
        logger.debug(
            "%s GraphQL %s %s",
            "Replaced" if replaced else "Registered",
            binding.operation_kind.value,
            binding.field_name,
        )

    def bindings(self, kind: GraphQLOperationKind | None = None) -> list[GraphQLBinding]:
        return [b for b in self._bindings.values() if kind is None or b.operation_kind == kind]

    def _create_field(self, binding: GraphQLBinding) -> tuple[Any, Any]:
        """Return the strawberry field and its GraphQL type."""
        options = binding.descriptor.field_options
        constructor = _FIELD_CONSTRUCTORS[binding.operation_kind]
        resolver = create_resolver(binding)
        field_type = resolver.__annotations__["return"]
        field = constructor(
            resolver=resolver,
            graphql_type=field_type,
            description=options.description if options else None,
            deprecation_reason=options.deprecation_reason if options else None,
        )
        return field, field_type

    def _create_root_type(self, name: str, kind: GraphQLOperationKind) -> type | None:
        bindings = self.bindings(kind)
        if not bindings:
            return None

        class_dict: dict[str, Any] = {}
        annotations: dict[str, Any] = {}
        for binding in bindings:
            field, field_type = self._create_field(binding)
            class_dict[binding.field_name] = field
            annotations[binding.field_name] = field_type

        class_dict["__annotations__"] = annotations
        root = type(name, (), class_dict)
        return strawberry.type(root)

    def build_schema(self) -> strawberry.Schema:
        """Build (or reuse) the schema for everything bound so far."""
        if self._schema is not None:
            return self._schema

        query = self._create_root_type("Query", GraphQLOperationKind.QUERY)
        if query is None:
            # GraphQL requires a Query root type
            query = strawberry.type(
                type(
                    "Query",
                    (),
                    {"ping": strawberry.field(resolver=_ping), "__annotations__": {"ping": bool}},
                )
            )

        self._schema = strawberry.Schema(
            query=query,
            mutation=self._create_root_type("Mutation", GraphQLOperationKind.MUTATION),
            subscription=self._create_root_type("Subscription", GraphQLOperationKind.SUBSCRIPTION),
        )
        logger.info(
            "Built GraphQL schema with %d field(s)",
            len(self._bindings),
        )
        return self._schema
