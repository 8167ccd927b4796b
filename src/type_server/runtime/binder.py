"""
Dual-protocol binder.

Turns an ActionDescriptor and its static-scope callable into a RestBinding
and/or a GraphQLBinding and hands them to the protocol adapters. Both
bindings carry the same ActionHandler, so permission gating and argument
handling are identical whichever protocol a client uses.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from type_server.errors import ConfigurationError
from type_server.graphql.type_inference import TypeInferrer, default_inferrer
from type_server.runtime.access_evaluator import ActionPermissionContext, enforce
from type_server.runtime.builder import DescriptorTable, check_path_bindings, descriptor_table
from type_server.runtime.context import ServiceContext, create_anonymous_context
from type_server.runtime.lifter import get_metadata
from type_server.specs import (
    ActionDescriptor,
    GraphQLBinding,
    GraphQLOperationKind,
    HttpMethod,
    ParamBinding,
    ParamExtractor,
    ParamOrigin,
    RestBinding,
)

logger = logging.getLogger(__name__)

# Origins a GraphQL client supplies as field arguments
GRAPHQL_ARGUMENT_ORIGINS = frozenset({ParamOrigin.BODY, ParamOrigin.QUERY, ParamOrigin.PATH})


# =============================================================================
# Adapter Protocols
# =============================================================================


class RestAdapter(Protocol):
    supported_verbs: frozenset[HttpMethod]

    def check(self, binding: RestBinding) -> None:
        """Raise if ``bind(binding)`` would fail, without registering anything."""
        ...

    def bind(self, binding: RestBinding) -> None: ...


class GraphQLAdapter(Protocol):
    supported_operations: frozenset[GraphQLOperationKind]

    def check(self, binding: GraphQLBinding) -> None:
        """Raise if ``bind(binding)`` would fail, without registering anything."""
        ...

    def bind(self, binding: GraphQLBinding) -> None: ...


# =============================================================================
# Guarded Invocation
# =============================================================================


class ActionHandler:
    """
    Call-time entry point shared by both protocol adapters.

    ``await handler(context, arguments)``:

    1. evaluates the callable's permission rules against an
       ActionPermissionContext; a denial raises AuthorizationError before
       anything is loaded or called
    2. calls the target with arguments in declared order (identifier first
       for lifted actions) and awaits coroutine results

    Async generators (subscriptions) are returned unconsumed.
    """

    def __init__(self, descriptor: ActionDescriptor, target: Callable[..., Any]) -> None:
        self.descriptor = descriptor
        self.target = target
        parameters = inspect.signature(target).parameters.values()
        self._keyword_only = frozenset(
            p.name for p in parameters if p.kind == inspect.Parameter.KEYWORD_ONLY
        )

    @property
    def name(self) -> str:
        return self.descriptor.name

    def _value(self, binding: ParamBinding, context: ServiceContext, arguments: Mapping[str, Any]) -> Any:
        origin = binding.origin
        if origin == ParamOrigin.CONTEXT:
            return context
        if origin == ParamOrigin.REQUEST:
            return context.request
        if origin == ParamOrigin.RESPONSE:
            return context.response

        if binding.python_name in arguments:
            return arguments[binding.python_name]

        value = None
        if origin == ParamOrigin.HEADER:
            value = context.header(binding.name)
        elif origin == ParamOrigin.COOKIE:
            value = context.cookie(binding.name)
        if value is not None:
            return value

        if not binding.required:
            return binding.default
        raise TypeError(f"Action '{self.name}' missing required argument '{binding.python_name}'")

    async def __call__(self, context: ServiceContext, arguments: Mapping[str, Any]) -> Any:
        enforce(
            get_metadata(self.target).permissions,
            ActionPermissionContext(context, action=self.name, arguments=dict(arguments)),
            self.name,
        )

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for binding in self.descriptor.call_bindings:
            value = self._value(binding, context, arguments)
            if binding.python_name in self._keyword_only:
                kwargs[binding.python_name] = value
            else:
                args.append(value)

        logger.debug("Invoking action %s", self.name)
        result = self.target(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"ActionHandler({self.descriptor.owner}.{self.descriptor.member_name})"


# =============================================================================
# Binding Construction
# =============================================================================


def _extractor(binding: ParamBinding) -> ParamExtractor:
    return ParamExtractor(
        origin=binding.origin,
        name=binding.name,
        python_name=binding.python_name,
        required=binding.required,
        annotation=binding.annotation,
        default=binding.default,
    )


def build_rest_binding(descriptor: ActionDescriptor, handler: ActionHandler) -> RestBinding:
    assert descriptor.rest_verb is not None
    return RestBinding(
        verb=descriptor.rest_verb,
        path=descriptor.path,
        param_extractors=tuple(_extractor(b) for b in descriptor.call_bindings),
        handler=handler,
        descriptor=descriptor,
    )


def build_graphql_binding(
    descriptor: ActionDescriptor,
    handler: ActionHandler,
    inferrer: TypeInferrer | None = None,
) -> GraphQLBinding:
    assert descriptor.gql_operation_kind is not None
    inferrer = inferrer or default_inferrer

    args = []
    injection_points = []
    for binding in descriptor.call_bindings:
        if binding.origin in GRAPHQL_ARGUMENT_ORIGINS:
            args.append(inferrer.argument(binding))
        else:
            injection_points.append(_extractor(binding))

    return GraphQLBinding(
        operation_kind=descriptor.gql_operation_kind,
        field_name=descriptor.name,
        return_type_hint=inferrer.return_type(descriptor),
        args=tuple(args),
        context_injection_points=tuple(injection_points),
        handler=handler,
        descriptor=descriptor,
    )


@dataclass(frozen=True)
class BoundAction:
    """Result of binding one action."""

    descriptor: ActionDescriptor
    handler: ActionHandler
    rest: RestBinding | None = None
    graphql: GraphQLBinding | None = None


def bind_action(
    descriptor: ActionDescriptor,
    target: Callable[..., Any],
    rest_adapter: RestAdapter | None = None,
    graphql_adapter: GraphQLAdapter | None = None,
    *,
    inferrer: TypeInferrer | None = None,
) -> BoundAction:
    """
    Register one action with the given adapters.

    Binding the same descriptor again replaces the earlier registration.
    Both adapters are checked before either registers anything, so a failure
    leaves no partial binding behind.

    Raises:
        ConfigurationError: for path parameters missing from the path, or a
            verb/operation kind the adapter does not support
        ConflictError: if another action already holds the route or field
    """
    check_path_bindings(descriptor)

    use_rest = rest_adapter is not None and descriptor.rest_enabled
    use_graphql = graphql_adapter is not None and descriptor.graphql_enabled

    if use_rest and descriptor.rest_verb not in rest_adapter.supported_verbs:  # type: ignore[union-attr]
        raise ConfigurationError(
            f"REST adapter does not support verb {descriptor.rest_verb} "
            f"(action '{descriptor.name}')"
        )
    if use_graphql and descriptor.gql_operation_kind not in graphql_adapter.supported_operations:  # type: ignore[union-attr]
        raise ConfigurationError(
            f"GraphQL adapter does not support {descriptor.gql_operation_kind} "
            f"(action '{descriptor.name}')"
        )

    handler = ActionHandler(descriptor, target)
    rest = graphql = None

    if use_rest:
        rest = build_rest_binding(descriptor, handler)
        rest_adapter.check(rest)  # type: ignore[union-attr]
    if use_graphql:
        graphql = build_graphql_binding(descriptor, handler, inferrer)
        graphql_adapter.check(graphql)  # type: ignore[union-attr]

    if rest is not None:
        rest_adapter.bind(rest)  # type: ignore[union-attr]
    if graphql is not None:
        graphql_adapter.bind(graphql)  # type: ignore[union-attr]

    if rest is None and graphql is None:
        logger.debug("Action %s produced no protocol binding", descriptor.name)

    return BoundAction(descriptor, handler, rest, graphql)


def action_target(cls: type, descriptor: ActionDescriptor) -> Callable[..., Any]:
    """Static-scope callable for an action (the lifted callable for instance members)."""
    return getattr(cls, descriptor.static_name)


def bind_model(
    cls: type,
    rest_adapter: RestAdapter | None = None,
    graphql_adapter: GraphQLAdapter | None = None,
    *,
    table: DescriptorTable | None = None,
    inferrer: TypeInferrer | None = None,
) -> list[BoundAction]:
    """Bind every action declared on ``cls`` (and its bases)."""
    table = table if table is not None else descriptor_table
    bound = [
        bind_action(
            descriptor,
            action_target(cls, descriptor),
            rest_adapter,
            graphql_adapter,
            inferrer=inferrer,
        )
        for descriptor in table.for_class(cls).values()
    ]
    logger.info("Bound %d action(s) for %s", len(bound), cls.__qualname__)
    return bound


async def invoke_action(
    cls: type,
    member_name: str,
    context: ServiceContext | None = None,
    /,
    **arguments: Any,
) -> Any:
    """
    Invoke an action directly, without a protocol adapter.

    Example:
        await invoke_action(Widget, "rename", ctx, id=7, new_name="x")

    Raises:
        ConfigurationError: if ``member_name`` is not an action of ``cls``
    """
    descriptor = descriptor_table.get(cls, member_name)
    if descriptor is None:
        raise ConfigurationError(f"{cls.__qualname__}.{member_name} is not an action")
    handler = ActionHandler(descriptor, action_target(cls, descriptor))
    return await handler(context or create_anonymous_context(), arguments)
