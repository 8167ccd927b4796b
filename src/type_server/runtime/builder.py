"""
Action descriptor builder.

Builds one immutable ActionDescriptor per annotated member by layering:

1. built-in defaults
2. name and path derived from the member identifier
3. caller-supplied option fragments, folded in order (later wins)
4. forced ``autogen_*=True`` for any protocol whose option object was supplied

Descriptors live in a side table keyed by ``(class, member name)``.
"""

from __future__ import annotations

import inspect
import logging
import typing
import weakref
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from type_server.errors import ConfigurationError, ConflictError
from type_server.runtime.classifier import classify
from type_server.runtime.lifter import get_metadata, lift_instance_method, raw_function, set_metadata
from type_server.runtime.naming import derive_name, derive_static_name
from type_server.runtime.params import map_parameters
from type_server.specs import (
    ActionDescriptor,
    GraphQLFieldOptions,
    GraphQLOperationKind,
    GraphQLTypeHint,
    HttpMethod,
    MemberScope,
    ParamBinding,
    ParamOrigin,
    RestOptions,
    SubscriptionOptions,
    path_segments,
)

logger = logging.getLogger(__name__)

ACTION_OPTION_NAMES = frozenset(
    {
        "name",
        "path",
        "rest_verb",
        "rest_options",
        "static_name",
        "autogen_rest",
        "gql_method",
        "gql_query_options",
        "gql_mutation_options",
        "gql_subscription_options",
        "gql_return_type",
        "autogen_graphql",
    }
)

DEFAULT_ACTION_OPTIONS: dict[str, Any] = {
    "rest_verb": None,
    "rest_options": None,
    "autogen_rest": True,
    "gql_method": GraphQLOperationKind.QUERY.value,
    "gql_query_options": None,
    "gql_mutation_options": None,
    "gql_subscription_options": None,
    "gql_return_type": None,
    "autogen_graphql": True,
}

_GQL_OPTION_KEYS = ("gql_query_options", "gql_mutation_options", "gql_subscription_options")


# =============================================================================
# Option Folding
# =============================================================================


def merge_options(fragments: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Fold option fragments into one mapping; later fragments win.

    Raises:
        ConfigurationError: for unknown option names
    """
    merged: dict[str, Any] = {}
    for fragment in fragments:
        unknown = set(fragment) - ACTION_OPTION_NAMES
        if unknown:
            raise ConfigurationError(f"Unknown action option(s): {', '.join(sorted(unknown))}")
        merged.update(fragment)
    return merged


def _parse_rest_verb(value: Any) -> HttpMethod | None:
    if value is None:
        return None
    try:
        return HttpMethod(str(value).upper())
    except ValueError:
        raise ConfigurationError(f"Invalid rest_verb: {value}") from None


def _parse_gql_method(value: Any) -> GraphQLOperationKind | None:
    if value is None:
        return None
    try:
        return GraphQLOperationKind(str(value).lower())
    except ValueError:
        raise ConfigurationError(f"Invalid gql_method: {value}") from None


def _coerce_options(value: Any, model: type[Any]) -> Any:
    if value is None or isinstance(value, model):
        return value
    if isinstance(value, Mapping):
        try:
            return model.model_validate(dict(value))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid {model.__name__}: {exc}") from exc
    raise ConfigurationError(f"Expected {model.__name__} or mapping, got {value!r}")


# =============================================================================
# Descriptor Construction
# =============================================================================


def _identifier_binding(owner: type, path: str, verb: HttpMethod | None) -> ParamBinding:
    """Binding for the ``id`` argument of a lifted instance action."""
    try:
        annotation = typing.get_type_hints(owner).get("id", Any)
    except (NameError, TypeError):
        annotation = Any

    if "id" in path_segments(path):
        origin = ParamOrigin.PATH
    elif verb is not None and not verb.has_body:
        origin = ParamOrigin.QUERY
    else:
        origin = ParamOrigin.BODY

    return ParamBinding(
        index=0,
        origin=origin,
        name="id",
        python_name="id",
        required=True,
        annotation=annotation,
        gql_type=GraphQLTypeHint.ID if annotation is Any else None,
    )


def build_descriptor(
    owner: type,
    member_name: str,
    fragments: Iterable[Mapping[str, Any]] = (),
) -> ActionDescriptor:
    """
    Build the descriptor for ``owner.<member_name>``.

    The member is classified first; a member that is neither static nor
    instance-callable is rejected.

    Raises:
        ConfigurationError: for invalid options, unknown verbs/operation kinds,
            a subscription without options, or an unbindable member
    """
    scope = classify(owner, member_name)
    member = inspect.getattr_static(owner, member_name)
    func = raw_function(member)

    supplied = merge_options(fragments)
    name, path = derive_name(member_name)
    default_static = derive_static_name(name) if scope == MemberScope.INSTANCE else member_name

    options: dict[str, Any] = {
        **DEFAULT_ACTION_OPTIONS,
        "name": name,
        "path": path,
        "static_name": default_static,
        **supplied,
    }
    if supplied.get("rest_options") is not None:
        options["autogen_rest"] = True
    if any(supplied.get(key) is not None for key in _GQL_OPTION_KEYS):
        options["autogen_graphql"] = True

    rest_verb = _parse_rest_verb(options["rest_verb"])
    gql_kind = _parse_gql_method(options["gql_method"])
    subscription_options = _coerce_options(
        options["gql_subscription_options"], SubscriptionOptions
    )
    if gql_kind == GraphQLOperationKind.SUBSCRIPTION and subscription_options is None:
        raise ConfigurationError(
            f"gql_subscription_options is required for subscription '{options['name']}'"
        )

    gql_options = None
    if gql_kind == GraphQLOperationKind.QUERY:
        gql_options = _coerce_options(options["gql_query_options"], GraphQLFieldOptions)
    elif gql_kind == GraphQLOperationKind.MUTATION:
        gql_options = _coerce_options(options["gql_mutation_options"], GraphQLFieldOptions)

    skip_first = scope == MemberScope.INSTANCE or isinstance(member, classmethod)
    param_bindings = map_parameters(func, skip_first=skip_first, owner=owner)

    id_binding = None
    if scope == MemberScope.INSTANCE:
        if any(binding.python_name == "id" for binding in param_bindings):
            raise ConfigurationError(
                f"{owner.__qualname__}.{member_name} declares 'id', which is reserved "
                "for the identifier of lifted instance actions"
            )
        id_binding = _identifier_binding(owner, options["path"], rest_verb)

    return_annotation = _return_annotation(func, owner)

    try:
        descriptor = ActionDescriptor(
            name=options["name"],
            path=options["path"],
            rest_verb=rest_verb,
            gql_operation_kind=gql_kind,
            static_name=options["static_name"],
            autogen_rest=bool(options["autogen_rest"]),
            autogen_graphql=bool(options["autogen_graphql"]),
            param_bindings=param_bindings,
            id_binding=id_binding,
            scope=scope,
            member_name=member_name,
            owner=owner.__qualname__,
            rest_options=_coerce_options(options["rest_options"], RestOptions),
            gql_options=gql_options,
            gql_subscription_options=subscription_options,
            gql_return_type=options["gql_return_type"],
            return_annotation=return_annotation,
        )
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid action {owner.__qualname__}.{member_name}: {exc}"
        ) from exc

    check_path_bindings(descriptor)
    return descriptor


def _return_annotation(func: Any, owner: type) -> Any:
    try:
        hints = typing.get_type_hints(func, localns={owner.__name__: owner})
    except (NameError, TypeError):
        return None
    return hints.get("return")


def check_path_bindings(descriptor: ActionDescriptor) -> None:
    """
    Raises:
        ConfigurationError: if a path-origin binding is missing from the template
    """
    missing = descriptor.missing_path_segments()
    if missing:
        raise ConfigurationError(
            f"Path parameter(s) {', '.join(missing)} of action '{descriptor.name}' "
            f"do not appear in path '{descriptor.path}'"
        )


# =============================================================================
# Descriptor Side Table
# =============================================================================


class DescriptorTable:
    """
    Side table mapping ``(class, member name)`` to ActionDescriptor.

    Lookups by class include descriptors inherited from base classes;
    a subclass entry for the same member shadows the base entry.
    """

    def __init__(self) -> None:
        self._entries: weakref.WeakKeyDictionary[type, dict[str, ActionDescriptor]] = (
            weakref.WeakKeyDictionary()
        )

    def set(self, owner: type, member_name: str, descriptor: ActionDescriptor) -> None:
        self._entries.setdefault(owner, {})[member_name] = descriptor

    def get(self, owner: type, member_name: str) -> ActionDescriptor | None:
        for cls in owner.__mro__:
            descriptor = self._entries.get(cls, {}).get(member_name)
            if descriptor is not None:
                return descriptor
        return None

    def owner_of(self, owner: type, member_name: str) -> type | None:
        """Class in ``owner``'s MRO that defines the action."""
        for cls in owner.__mro__:
            if member_name in self._entries.get(cls, {}):
                return cls
        return None

    def for_class(self, owner: type) -> dict[str, ActionDescriptor]:
        actions: dict[str, ActionDescriptor] = {}
        for cls in reversed(owner.__mro__):
            actions.update(self._entries.get(cls, {}))
        return actions

    def remove(self, owner: type, member_name: str) -> None:
        self._entries.get(owner, {}).pop(member_name, None)

    def __contains__(self, key: tuple[type, str]) -> bool:
        return self.get(*key) is not None


descriptor_table = DescriptorTable()


# =============================================================================
# Annotation-Time Pipeline
# =============================================================================


def register_action(
    owner: type,
    member_name: str,
    fragments: Iterable[Mapping[str, Any]] = (),
    table: DescriptorTable | None = None,
) -> ActionDescriptor:
    """
    Build, record and (for instance members) lift one action.

    Runs once per member at class-definition time.
    """
    table = table if table is not None else descriptor_table
    descriptor = build_descriptor(owner, member_name, fragments)

    member = inspect.getattr_static(owner, member_name)
    set_metadata(member, get_metadata(member).with_param_bindings(descriptor.param_bindings))

    if descriptor.scope == MemberScope.INSTANCE:
        lift_instance_method(owner, descriptor)
    elif descriptor.static_name != member_name:
        existing = owner.__dict__.get(descriptor.static_name)
        if existing is not None and existing is not member:
            raise ConflictError(
                f"{owner.__qualname__}.{descriptor.static_name} is already defined",
                owner=owner.__qualname__,
                static_name=descriptor.static_name,
            )
        setattr(owner, descriptor.static_name, member)

    table.set(owner, member_name, descriptor)
    logger.debug(
        "Registered action %s on %s (%s, rest=%s, graphql=%s)",
        descriptor.name,
        owner.__qualname__,
        descriptor.scope.value,
        descriptor.rest_verb,
        descriptor.gql_operation_kind,
    )
    return descriptor
