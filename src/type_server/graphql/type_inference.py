"""
GraphQL type inference for action arguments and results.

Maps declared Python types to GraphQL kinds:

- bool -> Boolean
- int -> Int
- float, Decimal and other real numbers -> Float
- str -> String
- strawberry.ID -> ID
- Enum subclasses -> Enum
- anything else -> input object (a strawberry input type, or the JSON scalar)

The mapping is heuristic. ``Param(gql_type=...)`` overrides it per
parameter and ``TypeInferrer(overrides={...})`` overrides it per type.
"""

from __future__ import annotations

import collections.abc
import decimal
import enum
import functools
import numbers
import types
import typing
from collections.abc import Mapping
from typing import Annotated, Any, Optional, Union

import strawberry
from strawberry.scalars import JSON

from type_server.errors import ConfigurationError
from type_server.specs import (
    ActionDescriptor,
    GraphQLArgument,
    GraphQLOperationKind,
    GraphQLTypeHint,
    ParamBinding,
)

SCALAR_TYPES: dict[GraphQLTypeHint, Any] = {
    GraphQLTypeHint.INT: int,
    GraphQLTypeHint.FLOAT: float,
    GraphQLTypeHint.STRING: str,
    GraphQLTypeHint.BOOLEAN: bool,
    GraphQLTypeHint.ID: strawberry.ID,
}

_SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.Set,
    collections.abc.Iterable,
)
_STREAM_ORIGINS = (
    collections.abc.AsyncGenerator,
    collections.abc.AsyncIterator,
    collections.abc.AsyncIterable,
)


# =============================================================================
# Annotation Helpers
# =============================================================================


def strip_annotated(annotation: Any) -> Any:
    if typing.get_origin(annotation) is Annotated:
        return typing.get_args(annotation)[0]
    return annotation


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Split ``T | None`` into ``(T, True)``; other annotations are returned as-is."""
    annotation = strip_annotated(annotation)
    if typing.get_origin(annotation) in (Union, types.UnionType):
        args = typing.get_args(annotation)
        remaining = [arg for arg in args if arg is not type(None)]
        if len(remaining) == 1 and len(remaining) < len(args):
            return strip_annotated(remaining[0]), True
    return annotation, False


def sequence_item(annotation: Any) -> Any | None:
    """Element type of a sequence annotation, or None if not a sequence."""
    if annotation in (list, tuple, set, frozenset):
        return Any
    if typing.get_origin(annotation) in _SEQUENCE_ORIGINS:
        args = typing.get_args(annotation)
        return args[0] if args else Any
    return None


def stream_item(annotation: Any) -> Any:
    """Element type of an async generator/iterator annotation."""
    if typing.get_origin(annotation) in _STREAM_ORIGINS:
        args = typing.get_args(annotation)
        return args[0] if args else Any
    return annotation


def strawberry_definition(annotation: Any) -> Any | None:
    return getattr(annotation, "__strawberry_definition__", None)


@functools.cache
def strawberry_enum(enum_cls: type[enum.Enum]) -> Any:
    """Register a Python Enum with strawberry once."""
    if getattr(enum_cls, "_enum_definition", None) is not None:
        return enum_cls
    return strawberry.enum(enum_cls)


def is_json_output(graphql_type: Any) -> bool:
    """True if results of this type are sent through the JSON scalar."""
    inner, _ = unwrap_optional(graphql_type)
    item = sequence_item(inner)
    if item is not None:
        return is_json_output(item)
    return inner is JSON


# =============================================================================
# Inference
# =============================================================================


class TypeInferrer:
    """
    Infers GraphQL kinds and strawberry types from Python annotations.

    Args:
        overrides: Python type -> GraphQLTypeHint, consulted before the
            built-in rules (e.g. ``{Decimal: GraphQLTypeHint.STRING}``)
    """

    def __init__(self, overrides: Mapping[Any, GraphQLTypeHint] | None = None) -> None:
        self.overrides = dict(overrides or {})

    def infer(self, annotation: Any) -> GraphQLTypeHint:
        """GraphQL kind for an annotation; sequences report their element kind."""
        annotation, _ = unwrap_optional(annotation)
        item = sequence_item(annotation)
        if item is not None:
            return self.infer(item)

        override = self.overrides.get(annotation)
        if override is not None:
            return GraphQLTypeHint(override)
        if annotation is strawberry.ID:
            return GraphQLTypeHint.ID
        if typing.get_origin(annotation) is not None or not isinstance(annotation, type):
            return GraphQLTypeHint.INPUT_OBJECT

        if issubclass(annotation, bool):
            return GraphQLTypeHint.BOOLEAN
        if issubclass(annotation, enum.Enum):
            return GraphQLTypeHint.ENUM
        if issubclass(annotation, int):
            return GraphQLTypeHint.INT
        if issubclass(annotation, (numbers.Real, decimal.Decimal)):
            return GraphQLTypeHint.FLOAT
        if issubclass(annotation, str):
            return GraphQLTypeHint.STRING
        return GraphQLTypeHint.INPUT_OBJECT

    def input_type(self, annotation: Any, hint: GraphQLTypeHint) -> Any:
        """Strawberry argument type (without nullability) for an annotation."""
        base, _ = unwrap_optional(annotation)
        item = sequence_item(base)
        if item is not None:
            return list[self.input_type(item, hint)]  # type: ignore[misc]

        if hint == GraphQLTypeHint.ENUM:
            if isinstance(base, type) and issubclass(base, enum.Enum):
                return strawberry_enum(base)
            return str
        if hint == GraphQLTypeHint.INPUT_OBJECT:
            definition = strawberry_definition(base)
            if definition is not None and getattr(definition, "is_input", False):
                return base
            return JSON
        return SCALAR_TYPES[hint]

    def output_type(self, annotation: Any) -> Any:
        """Strawberry field type for a declared result type."""
        if annotation is None or annotation is type(None) or annotation is Any:
            return Optional[JSON]  # noqa: UP007

        base, optional = unwrap_optional(annotation)
        item = sequence_item(base)
        if item is not None:
            result: Any = list[self.output_type(item)]  # type: ignore[misc]
        else:
            definition = strawberry_definition(base)
            if definition is not None and not getattr(definition, "is_input", False):
                result = base
            else:
                hint = self.infer(base)
                if hint == GraphQLTypeHint.ENUM and isinstance(base, type):
                    result = strawberry_enum(base)
                elif hint in SCALAR_TYPES:
                    result = SCALAR_TYPES[hint]
                else:
                    return Optional[JSON]  # noqa: UP007

        return Optional[result] if optional else result  # noqa: UP007

    def argument(self, binding: ParamBinding) -> GraphQLArgument:
        """GraphQL argument for a client-supplied parameter binding."""
        _, optional = unwrap_optional(binding.annotation)

        if binding.gql_type is None:
            hint = self.infer(binding.annotation)
            python_type = self.input_type(binding.annotation, hint)
        elif isinstance(binding.gql_type, str):
            try:
                hint = GraphQLTypeHint(binding.gql_type)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown GraphQL type '{binding.gql_type}' for parameter "
                    f"'{binding.python_name}'"
                ) from None
            python_type = self.input_type(binding.annotation, hint)
        else:
            hint = self.infer(binding.gql_type)
            python_type = self.input_type(binding.gql_type, hint)

        return GraphQLArgument(
            name=binding.name,
            python_name=binding.python_name,
            gql_type_hint=hint,
            python_type=python_type,
            nullable=optional or not binding.required,
            default=binding.default,
        )

    def return_type(self, descriptor: ActionDescriptor) -> Any:
        """
        Field type for an action's result.

        For subscriptions this is the type of each published item.
        """
        if descriptor.gql_return_type is not None:
            return descriptor.gql_return_type

        annotation = descriptor.return_annotation
        if descriptor.gql_operation_kind == GraphQLOperationKind.SUBSCRIPTION:
            annotation = stream_item(annotation)
        return self.output_type(annotation)


default_inferrer = TypeInferrer()
