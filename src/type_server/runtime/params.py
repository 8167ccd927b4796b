"""
Parameter origin mapping.

Parameters declare their origin with ``typing.Annotated`` markers::

    async def rename(
        self,
        new_name: Annotated[str, Query("newName")],
        ctx: Annotated[ServiceContext, Context()],
    ) -> str: ...

Parameters without a marker are read from the request body under their own
name. The resulting ParamBinding sequence is recorded once, when the action
descriptor is built, and is immutable afterwards.
"""

from __future__ import annotations

import inspect
import logging
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any

from type_server.errors import ConfigurationError
from type_server.specs import ParamBinding, ParamOrigin

logger = logging.getLogger(__name__)

# =============================================================================
# Annotation Markers
# =============================================================================


@dataclass(frozen=True)
class Param:
    """
    Origin marker for an action parameter.

    Attributes:
        origin: Where the value comes from
        name: External name; defaults to the parameter name
        required: Override of the required flag (defaults to "has no default")
        gql_type: Explicit GraphQL type, bypassing type inference
    """

    origin: ParamOrigin = ParamOrigin.BODY
    name: str | None = None
    required: bool | None = None
    gql_type: Any = None


def Body(name: str | None = None, *, required: bool | None = None, gql_type: Any = None) -> Param:
    return Param(ParamOrigin.BODY, name, required, gql_type)


def Query(name: str | None = None, *, required: bool | None = None, gql_type: Any = None) -> Param:
    return Param(ParamOrigin.QUERY, name, required, gql_type)


def Path(name: str | None = None, *, gql_type: Any = None) -> Param:
    return Param(ParamOrigin.PATH, name, True, gql_type)


def Header(name: str | None = None, *, required: bool | None = None) -> Param:
    return Param(ParamOrigin.HEADER, name, required)


def Cookie(name: str | None = None, *, required: bool | None = None) -> Param:
    return Param(ParamOrigin.COOKIE, name, required)


def Context() -> Param:
    """Inject the request-scoped ServiceContext."""
    return Param(ParamOrigin.CONTEXT, required=False)


def RequestObject() -> Param:
    """Inject the raw request object."""
    return Param(ParamOrigin.REQUEST, required=False)


def ResponseObject() -> Param:
    """Inject the raw response object."""
    return Param(ParamOrigin.RESPONSE, required=False)


# =============================================================================
# Mapping
# =============================================================================


def _resolve_hints(func: Callable[..., Any], owner: type | None) -> dict[str, Any]:
    """Resolve annotations, tolerating forward references to the owning class."""
    localns = {owner.__name__: owner} if owner is not None else None
    try:
        return typing.get_type_hints(func, localns=localns, include_extras=True)
    except (NameError, TypeError):
        pass

    # Resolve one annotation at a time so a single bad forward ref doesn't
    # hide the markers on the other parameters. Unresolvable ones become Any.
    globalns = getattr(func, "__globals__", {})
    hints: dict[str, Any] = {}
    for key, value in getattr(func, "__annotations__", {}).items():
        hints[key] = _resolve_one(key, value, globalns, localns)
    return hints


def _resolve_one(
    key: str, value: Any, globalns: dict[str, Any], localns: dict[str, Any] | None
) -> Any:
    def annotated() -> None: ...

    annotated.__annotations__ = {key: value}
    try:
        return typing.get_type_hints(
            annotated, globalns=globalns, localns=localns, include_extras=True
        )[key]
    except (NameError, AttributeError, SyntaxError, TypeError):
        logger.debug("Could not resolve annotation %r of %s; using Any", value, key)
        return Any


def split_annotation(annotation: Any) -> tuple[Any, Param | None]:
    """Split ``Annotated[T, Param(...)]`` into ``(T, Param)``."""
    if typing.get_origin(annotation) is Annotated:
        base, *extras = typing.get_args(annotation)
        markers = [extra for extra in extras if isinstance(extra, Param)]
        return base, (markers[-1] if markers else None)
    return annotation, None


def _default_name(origin: ParamOrigin, python_name: str) -> str:
    if origin == ParamOrigin.HEADER:
        return python_name.replace("_", "-")
    return python_name


def map_parameters(
    func: Callable[..., Any],
    *,
    skip_first: bool = False,
    owner: type | None = None,
) -> tuple[ParamBinding, ...]:
    """
    Record a ParamBinding for every declared parameter of ``func``.

    Args:
        func: The underlying function (not a staticmethod/classmethod wrapper)
        skip_first: Skip the bound ``self`` / ``cls`` parameter
        owner: Owning class, used to resolve forward references

    Raises:
        ConfigurationError: for variadic parameters or invalid path parameters
    """
    signature = inspect.signature(func)
    hints = _resolve_hints(func, owner)
    parameters = list(signature.parameters.values())
    if skip_first and parameters:
        parameters = parameters[1:]

    bindings: list[ParamBinding] = []
    for index, parameter in enumerate(parameters):
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise ConfigurationError(
                f"Variadic parameter '{parameter.name}' of {func.__qualname__} cannot be bound"
            )

        annotation = hints.get(parameter.name, parameter.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = Any
        base, marker = split_annotation(annotation)
        marker = marker or Param()

        has_default = parameter.default is not inspect.Parameter.empty
        required = marker.required if marker.required is not None else not has_default

        try:
            bindings.append(
                ParamBinding(
                    index=index,
                    origin=marker.origin,
                    name=marker.name or _default_name(marker.origin, parameter.name),
                    python_name=parameter.name,
                    required=required,
                    annotation=base,
                    default=parameter.default if has_default else None,
                    gql_type=marker.gql_type,
                )
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    return tuple(bindings)
