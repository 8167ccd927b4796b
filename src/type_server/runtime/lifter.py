"""
Instance lifting.

Protocol adapters bind class-level callables keyed by identifier, never live
objects. Lifting turns an instance method ``m(self, *args)`` into a static
callable ``f(id, *args)`` that loads the entity and forwards the call.

Per-callable metadata (permission rules, parameter bindings) is copied
verbatim onto the synthesized callable.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

from type_server.errors import ConflictError, NotFoundError
from type_server.runtime.repository import resolve_loader
from type_server.specs import ActionDescriptor, CallableMetadata

logger = logging.getLogger(__name__)

METADATA_ATTR = "__action_metadata__"
LIFTED_FROM_ATTR = "__lifted_from__"


# =============================================================================
# Callable Metadata
# =============================================================================


def raw_function(member: Any) -> Callable[..., Any]:
    """Unwrap staticmethod/classmethod objects to the underlying function."""
    if isinstance(member, (staticmethod, classmethod)):
        return member.__func__
    return member


def get_metadata(func: Any) -> CallableMetadata:
    return getattr(raw_function(func), METADATA_ATTR, None) or CallableMetadata()


def set_metadata(func: Any, metadata: CallableMetadata) -> None:
    setattr(raw_function(func), METADATA_ATTR, metadata)


def copy_metadata(source: Any, target: Any) -> None:
    """Copy the metadata record of ``source`` onto ``target`` (same object)."""
    metadata = getattr(raw_function(source), METADATA_ATTR, None)
    if metadata is not None:
        setattr(raw_function(target), METADATA_ATTR, metadata)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


# =============================================================================
# Lifting
# =============================================================================


def _lifted_signature(method: Callable[..., Any]) -> inspect.Signature:
    signature = inspect.signature(method)
    parameters = list(signature.parameters.values())[1:]
    kind = inspect.Parameter.POSITIONAL_OR_KEYWORD
    if parameters and parameters[0].kind == inspect.Parameter.POSITIONAL_ONLY:
        kind = inspect.Parameter.POSITIONAL_ONLY
    identifier = inspect.Parameter("id", kind)
    return signature.replace(parameters=[identifier, *parameters])


def lift_instance_method(owner: type, descriptor: ActionDescriptor) -> Callable[..., Any]:
    """
    Synthesize and register the static counterpart of an instance action.

    The returned coroutine function loads the entity through the owner's
    loader (exactly once per call), raises NotFoundError when nothing is
    found, and otherwise returns or raises whatever the instance method does.

    Raises:
        ConflictError: if ``descriptor.static_name`` is taken by another member
    """
    method = inspect.getattr_static(owner, descriptor.member_name)
    entity_name = owner.__name__

    async def lifted(id: Any, *args: Any, **kwargs: Any) -> Any:
        loader = resolve_loader(owner)
        entity = await loader.load_by_identifier(owner, id)
        if entity is None:
            logger.warning(
                "%s %r not found for action %s",
                entity_name,
                id,
                descriptor.name,
                extra={"context": {"entity": entity_name, "id": id, "action": descriptor.name}},
            )
            raise NotFoundError(entity_name, id, action=descriptor.name)
        return await maybe_await(method(entity, *args, **kwargs))

    lifted.__name__ = descriptor.static_name
    lifted.__qualname__ = f"{owner.__qualname__}.{descriptor.static_name}"
    lifted.__module__ = owner.__module__
    lifted.__doc__ = method.__doc__
    lifted.__signature__ = _lifted_signature(method)  # type: ignore[attr-defined]
    setattr(lifted, LIFTED_FROM_ATTR, (owner, descriptor.member_name))
    copy_metadata(method, lifted)

    existing = owner.__dict__.get(descriptor.static_name)
    if existing is not None:
        lifted_from = getattr(raw_function(existing), LIFTED_FROM_ATTR, None)
        if lifted_from != (owner, descriptor.member_name):
            raise ConflictError(
                f"{owner.__qualname__}.{descriptor.static_name} is already defined",
                owner=owner.__qualname__,
                static_name=descriptor.static_name,
            )

    setattr(owner, descriptor.static_name, staticmethod(lifted))
    logger.debug(
        "Lifted %s.%s to %s", owner.__qualname__, descriptor.member_name, descriptor.static_name
    )
    return lifted
