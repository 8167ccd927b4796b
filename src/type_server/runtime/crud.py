"""
Generated CRUD actions.

``crud_api`` adds create/read/update/delete actions to a model class. Each
generated action is a static member registered through the regular
descriptor pipeline, so it is bound to REST and GraphQL like any other
action. Per-phase permission rules are evaluated after loading, against
the phase context of the operation:

- create: CreatePermissionContext (the unsaved draft)
- read: ReadPermissionContext (the persisted entity)
- update: UpdatePermissionContext (the persisted entity and the changes)
- delete: DeletePermissionContext (the persisted entity)

Example:
    @crud_api(allow_read=True, allow_update=is_owner())
    class Widget(Model):
        id: int
        owner_id: int
        name: str
"""

from __future__ import annotations

import copy
import logging
import typing
from collections.abc import Callable
from typing import Annotated, Any

from type_server.errors import ConflictError, InvalidInputError, NotFoundError
from type_server.runtime.access_evaluator import (
    CreatePermissionContext,
    DeletePermissionContext,
    ReadPermissionContext,
    UpdatePermissionContext,
    enforce,
)
from type_server.runtime.builder import DescriptorTable, register_action
from type_server.runtime.context import ServiceContext
from type_server.runtime.naming import to_snake_case
from type_server.runtime.params import Body, Context, Path
from type_server.runtime.repository import resolve_store
from type_server.specs import CrudPhase, GraphQLTypeHint, PermissionRule

logger = logging.getLogger(__name__)

_CONTEXT = Annotated[ServiceContext, Context()]


def _identifier_annotation(cls: type) -> Any:
    try:
        id_type = typing.get_type_hints(cls).get("id", Any)
    except (NameError, TypeError):
        id_type = Any
    gql_type = GraphQLTypeHint.ID if id_type is Any else None
    return Annotated[id_type, Path("id", gql_type=gql_type)]


def _declared_fields(cls: type) -> set[str]:
    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError):
        hints = {}
    return {name for name, hint in hints.items() if typing.get_origin(hint) is not typing.ClassVar}


def _check_fields(cls: type, values: dict[str, Any], action: str) -> None:
    """Reject the identifier and names that are not declared fields of ``cls``."""
    if "id" in values:
        raise InvalidInputError(
            f"Action '{action}' cannot set the id of {cls.__name__}", action=action, fields=("id",)
        )
    unknown = tuple(sorted(set(values) - _declared_fields(cls)))
    if unknown:
        raise InvalidInputError(
            f"Unknown {cls.__name__} field(s) for action '{action}': {', '.join(unknown)}",
            action=action,
            fields=unknown,
        )


async def _load(cls: type, identifier: Any, action: str) -> Any:
    entity = await resolve_store(cls).load_by_identifier(cls, identifier)
    if entity is None:
        logger.warning(
            "%s %r not found for action %s",
            cls.__name__,
            identifier,
            action,
            extra={"context": {"entity": cls.__name__, "id": identifier, "action": action}},
        )
        raise NotFoundError(cls.__name__, identifier, action=action)
    return entity


# =============================================================================
# Phase Handlers
# =============================================================================


def _create_handler(cls: type, action: str, rule: PermissionRule) -> Callable[..., Any]:
    async def create(data: dict[str, Any], context: ServiceContext) -> Any:
        _check_fields(cls, data, action)
        store = resolve_store(cls)
        draft = await store.create(cls, dict(data))
        enforce((rule,), CreatePermissionContext(context, draft=draft), action)
        return await store.save(draft)

    create.__annotations__ = {
        "data": Annotated[dict[str, Any], Body("data")],
        "context": _CONTEXT,
        "return": Any,
    }
    return create


def _read_handler(cls: type, action: str, rule: PermissionRule) -> Callable[..., Any]:
    async def read(id: Any, context: ServiceContext) -> Any:
        entity = await _load(cls, id, action)
        enforce((rule,), ReadPermissionContext(context, entity=entity), action)
        return entity

    read.__annotations__ = {"id": _identifier_annotation(cls), "context": _CONTEXT, "return": Any}
    return read


def _update_handler(cls: type, action: str, rule: PermissionRule) -> Callable[..., Any]:
    async def update(id: Any, changes: dict[str, Any], context: ServiceContext) -> Any:
        _check_fields(cls, changes, action)
        entity = await _load(cls, id, action)
        enforce((rule,), UpdatePermissionContext(context, entity=entity, changes=dict(changes)), action)
        updated = copy.copy(entity)
        for key, value in changes.items():
            setattr(updated, key, value)
        return await resolve_store(cls).save(updated)

    update.__annotations__ = {
        "id": _identifier_annotation(cls),
        "changes": Annotated[dict[str, Any], Body("changes")],
        "context": _CONTEXT,
        "return": Any,
    }
    return update


def _delete_handler(cls: type, action: str, rule: PermissionRule) -> Callable[..., Any]:
    async def delete(id: Any, context: ServiceContext) -> bool:
        entity = await _load(cls, id, action)
        enforce((rule,), DeletePermissionContext(context, entity=entity), action)
        await resolve_store(cls).delete(entity)
        return True

    delete.__annotations__ = {"id": _identifier_annotation(cls), "context": _CONTEXT, "return": bool}
    return delete


# (handler factory, REST verb, path suffix, GraphQL operation)
_PHASES: dict[CrudPhase, tuple[Callable[..., Any], str, str, str]] = {
    CrudPhase.CREATE: (_create_handler, "POST", "", "mutation"),
    CrudPhase.READ: (_read_handler, "GET", "/{id}", "query"),
    CrudPhase.UPDATE: (_update_handler, "PUT", "/{id}", "mutation"),
    CrudPhase.DELETE: (_delete_handler, "DELETE", "/{id}", "mutation"),
}


# =============================================================================
# Class Decorator
# =============================================================================


def crud_api(
    *,
    allow_create: PermissionRule | None = False,
    allow_read: PermissionRule | None = False,
    allow_update: PermissionRule | None = False,
    allow_delete: PermissionRule | None = False,
    table: DescriptorTable | None = None,
) -> Callable[[type], type]:
    """
    Add generated CRUD actions to a model class.

    A phase whose rule is ``False`` or ``None`` gets no action at all;
    ``True`` allows everyone; a predicate is evaluated per request.

    Raises:
        ConflictError: if the class already defines a generated action's name
    """
    rules = {
        CrudPhase.CREATE: allow_create,
        CrudPhase.READ: allow_read,
        CrudPhase.UPDATE: allow_update,
        CrudPhase.DELETE: allow_delete,
    }

    def decorate(cls: type) -> type:
        model = to_snake_case(cls.__name__)
        for phase, rule in rules.items():
            if rule is None or rule is False:
                continue

            factory, verb, suffix, gql_method = _PHASES[phase]
            action = f"{phase.value}_{model}"
            if action in cls.__dict__:
                raise ConflictError(
                    f"{cls.__qualname__}.{action} is already defined",
                    owner=cls.__qualname__,
                    static_name=action,
                )

            handler = factory(cls, action, rule)
            handler.__name__ = action
            handler.__qualname__ = f"{cls.__qualname__}.{action}"
            handler.__module__ = cls.__module__
            setattr(cls, action, staticmethod(handler))
            register_action(
                cls,
                action,
                [{"rest_verb": verb, "path": f"/{model}{suffix}", "gql_method": gql_method}],
                table,
            )

        logger.debug("Generated CRUD actions for %s", cls.__qualname__)
        return cls

    return decorate
