"""
Persistence contracts consumed by the action runtime.

The binding engine itself only needs ``load_by_identifier``; the generated
CRUD actions additionally create, save and delete entities. An in-memory
store is provided for tests and examples.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, ClassVar, Protocol, runtime_checkable

from type_server.errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class EntityLoader(Protocol):
    """Loads a persisted entity by identifier."""

    async def load_by_identifier(self, entity_cls: type, identifier: Any) -> Any | None: ...


@runtime_checkable
class EntityStore(EntityLoader, Protocol):
    """Full persistence contract used by generated CRUD actions."""

    async def create(self, entity_cls: type, data: dict[str, Any]) -> Any: ...

    async def save(self, entity: Any) -> Any: ...

    async def delete(self, entity: Any) -> None: ...


# =============================================================================
# Model Base
# =============================================================================


class Model:
    """
    Base class for entities exposed through actions.

    Entities look up their loader through ``__entity_loader__``, which
    subclasses inherit. Dataclasses may subclass Model; their generated
    ``__init__`` replaces the keyword constructor below.
    """

    __entity_loader__: ClassVar[EntityLoader | None] = None

    id: Any = None

    def __init__(self, **fields: Any) -> None:
        for key, value in fields.items():
            setattr(self, key, value)

    @classmethod
    def use_loader(cls, loader: EntityLoader) -> None:
        """Set the loader used by this class and its subclasses."""
        cls.__entity_loader__ = loader

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


def use_loader(entity_cls: type, loader: EntityLoader) -> None:
    """Attach a loader to any class, Model subclass or not."""
    entity_cls.__entity_loader__ = loader  # type: ignore[attr-defined]


def resolve_loader(entity_cls: type) -> EntityLoader:
    """
    Find the loader for an entity class.

    Raises:
        ConfigurationError: if no loader was attached to the class or its bases
    """
    loader = getattr(entity_cls, "__entity_loader__", None)
    if loader is None:
        raise ConfigurationError(
            f"No entity loader configured for {entity_cls.__qualname__}",
            entity=entity_cls.__qualname__,
        )
    return loader


def resolve_store(entity_cls: type) -> EntityStore:
    """Find the loader for an entity class and check it supports full CRUD."""
    store = resolve_loader(entity_cls)
    if not isinstance(store, EntityStore):
        raise ConfigurationError(
            f"Loader for {entity_cls.__qualname__} does not support create/save/delete",
            entity=entity_cls.__qualname__,
        )
    return store


# =============================================================================
# In-Memory Store
# =============================================================================


class InMemoryEntityStore:
    """
    Dictionary-backed entity store.

    Entities are kept per class and keyed by ``id``. Saving an entity with no
    id assigns the next integer id for its class.

    Example:
        store = InMemoryEntityStore()
        Widget.use_loader(store)
        widget = await store.save(Widget(name="first"))
    """

    def __init__(self) -> None:
        self._entities: dict[type, dict[Any, Any]] = {}
        self._counters: dict[type, itertools.count[int]] = {}
        self._lock = asyncio.Lock()

    def _table(self, entity_cls: type) -> dict[Any, Any]:
        return self._entities.setdefault(entity_cls, {})

    def add(self, *entities: Any) -> None:
        """Insert entities that already carry an id."""
        for entity in entities:
            self._table(type(entity))[entity.id] = entity

    async def load_by_identifier(self, entity_cls: type, identifier: Any) -> Any | None:
        entity = self._table(entity_cls).get(identifier)
        if entity is None:
            logger.debug("No %s with id %r", entity_cls.__name__, identifier)
        return entity

    async def create(self, entity_cls: type, data: dict[str, Any]) -> Any:
        """Build an unsaved draft."""
        return entity_cls(**data)

    async def save(self, entity: Any) -> Any:
        entity_cls = type(entity)
        async with self._lock:
            if getattr(entity, "id", None) is None:
                counter = self._counters.setdefault(entity_cls, itertools.count(1))
                table = self._table(entity_cls)
                entity.id = next(n for n in counter if n not in table)
            self._table(entity_cls)[entity.id] = entity
        return entity

    async def delete(self, entity: Any) -> None:
        async with self._lock:
            self._table(type(entity)).pop(getattr(entity, "id", None), None)

    def all(self, entity_cls: type) -> list[Any]:
        return list(self._table(entity_cls).values())
