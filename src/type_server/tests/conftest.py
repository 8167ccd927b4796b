"""Shared pytest fixtures for type-server tests."""

from dataclasses import dataclass
from typing import Any

import pytest

from type_server.runtime.context import ServiceContext
from type_server.runtime.repository import InMemoryEntityStore


@dataclass
class User:
    """Minimal user object as set by auth middleware."""

    id: int
    name: str = "user"
    roles: tuple[str, ...] = ()


class RecordingStore(InMemoryEntityStore):
    """In-memory store that records every ``load_by_identifier`` call."""

    def __init__(self) -> None:
        super().__init__()
        self.loads: list[tuple[type, Any]] = []

    async def load_by_identifier(self, entity_cls: type, identifier: Any) -> Any | None:
        self.loads.append((entity_cls, identifier))
        return await super().load_by_identifier(entity_cls, identifier)


@pytest.fixture
def store() -> RecordingStore:
    """Create an empty recording store."""
    return RecordingStore()


@pytest.fixture
def owner() -> User:
    return User(id=1, name="owner")


@pytest.fixture
def owner_context(owner: User) -> ServiceContext:
    """Context of the user owning the seeded entities."""
    return ServiceContext(user=owner, request_id="req-owner")


@pytest.fixture
def stranger_context() -> ServiceContext:
    """Context of an authenticated user owning nothing."""
    return ServiceContext(user=User(id=2, name="stranger"), request_id="req-stranger")


@pytest.fixture
def admin_context() -> ServiceContext:
    return ServiceContext(user=User(id=3, name="admin"), roles=("admin",), request_id="req-admin")


@pytest.fixture
def anonymous_context() -> ServiceContext:
    return ServiceContext(request_id="req-anonymous")


@pytest.fixture
def user_factory() -> type[User]:
    """The user class, for tests that build users per request."""
    return User
