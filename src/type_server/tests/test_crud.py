"""Tests for generated CRUD actions."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from type_server.errors import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from type_server.runtime.access_evaluator import (
    CreatePermissionContext,
    UpdatePermissionContext,
    has_role,
    is_authenticated,
    is_owner,
)
from type_server.runtime.app_factory import create_app
from type_server.runtime.binder import invoke_action
from type_server.runtime.builder import descriptor_table
from type_server.runtime.config import TypeServerSettings
from type_server.runtime.context import ServiceContext
from type_server.runtime.crud import crud_api
from type_server.runtime.repository import InMemoryEntityStore, Model, use_loader
from type_server.specs import GraphQLOperationKind, HttpMethod, ParamOrigin


@crud_api(
    allow_create=is_authenticated,
    allow_read=True,
    allow_update=is_owner(),
    allow_delete=has_role("admin"),
)
class Note(Model):
    id: int
    owner_id: int | None = None
    text: str = ""


@crud_api(allow_read=True)
class ReadOnlyNote(Model):
    id: int
    text: str = ""


@pytest.fixture
def note_store(store: Any) -> Any:
    store.add(Note(id=1, owner_id=1, text="first"))
    use_loader(Note, store)
    return store


# =============================================================================
# Generated Descriptors
# =============================================================================


class TestGeneratedActions:
    """Tests for the actions crud_api registers."""

    @pytest.mark.parametrize(
        ("name", "verb", "path", "kind"),
        [
            ("create_note", HttpMethod.POST, "/note", GraphQLOperationKind.MUTATION),
            ("read_note", HttpMethod.GET, "/note/{id}", GraphQLOperationKind.QUERY),
            ("update_note", HttpMethod.PUT, "/note/{id}", GraphQLOperationKind.MUTATION),
            ("delete_note", HttpMethod.DELETE, "/note/{id}", GraphQLOperationKind.MUTATION),
        ],
    )
    def test_descriptor(
        self, name: str, verb: HttpMethod, path: str, kind: GraphQLOperationKind
    ) -> None:
        descriptor = descriptor_table.get(Note, name)

        assert descriptor is not None
        assert descriptor.rest_verb == verb
        assert descriptor.path == path
        assert descriptor.gql_operation_kind == kind
        assert descriptor.static_name == name

    def test_identifier_binding(self) -> None:
        descriptor = descriptor_table.get(Note, "read_note")
        assert descriptor is not None

        identifier = descriptor.param_bindings[0]
        assert identifier.origin == ParamOrigin.PATH
        assert identifier.annotation is int

    def test_disallowed_phases_dropped(self) -> None:
        assert set(descriptor_table.for_class(ReadOnlyNote)) == {"read_read_only_note"}
        assert not hasattr(ReadOnlyNote, "create_read_only_note")

    def test_existing_name_conflicts(self) -> None:
        with pytest.raises(ConflictError, match="read_clash"):

            @crud_api(allow_read=True)
            class Clash(Model):
                @staticmethod
                def read_clash() -> None: ...


# =============================================================================
# Phase Rules
# =============================================================================


class TestPhaseRules:
    """Tests for per-phase permission evaluation."""

    @pytest.mark.asyncio
    async def test_create(self, note_store: Any, owner_context: ServiceContext) -> None:
        note = await invoke_action(
            Note, "create_note", owner_context, data={"text": "second", "owner_id": 1}
        )

        assert note.id == 2
        assert note.text == "second"
        assert note in note_store.all(Note)

    @pytest.mark.asyncio
    async def test_create_denied_saves_nothing(
        self, note_store: Any, anonymous_context: ServiceContext
    ) -> None:
        with pytest.raises(AuthorizationError, match="create"):
            await invoke_action(Note, "create_note", anonymous_context, data={"text": "x"})
        assert len(note_store.all(Note)) == 1

    @pytest.mark.asyncio
    async def test_read(self, note_store: Any, anonymous_context: ServiceContext) -> None:
        note = await invoke_action(Note, "read_note", anonymous_context, id=1)
        assert note.text == "first"

    @pytest.mark.asyncio
    async def test_read_missing(self, note_store: Any, anonymous_context: ServiceContext) -> None:
        with pytest.raises(NotFoundError):
            await invoke_action(Note, "read_note", anonymous_context, id=42)

    @pytest.mark.asyncio
    async def test_update_by_owner(self, note_store: Any, owner_context: ServiceContext) -> None:
        note = await invoke_action(
            Note, "update_note", owner_context, id=1, changes={"text": "edited"}
        )
        assert note.text == "edited"

    @pytest.mark.asyncio
    async def test_update_by_stranger(
        self, note_store: Any, stranger_context: ServiceContext
    ) -> None:
        with pytest.raises(AuthorizationError, match="update"):
            await invoke_action(
                Note, "update_note", stranger_context, id=1, changes={"text": "edited"}
            )
        assert note_store.all(Note)[0].text == "first"

    @pytest.mark.asyncio
    async def test_update_cannot_change_identifier(
        self, note_store: Any, owner_context: ServiceContext
    ) -> None:
        note_store.add(Note(id=2, owner_id=2, text="second"))

        with pytest.raises(InvalidInputError, match="cannot set the id"):
            await invoke_action(Note, "update_note", owner_context, id=1, changes={"id": 2})

        stored = sorted((note.id, note.text) for note in note_store.all(Note))
        assert stored == [(1, "first"), (2, "second")]

    @pytest.mark.asyncio
    async def test_update_rejects_undeclared_field(
        self, note_store: Any, owner_context: ServiceContext
    ) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            await invoke_action(
                Note, "update_note", owner_context, id=1, changes={"text": "x", "secret": 1}
            )

        assert exc_info.value.fields == ("secret",)
        assert note_store.loads == []
        assert note_store.all(Note)[0].text == "first"

    @pytest.mark.asyncio
    async def test_update_leaves_loaded_entity_untouched(
        self, note_store: Any, owner_context: ServiceContext
    ) -> None:
        (original,) = note_store.all(Note)
        updated = await invoke_action(
            Note, "update_note", owner_context, id=1, changes={"text": "edited"}
        )

        assert original.text == "first"
        assert note_store.all(Note) == [updated]

    @pytest.mark.asyncio
    async def test_create_cannot_choose_identifier(
        self, note_store: Any, owner_context: ServiceContext
    ) -> None:
        with pytest.raises(InvalidInputError):
            await invoke_action(
                Note, "create_note", owner_context, data={"id": 1, "text": "overwrite"}
            )
        assert note_store.all(Note)[0].text == "first"

    @pytest.mark.asyncio
    async def test_delete_requires_role(
        self,
        note_store: Any,
        owner_context: ServiceContext,
        admin_context: ServiceContext,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await invoke_action(Note, "delete_note", owner_context, id=1)

        assert await invoke_action(Note, "delete_note", admin_context, id=1) is True
        assert note_store.all(Note) == []

    @pytest.mark.asyncio
    async def test_phase_context_shapes(self, owner_context: ServiceContext) -> None:
        seen: list[Any] = []

        def record(ctx: Any) -> bool:
            seen.append(ctx)
            return True

        @crud_api(allow_create=record, allow_update=record)
        class Draft(Model):
            id: int
            text: str = ""

        use_loader(Draft, InMemoryEntityStore())
        created = await invoke_action(Draft, "create_draft", owner_context, data={"text": "a"})
        await invoke_action(
            Draft, "update_draft", owner_context, id=created.id, changes={"text": "b"}
        )

        create_ctx, update_ctx = seen
        assert isinstance(create_ctx, CreatePermissionContext)
        assert create_ctx.draft.text == "a"
        assert isinstance(update_ctx, UpdatePermissionContext)
        assert update_ctx.entity is created
        assert update_ctx.changes == {"text": "b"}


# =============================================================================
# Over HTTP
# =============================================================================


class TestCrudOverHttp:
    """Tests for generated actions served by create_app."""

    @pytest.fixture
    def client(self, note_store: Any) -> TestClient:
        settings = TypeServerSettings(graphiql=False)
        return TestClient(create_app([Note], settings=settings, store=note_store))

    def test_read(self, client: TestClient) -> None:
        response = client.get("/api/note/1")

        assert response.status_code == 200
        assert response.json() == {"id": 1, "owner_id": 1, "text": "first"}

    def test_read_missing(self, client: TestClient) -> None:
        response = client.get("/api/note/42")

        assert response.status_code == 404
        assert response.json() == {"detail": "Note with id 42 not found", "type": "not_found"}

    def test_create_anonymous(self, client: TestClient) -> None:
        response = client.post("/api/note", json={"data": {"text": "x"}})
        assert response.status_code == 403

    def test_update_identifier_rejected(self, client: TestClient) -> None:
        response = client.put("/api/note/1", json={"changes": {"id": 2}})

        assert response.status_code == 422
        assert response.json()["type"] == "invalid_input"

    def test_graphql_read(self, client: TestClient) -> None:
        response = client.post("/graphql", json={"query": "{ readNote(id: 1) }"})

        assert response.status_code == 200
        assert response.json()["data"] == {"readNote": {"id": 1, "owner_id": 1, "text": "first"}}
