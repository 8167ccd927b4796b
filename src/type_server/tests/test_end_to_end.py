"""
End-to-end tests: one annotated model served over REST and GraphQL.

A small middleware stands in for authentication by reading the user id from
an ``X-User-Id`` header, so both protocols see the same user.
"""

from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from type_server.decorators import action, permission
from type_server.runtime.access_evaluator import ActionPermissionContext
from type_server.runtime.app_factory import create_app
from type_server.runtime.config import TypeServerSettings
from type_server.runtime.repository import Model

RENAME = 'mutation { rename(id: 7, newName: "x") }'


def is_widget_owner(ctx: ActionPermissionContext) -> bool:
    return ctx.user is not None and ctx.user.id == 1


class Widget(Model):
    id: int
    name: str = ""
    renames: list[str]

    @action(rest_verb="PATCH", path="/widget/rename", gql_method="mutation")
    @permission(is_widget_owner)
    async def rename(self, new_name: str) -> str:
        self.renames.append(new_name)
        self.name = new_name
        return new_name


@pytest.fixture
def widget_store(store: Any) -> Any:
    store.add(Widget(id=7, name="old", renames=[]))
    return store


@pytest.fixture
def app(widget_store: Any, user_factory: Any) -> FastAPI:
    app = create_app([Widget], TypeServerSettings(graphiql=False), store=widget_store)

    @app.middleware("http")
    async def authenticate(request: Request, call_next: Any) -> Any:
        user_id = request.headers.get("X-User-Id")
        request.state.user = user_factory(id=int(user_id)) if user_id else None
        return await call_next(request)

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def widget(store: Any) -> Widget:
    (found,) = store.all(Widget)
    return found


# =============================================================================
# Allowed
# =============================================================================


class TestAllowed:
    """The owner renames the widget through either protocol."""

    def test_rest(self, client: TestClient, widget_store: Any) -> None:
        response = client.patch(
            "/api/widget/rename", json={"id": 7, "new_name": "x"}, headers={"X-User-Id": "1"}
        )

        assert response.status_code == 200
        assert response.json() == "x"
        assert widget_store.loads == [(Widget, 7)]
        assert widget(widget_store).renames == ["x"]

    def test_graphql(self, client: TestClient, widget_store: Any) -> None:
        response = client.post("/graphql", json={"query": RENAME}, headers={"X-User-Id": "1"})

        assert response.status_code == 200
        assert response.json() == {"data": {"rename": "x"}}
        assert widget_store.loads == [(Widget, 7)]
        assert widget(widget_store).renames == ["x"]

    def test_same_result_over_both_protocols(
        self, client: TestClient, widget_store: Any
    ) -> None:
        rest = client.patch(
            "/api/widget/rename", json={"id": 7, "new_name": "x"}, headers={"X-User-Id": "1"}
        )
        graphql = client.post("/graphql", json={"query": RENAME}, headers={"X-User-Id": "1"})

        assert rest.json() == graphql.json()["data"]["rename"]
        assert widget_store.loads == [(Widget, 7), (Widget, 7)]
        assert widget(widget_store).renames == ["x", "x"]

    def test_empty_string_over_both_protocols(
        self, client: TestClient, widget_store: Any
    ) -> None:
        rest = client.patch(
            "/api/widget/rename", json={"id": 7, "new_name": ""}, headers={"X-User-Id": "1"}
        )
        graphql = client.post(
            "/graphql",
            json={"query": 'mutation { rename(id: 7, newName: "") }'},
            headers={"X-User-Id": "1"},
        )

        assert rest.status_code == 200
        assert rest.json() == ""
        assert graphql.json() == {"data": {"rename": ""}}
        assert widget(widget_store).renames == ["", ""]


# =============================================================================
# Denied
# =============================================================================


class TestDenied:
    """A stranger is rejected before any entity is loaded."""

    @pytest.mark.parametrize("headers", [{"X-User-Id": "2"}, {}])
    def test_rest(self, client: TestClient, widget_store: Any, headers: dict[str, str]) -> None:
        response = client.patch(
            "/api/widget/rename", json={"id": 7, "new_name": "x"}, headers=headers
        )

        assert response.status_code == 403
        assert response.json()["type"] == "authorization_error"
        assert widget_store.loads == []
        assert widget(widget_store).renames == []

    def test_graphql(self, client: TestClient, widget_store: Any) -> None:
        response = client.post("/graphql", json={"query": RENAME}, headers={"X-User-Id": "2"})

        body = response.json()
        assert body["data"] is None
        assert body["errors"][0]["message"] == "Permission denied for action 'rename'"
        assert widget_store.loads == []
        assert widget(widget_store).renames == []


# =============================================================================
# Missing Entity
# =============================================================================


class TestMissing:
    """An unknown identifier is reported, and the action never runs."""

    def test_rest(self, client: TestClient, widget_store: Any) -> None:
        response = client.patch(
            "/api/widget/rename", json={"id": 8, "new_name": "x"}, headers={"X-User-Id": "1"}
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "Widget with id 8 not found", "type": "not_found"}
        assert widget_store.loads == [(Widget, 8)]

    def test_graphql(self, client: TestClient, widget_store: Any) -> None:
        response = client.post(
            "/graphql",
            json={"query": 'mutation { rename(id: 8, newName: "x") }'},
            headers={"X-User-Id": "1"},
        )

        assert response.json()["errors"][0]["message"] == "Widget with id 8 not found"
        assert widget(widget_store).renames == []
