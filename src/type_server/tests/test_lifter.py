"""
Tests for instance lifting.

Lifted callables load the entity exactly once, fail with NotFoundError when
nothing is found, and carry the instance method's metadata unchanged.
"""

import inspect
from typing import Any

import pytest

from type_server.decorators import action, permission
from type_server.errors import ConfigurationError, NotFoundError
from type_server.runtime.access_evaluator import ActionPermissionContext, evaluate
from type_server.runtime.context import ServiceContext
from type_server.runtime.lifter import get_metadata, raw_function
from type_server.runtime.repository import Model, use_loader


def owns_gizmo(ctx: ActionPermissionContext) -> bool:
    return ctx.user is not None and ctx.user.id == 1


class Gizmo(Model):
    id: int
    name: str = ""

    @action(rest_verb="PATCH", path="/gizmo/rename", gql_method="mutation")
    @permission(owns_gizmo)
    async def rename(self, new_name: str) -> str:
        self.name = new_name
        return f"renamed:{new_name}"

    @action
    def describe(self, prefix: str = "gizmo") -> str:
        return f"{prefix} {self.name}"

    @action(rest_verb="POST")
    async def explode(self) -> None:
        raise ValueError(f"{self.name} exploded")


@pytest.fixture
def gizmo_store(store: Any) -> Any:
    """Recording store seeded with one Gizmo (id 7)."""
    store.add(Gizmo(id=7, name="old"))
    use_loader(Gizmo, store)
    return store


# =============================================================================
# Lifted Callables
# =============================================================================


class TestLiftedCallable:
    """Tests for the synthesized static callables."""

    @pytest.mark.asyncio
    async def test_loads_once_and_forwards(self, gizmo_store: Any) -> None:
        result = await Gizmo.rename_static(7, "x")

        assert result == "renamed:x"
        assert gizmo_store.loads == [(Gizmo, 7)]
        assert gizmo_store.all(Gizmo)[0].name == "x"

    @pytest.mark.asyncio
    async def test_sync_instance_method(self, gizmo_store: Any) -> None:
        assert await Gizmo.describe_static(7) == "gizmo old"
        assert await Gizmo.describe_static(7, prefix="item") == "item old"

    @pytest.mark.asyncio
    async def test_not_found(self, gizmo_store: Any) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await Gizmo.rename_static(99, "x")

        assert exc_info.value.identifier == 99
        assert exc_info.value.action == "rename"
        assert gizmo_store.loads == [(Gizmo, 99)]
        assert gizmo_store.all(Gizmo)[0].name == "old"

    @pytest.mark.asyncio
    async def test_exceptions_propagate_unchanged(self, gizmo_store: Any) -> None:
        with pytest.raises(ValueError, match="old exploded"):
            await Gizmo.explode_static(7)

    @pytest.mark.asyncio
    async def test_no_loader_configured(self) -> None:
        class Orphan(Model):
            @action
            def touch(self) -> None: ...

        with pytest.raises(ConfigurationError, match="No entity loader"):
            await Orphan.touch_static(1)

    def test_registered_as_staticmethod(self) -> None:
        assert isinstance(inspect.getattr_static(Gizmo, "rename_static"), staticmethod)
        assert Gizmo.rename_static.__name__ == "rename_static"

    def test_signature_takes_identifier_first(self) -> None:
        parameters = list(inspect.signature(Gizmo.rename_static).parameters)
        assert parameters == ["id", "new_name"]

    def test_custom_static_name(self) -> None:
        class Custom(Model):
            @action(static_name="rename_by_id")
            def rename(self, new_name: str) -> None: ...

        assert callable(Custom.rename_by_id)
        assert not hasattr(Custom, "rename_static")


# =============================================================================
# Metadata
# =============================================================================


class TestMetadataCopy:
    """Tests for metadata carried onto lifted callables."""

    def test_metadata_record_identical(self) -> None:
        assert get_metadata(Gizmo.rename_static) is get_metadata(Gizmo.rename)

    def test_permission_rule_identical(self) -> None:
        (rule,) = get_metadata(Gizmo.rename_static).permissions
        assert rule is owns_gizmo

    def test_param_bindings_carried(self) -> None:
        bindings = get_metadata(Gizmo.rename_static).param_bindings
        assert bindings is not None
        assert [b.python_name for b in bindings] == ["new_name"]

    @pytest.mark.parametrize("user_id,allowed", [(1, True), (2, False)])
    def test_same_outcome_on_both_paths(
        self, user_factory: Any, user_id: int, allowed: bool
    ) -> None:
        ctx = ActionPermissionContext(ServiceContext(user=user_factory(id=user_id)), action="rename")
        (original,) = get_metadata(Gizmo.rename).permissions
        (lifted,) = get_metadata(Gizmo.rename_static).permissions

        assert evaluate(original, ctx) is allowed
        assert evaluate(lifted, ctx) is allowed

    def test_raw_function_unwraps(self) -> None:
        member = inspect.getattr_static(Gizmo, "rename_static")
        assert raw_function(member) is Gizmo.rename_static
