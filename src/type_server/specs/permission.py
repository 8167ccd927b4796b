"""
Permission specification types.

A permission rule is either a plain boolean or a predicate over a
phase context. Phase contexts are defined in
``type_server.runtime.access_evaluator``.
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field


class CrudPhase(StrEnum):
    """CRUD phases a permission rule can be evaluated in."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


PermissionRule: TypeAlias = bool | Callable[[Any], bool]


class CallableMetadata(BaseModel):
    """
    Per-callable action metadata.

    Attached to a function under ``__action_metadata__`` and copied verbatim
    onto lifted static callables.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    permissions: tuple[Any, ...] = Field(
        default=(), description="Permission rules, evaluated in order"
    )
    param_bindings: tuple[Any, ...] | None = Field(
        default=None, description="Parameter bindings recorded for this callable"
    )

    def with_permission(self, rule: PermissionRule) -> "CallableMetadata":
        return self.model_copy(update={"permissions": (*self.permissions, rule)})

    def with_param_bindings(self, bindings: tuple[Any, ...]) -> "CallableMetadata":
        return self.model_copy(update={"param_bindings": bindings})
