"""
Public decorators for declaring actions.

Example:
    class Widget(Model):
        @action(rest_verb="PATCH", path="/widget/rename", gql_method="mutation")
        @permission(owns_widget)
        async def rename(self, new_name: str) -> str:
            ...

``@action`` must be the outermost decorator, above ``@staticmethod`` or
``@classmethod``. Stacked ``@action(...)`` decorators contribute option
fragments which are folded in order, top-most last.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from type_server.errors import ConfigurationError
from type_server.runtime.builder import ACTION_OPTION_NAMES, register_action
from type_server.runtime.lifter import get_metadata, set_metadata
from type_server.specs import PermissionRule


class ActionMember:
    """
    Class-body marker for an annotated member.

    Replaced by the original member when the owning class is created.
    """

    def __init__(self, member: Any, fragments: tuple[Mapping[str, Any], ...]) -> None:
        self.member = member
        self.fragments = fragments

    def with_fragment(self, fragment: Mapping[str, Any]) -> ActionMember:
        return ActionMember(self.member, (*self.fragments, fragment))

    def __set_name__(self, owner: type, name: str) -> None:
        setattr(owner, name, self.member)
        register_action(owner, name, self.fragments)

    def __repr__(self) -> str:
        return f"ActionMember({self.member!r}, fragments={len(self.fragments)})"


def action(member: Any = None, /, **options: Any) -> Any:
    """
    Declare a member as an action exposed over REST and GraphQL.

    Usable bare (``@action``) or with options (``@action(rest_verb="POST")``).

    Raises:
        ConfigurationError: for unknown option names
    """
    unknown = set(options) - ACTION_OPTION_NAMES
    if unknown:
        raise ConfigurationError(f"Unknown action option(s): {', '.join(sorted(unknown))}")

    def decorate(target: Any) -> ActionMember:
        if isinstance(target, ActionMember):
            return target.with_fragment(options)
        return ActionMember(target, (options,))

    if member is not None:
        return decorate(member)
    return decorate


def permission(rule: PermissionRule) -> Callable[[Any], Any]:
    """
    Attach a permission rule to a member.

    Rules accumulate; every rule must allow for the action to run. Works on
    plain functions, ``staticmethod``/``classmethod`` objects and members
    already wrapped by ``@action``.
    """

    def decorate(target: Any) -> Any:
        member = target.member if isinstance(target, ActionMember) else target
        set_metadata(member, get_metadata(member).with_permission(rule))
        return target

    return decorate
