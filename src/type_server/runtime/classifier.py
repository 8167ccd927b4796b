"""
Static / instance member classification.

A member is *static* when it can be called straight off the class
(``staticmethod`` or ``classmethod``), and *instance* when it can only be
called on a constructed object. Anything else cannot be bound as an action.
"""

from __future__ import annotations

import inspect
from typing import Any

from type_server.errors import ConfigurationError
from type_server.specs import MemberScope


def _lookup_static(cls: type, member_name: str) -> Any:
    try:
        return inspect.getattr_static(cls, member_name)
    except AttributeError:
        return None


def is_static(cls: type, member_name: str) -> bool:
    """True iff the member is reachable on the class itself and callable."""
    raw = _lookup_static(cls, member_name)
    if not isinstance(raw, (staticmethod, classmethod)):
        return False
    return callable(getattr(cls, member_name, None))


def is_instance(target: Any, member_name: str) -> bool:
    """True iff the member is callable on an instance and is not static."""
    cls = target if isinstance(target, type) else type(target)
    if is_static(cls, member_name):
        return False

    if not isinstance(target, type):
        # Instance given: honour callables stored on the object itself
        member = inspect.getattr_static(target, member_name, None)
        if member is not None and member_name in getattr(target, "__dict__", {}):
            return callable(member)

    return inspect.isfunction(_lookup_static(cls, member_name))


def classify(cls: type, member_name: str) -> MemberScope:
    """
    Classify a member for action binding.

    Raises:
        ConfigurationError: if the member is neither static nor instance-callable
    """
    if is_static(cls, member_name):
        return MemberScope.STATIC
    if is_instance(cls, member_name):
        return MemberScope.INSTANCE
    raise ConfigurationError(
        f"{cls.__qualname__}.{member_name} is not a static or instance method",
        owner=cls.__qualname__,
        member=member_name,
    )
