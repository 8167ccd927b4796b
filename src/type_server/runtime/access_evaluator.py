"""
Permission rule evaluator.

A permission rule is a plain boolean or a synchronous predicate over a phase
context. Rules are evaluated fresh on every invocation and never cached:
the outcome depends on request-scoped data (current user, entity state).

Phase contexts:
- ActionPermissionContext: custom actions, evaluated before any entity load
- CreatePermissionContext: exposes the not-yet-persisted draft
- ReadPermissionContext / DeletePermissionContext: expose the persisted entity
- UpdatePermissionContext: exposes the persisted entity and the changes
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from type_server.errors import AuthorizationError, ConfigurationError
from type_server.runtime.context import ServiceContext
from type_server.runtime.logging import log_with_context
from type_server.specs import CrudPhase, PermissionRule

logger = logging.getLogger(__name__)


# =============================================================================
# Phase Contexts
# =============================================================================


@dataclass(frozen=True)
class PermissionContext:
    """Base phase context: the request-scoped service context."""

    phase: ClassVar[CrudPhase | None] = None

    context: ServiceContext

    @property
    def user(self) -> Any:
        return self.context.user


@dataclass(frozen=True)
class ActionPermissionContext(PermissionContext):
    """Context for custom actions, evaluated before loading or calling anything."""

    action: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreatePermissionContext(PermissionContext):
    phase: ClassVar[CrudPhase | None] = CrudPhase.CREATE

    draft: Any = None


@dataclass(frozen=True)
class ReadPermissionContext(PermissionContext):
    phase: ClassVar[CrudPhase | None] = CrudPhase.READ

    entity: Any = None


@dataclass(frozen=True)
class UpdatePermissionContext(PermissionContext):
    phase: ClassVar[CrudPhase | None] = CrudPhase.UPDATE

    entity: Any = None
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeletePermissionContext(PermissionContext):
    phase: ClassVar[CrudPhase | None] = CrudPhase.DELETE

    entity: Any = None


# =============================================================================
# Evaluation
# =============================================================================


def evaluate(rule: PermissionRule, phase_context: PermissionContext) -> bool:
    """
    Resolve a value-or-predicate rule to allow/deny.

    Booleans are returned unchanged without touching the context. Predicates
    are called with the phase context on every evaluation.

    Raises:
        ConfigurationError: if the rule is neither a bool nor a callable, or the
            predicate returns an awaitable
    """
    if isinstance(rule, bool):
        return rule
    if not callable(rule):
        raise ConfigurationError(f"Invalid permission rule: {rule!r}")

    result = rule(phase_context)
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise ConfigurationError(
            f"Permission predicate {getattr(rule, '__name__', rule)!r} must be synchronous"
        )
    return bool(result)


def enforce(
    rules: Iterable[PermissionRule],
    phase_context: PermissionContext,
    action: str,
) -> None:
    """
    Evaluate rules in order and raise on the first denial.

    Raises:
        AuthorizationError: if any rule denies
    """
    for rule in rules:
        if not evaluate(rule, phase_context):
            phase = phase_context.phase.value if phase_context.phase else None
            log_with_context(
                logger,
                logging.WARNING,
                f"Permission denied for action {action}",
                action=action,
                phase=phase,
                user_id=phase_context.context.user_id,
                request_id=phase_context.context.request_id,
            )
            raise AuthorizationError(action, phase)


def to_value(rule: PermissionRule, *args: Any) -> bool:
    """Call a predicate with ``args`` or return a plain value."""
    if callable(rule):
        return bool(rule(*args))
    return rule


def to_predicate(rule: PermissionRule) -> Callable[..., bool]:
    """Wrap a plain value in a predicate; return predicates unchanged."""
    if callable(rule):
        return rule

    def constant(*args: Any) -> bool:
        return rule

    return constant


# =============================================================================
# Rule Helpers
# =============================================================================


def is_authenticated(ctx: PermissionContext) -> bool:
    return ctx.context.is_authenticated


def has_role(role: str) -> Callable[[PermissionContext], bool]:
    def check(ctx: PermissionContext) -> bool:
        return ctx.context.has_role(role)

    check.__name__ = f"has_role_{role}"
    return check


def is_owner(owner_field: str = "owner_id") -> Callable[[PermissionContext], bool]:
    """
    Allow when the entity (or draft) belongs to the current user.

    Compares ``entity.<owner_field>`` with ``context.user.id``. Only CRUD phase
    contexts carry an entity or draft; custom actions are checked before
    anything is loaded, so using this rule on one is a ConfigurationError.
    """

    def check(ctx: PermissionContext) -> bool:
        if isinstance(ctx, ActionPermissionContext):
            raise ConfigurationError(
                f"is_owner() needs a CRUD phase context; action '{ctx.action}' has no entity"
            )
        if not ctx.context.is_authenticated:
            return False
        subject = getattr(ctx, "entity", None)
        if subject is None:
            subject = getattr(ctx, "draft", None)
        if subject is None:
            return False
        return getattr(subject, owner_field, None) == ctx.context.user_id

    check.__name__ = f"is_owner_{owner_field}"
    return check


def not_(rule: PermissionRule) -> Callable[[PermissionContext], bool]:
    def negated(ctx: PermissionContext) -> bool:
        return not evaluate(rule, ctx)

    return negated


def all_of(*rules: PermissionRule) -> Callable[[PermissionContext], bool]:
    def check(ctx: PermissionContext) -> bool:
        return all(evaluate(rule, ctx) for rule in rules)

    return check


def any_of(*rules: PermissionRule) -> Callable[[PermissionContext], bool]:
    def check(ctx: PermissionContext) -> bool:
        return any(evaluate(rule, ctx) for rule in rules)

    return check
