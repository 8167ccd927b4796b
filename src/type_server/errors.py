"""
Error types for type-server action binding.

Bind-time errors (ConfigurationError, ConflictError) are fatal to the binding
of a single member. Call-time errors (NotFoundError, AuthorizationError,
InvalidInputError) propagate unchanged to the protocol adapter, which
translates them into a protocol-appropriate response.
"""

from __future__ import annotations

from typing import Any


class TypeServerError(Exception):
    """Base exception for all type-server errors."""

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(TypeServerError):
    """
    Raised at descriptor-build or bind time.

    Examples:
    - Unrecognized REST verb or GraphQL operation kind
    - Subscription without subscription options
    - Member that is neither static nor instance-callable
    - Path parameter missing from the path template
    """

    pass


class NotFoundError(TypeServerError):
    """Raised when an identifier resolves to no entity."""

    def __init__(self, entity: str, identifier: Any, action: str | None = None):
        self.entity = entity
        self.identifier = identifier
        self.action = action
        super().__init__(
            f"{entity} with id {identifier!r} not found",
            entity=entity,
            identifier=identifier,
            action=action,
        )


class AuthorizationError(TypeServerError):
    """Raised when a permission rule denies an invocation."""

    def __init__(self, action: str, phase: str | None = None):
        self.action = action
        self.phase = phase
        message = f"Permission denied for action '{action}'"
        if phase:
            message = f"{message} ({phase})"
        super().__init__(message, action=action, phase=phase)


class ConflictError(TypeServerError):
    """Raised when a different action claims an already registered route or field."""

    pass


class InvalidInputError(TypeServerError):
    """Raised at call time when client-supplied values cannot be applied to an entity."""

    def __init__(self, message: str, action: str | None = None, fields: tuple[str, ...] = ()):
        self.action = action
        self.fields = fields
        super().__init__(message, action=action, fields=fields)
