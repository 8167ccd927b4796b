"""
Request-scoped service context.

The same ServiceContext shape is built for REST and GraphQL requests, so a
permission rule sees identical data whichever protocol the client used.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response


@dataclass(frozen=True)
class ServiceContext:
    """
    Context handed to permission rules and ``Context()`` parameters.

    Attributes:
        user: Current user object (set by auth middleware on ``request.state.user``)
        roles: Roles of the current user
        request: Underlying request object, if any
        response: Underlying response object, if any
        request_id: Unique request identifier for tracing
        state: Additional request-scoped data
    """

    user: Any = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    request: Any = None
    response: Any = None
    request_id: str | None = None
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        """Check if the user is authenticated."""
        return self.user is not None

    @property
    def user_id(self) -> Any:
        return getattr(self.user, "id", None)

    def has_role(self, role: str) -> bool:
        """Check if the user has a specific role."""
        return role in self.roles

    def header(self, name: str) -> str | None:
        if self.request is None:
            return None
        return self.request.headers.get(name)

    def cookie(self, name: str) -> str | None:
        if self.request is None:
            return None
        return self.request.cookies.get(name)


def create_context_from_request(request: Request, response: Response | None = None) -> ServiceContext:
    """
    Create a ServiceContext from an HTTP request.

    Reads the user and roles that authentication middleware stored on
    ``request.state`` and the ``X-Request-ID`` header.

    Args:
        request: Starlette/FastAPI request object
        response: Response object handlers may write headers/cookies to

    Returns:
        ServiceContext populated from request
    """
    user = getattr(request.state, "user", None)
    roles = getattr(request.state, "roles", None)
    if roles is None and user is not None:
        roles = getattr(user, "roles", ())

    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    return ServiceContext(
        user=user,
        roles=tuple(roles or ()),
        request=request,
        response=response,
        request_id=request_id,
    )


def create_anonymous_context(request_id: str | None = None) -> ServiceContext:
    """Create a context with no user, for internal calls and tests."""
    return ServiceContext(request_id=request_id or str(uuid.uuid4()))
