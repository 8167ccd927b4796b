"""
Exception handlers for type-server applications.

Translates action errors raised by REST handlers into JSON responses:
- AuthorizationError: 403
- NotFoundError: 404
- InvalidInputError: 422
- ConflictError: 409
- ConfigurationError: 500
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from type_server.errors import (
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    TypeServerError,
)

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: tuple[tuple[type[TypeServerError], int, str], ...] = (
    (AuthorizationError, 403, "authorization_error"),
    (NotFoundError, 404, "not_found"),
    (InvalidInputError, 422, "invalid_input"),
    (ConflictError, 409, "conflict"),
    (ConfigurationError, 500, "configuration_error"),
)


def error_response(exc: TypeServerError) -> JSONResponse:
    for error_type, status_code, type_name in ERROR_STATUS:
        if isinstance(exc, error_type):
            return JSONResponse(
                status_code=status_code,
                content={"detail": exc.message, "type": type_name},
            )
    return JSONResponse(status_code=500, content={"detail": exc.message, "type": "server_error"})


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register action error handlers on a FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(TypeServerError)
    async def type_server_error_handler(request: Request, exc: TypeServerError) -> Response:
        """Convert action errors to their HTTP status."""
        response = error_response(exc)
        if response.status_code >= 500:
            logger.error(
                "Action error on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                extra={"context": {"type": type(exc).__name__, **exc.details}},
            )
        return response
