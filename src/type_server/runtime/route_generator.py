"""
FastAPI REST adapter.

Registers one APIRouter route per RestBinding. Each route extracts its
parameters from the request as the binding's ParamExtractors declare,
coerces them to the declared parameter types with pydantic, and calls the
binding's handler with the request's ServiceContext.
"""

from __future__ import annotations

import functools
import json
import logging
import types
import typing
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.routing import APIRoute
from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError

from type_server.runtime.context import create_context_from_request
from type_server.runtime.ledger import BindingKey, BindingLedger
from type_server.specs import HttpMethod, ParamExtractor, ParamOrigin, RestBinding

logger = logging.getLogger(__name__)

_LIST_ORIGINS = (list, tuple, set, frozenset)


# =============================================================================
# Request Parsing
# =============================================================================


async def _parse_request_body(request: Request) -> dict[str, Any]:
    """Parse request body as JSON or form data.

    An empty body parses to an empty mapping. Values are kept as sent, so an
    empty string reaches the action exactly as it does over GraphQL.
    """
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        body: Any = dict(form)
    else:
        raw = await request.body()
        if not raw:
            return {}
        try:
            body = json.loads(raw)
        except ValueError:
            raise HTTPException(status_code=422, detail="Request body is not valid JSON") from None

    if not isinstance(body, dict):
        raise HTTPException(status_code=422, detail="Request body must be a JSON object")
    return body


@functools.lru_cache(maxsize=512)
def _type_adapter(annotation: Any) -> TypeAdapter[Any] | None:
    try:
        return TypeAdapter(annotation)
    except PydanticSchemaGenerationError:
        logger.debug("No validator for %r; values are passed through", annotation)
        return None


def _coerce(extractor: ParamExtractor, raw: Any) -> Any:
    annotation = extractor.annotation
    if annotation is None or annotation is Any:
        return raw
    try:
        adapter = _type_adapter(annotation)
    except TypeError:
        # Unhashable annotation
        adapter = TypeAdapter(annotation)
    if adapter is None:
        return raw
    return adapter.validate_python(raw)


def _is_list(annotation: Any) -> bool:
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        return any(_is_list(arg) for arg in typing.get_args(annotation))
    return annotation in _LIST_ORIGINS or typing.get_origin(annotation) in _LIST_ORIGINS


def _source(
    origin: ParamOrigin, request: Request, body: Mapping[str, Any] | None
) -> Mapping[str, Any]:
    if origin == ParamOrigin.BODY:
        return body or {}
    if origin == ParamOrigin.QUERY:
        return request.query_params
    if origin == ParamOrigin.PATH:
        return request.path_params
    if origin == ParamOrigin.HEADER:
        return request.headers
    return request.cookies


async def extract_arguments(
    extractors: Sequence[ParamExtractor], request: Request
) -> dict[str, Any]:
    """
    Extract and coerce client-supplied arguments.

    Injected origins (context, request, response) are skipped; the handler
    fills them from the ServiceContext.

    Raises:
        HTTPException: 422 for missing required or invalid values
    """
    body: dict[str, Any] | None = None
    if any(e.origin == ParamOrigin.BODY for e in extractors):
        body = await _parse_request_body(request)

    arguments: dict[str, Any] = {}
    errors: list[dict[str, Any]] = []
    for extractor in extractors:
        if extractor.origin.is_injected:
            continue

        source = _source(extractor.origin, request, body)
        if extractor.name not in source:
            if extractor.required:
                errors.append(
                    {
                        "loc": [extractor.origin.value, extractor.name],
                        "msg": "Field required",
                        "type": "missing",
                    }
                )
            continue

        if extractor.origin == ParamOrigin.QUERY and _is_list(extractor.annotation):
            raw = request.query_params.getlist(extractor.name)
        else:
            raw = source[extractor.name]

        try:
            arguments[extractor.python_name] = _coerce(extractor, raw)
        except ValidationError as exc:
            for error in exc.errors(include_url=False, include_context=False, include_input=False):
                errors.append(
                    {**error, "loc": [extractor.origin.value, extractor.name, *error["loc"]]}
                )

    if errors:
        raise HTTPException(status_code=422, detail=errors)
    return arguments


# =============================================================================
# Handlers
# =============================================================================


def create_action_endpoint(binding: RestBinding) -> Callable[..., Any]:
    """Create the FastAPI endpoint for one binding."""
    extractors = binding.param_extractors
    handler = binding.handler

    async def endpoint(request: Request, response: Response) -> Any:
        context = create_context_from_request(request, response)
        arguments = await extract_arguments(extractors, request)
        return await handler(context, arguments)

    # Override annotations with the proper types so FastAPI recognizes them
    endpoint.__annotations__ = {"request": Request, "response": Response, "return": Any}
    endpoint.__name__ = binding.descriptor.name
    options = binding.descriptor.rest_options
    endpoint.__doc__ = options.description if options else None
    return endpoint


# =============================================================================
# Adapter
# =============================================================================


class FastAPIRestAdapter:
    """
    REST adapter registering action routes on a FastAPI APIRouter.

    Example:
        adapter = FastAPIRestAdapter()
        bind_model(Widget, rest_adapter=adapter)
        app.include_router(adapter.router, prefix="/api")
    """

    supported_verbs = frozenset(HttpMethod)

    def __init__(self, router: APIRouter | None = None):
        self._router = router or APIRouter()
        self.ledger = BindingLedger("rest")
        self._routes: dict[BindingKey, APIRoute] = {}

    def check(self, binding: RestBinding) -> None:
        """Raise ConflictError if another action owns the verb and path."""
        self.ledger.check(binding.key, binding.descriptor)

    def bind(self, binding: RestBinding) -> None:
        """
        Register (or replace) the route for ``binding``.

        Raises:
            ConflictError: if another action already owns the verb and path
        """
        replaced = self.ledger.claim(binding.key, binding.descriptor)
        if replaced:
            self._remove_route(binding.key)

        self._add_route(binding)
        logger.debug(
            "%s REST route %s %s",
            "Replaced" if replaced else "Registered",
            binding.verb.value,
            binding.path,
        )

    def _add_route(self, binding: RestBinding) -> None:
        """Add a route to the router."""
        options = binding.descriptor.rest_options
        route_kwargs: dict[str, Any] = {
            "methods": [binding.verb.value],
            "name": binding.descriptor.name,
            "summary": (options.summary if options else None) or binding.descriptor.name,
            "tags": list(options.tags) if options else [],
        }
        if options is not None and options.description:
            route_kwargs["description"] = options.description
        if options is not None and options.status_code is not None:
            route_kwargs["status_code"] = options.status_code

        self._router.add_api_route(binding.path, create_action_endpoint(binding), **route_kwargs)
        self._routes[binding.key] = self._router.routes[-1]  # type: ignore[assignment]

    def _remove_route(self, key: BindingKey) -> None:
        route = self._routes.pop(key, None)
        if route is not None and route in self._router.routes:
            self._router.routes.remove(route)

    @property
    def router(self) -> APIRouter:
        """Get the generated router."""
        return self._router

    def routes(self) -> list[BindingKey]:
        return list(self._routes)
