"""App factory.

Assembles a FastAPI application from annotated model classes: the REST
router and the GraphQL endpoint are each mounted when enabled in settings.
Listening is left to the caller (e.g. ``uvicorn mymodule:app``).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from fastapi import FastAPI

from type_server.graphql.integration import mount_graphql
from type_server.graphql.resolver_generator import StrawberryGraphQLAdapter
from type_server.runtime.binder import BoundAction, bind_model
from type_server.runtime.config import TypeServerSettings, get_settings
from type_server.runtime.exception_handlers import register_exception_handlers
from type_server.runtime.logging import setup_logging
from type_server.runtime.repository import EntityLoader, use_loader
from type_server.runtime.route_generator import FastAPIRestAdapter

if TYPE_CHECKING:
    from type_server.graphql.type_inference import TypeInferrer

logger = logging.getLogger(__name__)


class TypeServerApp:
    """
    Builder for a type-server FastAPI application.

    Example:
        builder = TypeServerApp([Widget], store=InMemoryEntityStore())
        app = builder.build()
    """

    def __init__(
        self,
        models: Sequence[type],
        settings: TypeServerSettings | None = None,
        store: EntityLoader | None = None,
        inferrer: TypeInferrer | None = None,
        configure_logging: bool = False,
    ):
        """
        Initialize the builder.

        Args:
            models: Model classes whose actions are exposed
            settings: Server settings (default: environment settings)
            store: Loader/store attached to every model (optional)
            inferrer: GraphQL type inference overrides (optional)
            configure_logging: Call setup_logging() with the settings' level/format
        """
        self.models = list(models)
        self.settings = settings or get_settings()
        self.store = store
        self.inferrer = inferrer
        self.configure_logging = configure_logging
        self.rest_adapter = FastAPIRestAdapter() if self.settings.rest_enabled else None
        self.graphql_adapter = StrawberryGraphQLAdapter() if self.settings.graphql_enabled else None
        self.bound: list[BoundAction] = []

    def _bind_models(self) -> None:
        for model in self.models:
            if self.store is not None:
                use_loader(model, self.store)
            self.bound.extend(
                bind_model(
                    model,
                    self.rest_adapter,
                    self.graphql_adapter,
                    inferrer=self.inferrer,
                )
            )

    def build(self) -> FastAPI:
        """Bind every model and return the application."""
        if self.configure_logging:
            setup_logging(self.settings.log_level, json_format=self.settings.log_json)

        self._bind_models()

        app = FastAPI(title=self.settings.title)
        register_exception_handlers(app)

        if self.rest_adapter is not None:
            app.include_router(self.rest_adapter.router, prefix=self.settings.rest_mount_path)
        if self.graphql_adapter is not None:
            mount_graphql(
                app,
                self.graphql_adapter.build_schema(),
                path=self.settings.graphql_mount_path,
                enable_graphiql=self.settings.graphiql,
            )

        app.state.type_server = self
        logger.info(
            "Built %s with %d action(s) from %d model(s) (rest=%s, graphql=%s)",
            self.settings.title,
            len(self.bound),
            len(self.models),
            self.settings.rest_enabled,
            self.settings.graphql_enabled,
        )
        return app


def create_app(
    models: Sequence[type],
    settings: TypeServerSettings | None = None,
    store: EntityLoader | None = None,
    inferrer: TypeInferrer | None = None,
    configure_logging: bool = False,
) -> FastAPI:
    """
    Create a FastAPI application exposing the actions of ``models``.

    Args:
        models: Model classes whose actions are exposed
        settings: Server settings (default: environment settings)
        store: Loader/store attached to every model (optional)
        inferrer: GraphQL type inference overrides (optional)
        configure_logging: Configure the ``type_server`` logger from settings

    Returns:
        FastAPI application

    Example:
        >>> app = create_app([Widget], store=InMemoryEntityStore())
        >>> # Run with uvicorn: uvicorn mymodule:app
    """
    return TypeServerApp(
        models,
        settings=settings,
        store=store,
        inferrer=inferrer,
        configure_logging=configure_logging,
    ).build()
