"""
Server configuration.

Settings are read from ``TYPE_SERVER_*`` environment variables and an
optional ``.env`` file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class TypeServerSettings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="TYPE_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    title: str = "type-server"

    # REST
    rest_enabled: bool = True
    rest_mount_path: str = "/api"

    # GraphQL
    graphql_enabled: bool = True
    graphql_mount_path: str = "/graphql"
    graphiql: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> TypeServerSettings:
    """Get cached settings instance."""
    return TypeServerSettings()
