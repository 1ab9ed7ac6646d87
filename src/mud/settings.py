"""Connection settings for the mud ORM.

``DatabaseConfig`` describes which backend to talk to and how records are
deleted. It is a pydantic-settings model, so the same class can be built from
keyword arguments, from ``MUD_*`` environment variables / a ``.env`` file, or
from a JSON document via ``load_config()``.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not at first query
    - **Environment-driven:** ``MUD_TYPE``, ``MUD_DATABASE``, ... and .env
    - **JSON files:** the same keys as the environment, camelCase accepted
    - **Sensible defaults:** an embedded SQLite database out of the box

Examples:
    >>> from mud.settings import DatabaseConfig
    >>> cfg = DatabaseConfig(type="mysql", host="localhost:3306",
    ...                      database="shop", user="app", password="secret")
    >>> cfg.deletable
    False

Tags:
    settings, configuration, pydantic, environment, mud

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from mud.errors import ConfigError


class DatabaseConfig(BaseSettings):
    """Backend selection and connection parameters.

    Fields
    ──────
    type                  : Backend name (sqlite, sqlite3, mysql, mariadb, sqlserver, mssql)
    host                  : Server host, optionally ``host:port`` (network backends)
    database              : Database name, or file path for SQLite
    user / password       : Credentials (network backends)
    deletable             : Hard-delete rows instead of setting DeleteDate
    disabled_transactions : Run every statement in driver autocommit mode
    """

    model_config = SettingsConfigDict(
        env_prefix="MUD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    type: str = "sqlite"
    host: str = ""
    database: str = ""
    user: str = ""
    password: str = ""
    deletable: bool = False
    disabled_transactions: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "disabled_transactions",
            "disabledTransactions",
            "MUD_DISABLED_TRANSACTIONS",
        ),
    )


def load_config(path: str | Path) -> DatabaseConfig:
    """Read a JSON configuration file.

    Raises:
        ConfigError: If the file cannot be read or fails validation.
    """
    path = Path(path).expanduser()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration {path}: {exc}", cause=exc) from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {path} must contain a JSON object")

    try:
        return DatabaseConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}", cause=exc) from exc


_settings_cache: dict[str, DatabaseConfig] = {}


def get_settings(*, _force_reload: bool = False) -> DatabaseConfig:
    """Return the environment-driven configuration, cached after first load."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = DatabaseConfig()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "DatabaseConfig",
    "load_config",
    "get_settings",
    "clear_settings_cache",
]
