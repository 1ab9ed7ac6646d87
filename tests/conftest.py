"""
Shared pytest fixtures for mud tests.

Provides:
- Environment isolation for MUD_* settings
- SQLite configurations and ``Database`` instances on a temp file
- One dialect instance per backend
"""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest

from mud import Database, DatabaseConfig
from mud.dialect import MSSQLDialect, MySQLDialect, SQLiteDialect
from mud.settings import clear_settings_cache


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """
    Strip MUD_* variables and run from an empty directory.

    Keeps a developer's shell or ``.env`` file from leaking into
    ``DatabaseConfig`` defaults.
    """
    for key in list(os.environ):
        if key.upper().startswith("MUD_") or key.lower() in ("disabled_transactions", "disabledtransactions"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Configurations and databases
# =============================================================================


@pytest.fixture
def sqlite_config(tmp_path) -> DatabaseConfig:
    """Soft-delete SQLite configuration on a temp file."""
    return DatabaseConfig(type="sqlite", database=str(tmp_path / "mud.db"))


@pytest.fixture
def deletable_config(tmp_path) -> DatabaseConfig:
    """Hard-delete SQLite configuration on a temp file."""
    return DatabaseConfig(type="sqlite", database=str(tmp_path / "mud.db"), deletable=True)


@pytest.fixture
def db(sqlite_config: DatabaseConfig) -> Generator[Database, None, None]:
    database = Database(sqlite_config)
    yield database
    database.close()


@pytest.fixture
def hard_db(deletable_config: DatabaseConfig) -> Generator[Database, None, None]:
    database = Database(deletable_config)
    yield database
    database.close()


# =============================================================================
# Dialects
# =============================================================================


@pytest.fixture
def sqlite_dialect() -> SQLiteDialect:
    return SQLiteDialect()


@pytest.fixture
def mysql_dialect() -> MySQLDialect:
    return MySQLDialect()


@pytest.fixture
def mssql_dialect() -> MSSQLDialect:
    return MSSQLDialect()
