"""
Canonical protocol definitions for mud.

Two families of structural contracts live here: the DB-API shapes the engine
needs from a driver (``Connection``, ``Cursor``), and the optional
capabilities an entity type can opt into (``Updatable``, ``Restorable``,
``StandingData``, ``SqlRenderable``).

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** the engine depends on shape, not on a driver
    - **Opt-in hooks:** an entity implements a capability by defining a method
    - **Testability:** any object matching the protocol works

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── Cursor          - execute / fetchone / fetchall / rowcount
        ├── Connection      - cursor / commit / rollback / close
        ├── Updatable       - entity supplies its own persist command
        ├── Restorable      - post-load callback with the active dialect
        ├── StandingData    - seed rows inserted after table creation
        └── SqlRenderable   - object that renders itself to raw WHERE text

    Consumers:
        database.py (capability checks at the save/populate/create sites),
        criteria.py (SqlRenderable), adapters/ (Connection)

Guardrails:
    ❌ DON'T: Test capabilities with hasattr() in engine code
    ✅ DO: isinstance(entity, Updatable), these are runtime_checkable

    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; defaults live on mud.Model

Tags:
    protocol, connection, capability, hooks, mud

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mud.dialect import Dialect

# ---------------------------------------------------------------------------
# Database Connection Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Cursor(Protocol):
    """Minimal DB-API 2.0 cursor used by the engine."""

    description: Any
    rowcount: int

    def execute(self, sql: str, params: Any = ...) -> Any:
        ...

    def fetchone(self) -> Any:
        ...

    def fetchall(self) -> list:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS DB-API 2.0 connection.

    ``sqlite3.Connection``, ``mysql.connector`` pooled connections and
    ``pymssql.Connection`` all satisfy it.

    Architecture:
        ::

            Connection Protocol:
            ┌────────────────────────────────────────────────────────┐
            │ cursor()    → New cursor for one statement             │
            │ commit()    → Commit transaction                       │
            │ rollback()  → Rollback transaction                     │
            │ close()     → Release the connection                   │
            └────────────────────────────────────────────────────────┘
    """

    def cursor(self) -> Cursor:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Entity Capabilities
# ---------------------------------------------------------------------------


@runtime_checkable
class Updatable(Protocol):
    """Entity that supplies its own persist command.

    When present, ``Database.save()`` executes the returned statement instead
    of building an INSERT or UPDATE.
    """

    def update(self, dialect: Dialect) -> str:
        ...


@runtime_checkable
class Restorable(Protocol):
    """Entity that normalises itself after every row population."""

    def restore(self, dialect: Dialect) -> None:
        ...


@runtime_checkable
class StandingData(Protocol):
    """Entity type that seeds rows right after its table is created.

    ``mud.Model`` implements this with an empty list, so every entity type
    satisfies it; override the classmethod to supply seed rows.
    """

    @classmethod
    def standing_data(cls) -> list[Any]:
        ...


@runtime_checkable
class SqlRenderable(Protocol):
    """Object that renders itself to raw WHERE text for criteria."""

    def to_sql(self) -> str:
        ...


__all__ = [
    "Cursor",
    "Connection",
    "Updatable",
    "Restorable",
    "StandingData",
    "SqlRenderable",
]
