"""Driver adapters: one DB-API connection source per backend.

Manifesto:
    The engine must run identically on SQLite (embedded), MySQL/MariaDB and
    SQL Server. Adapters own the driver-specific parts (connecting, pooling,
    autocommit, driver exception classes) so the engine only ever sees the
    ``Connection`` protocol.

    Each network adapter is **import-guarded**: the driver is only required
    at ``connect()`` time, not at import time. Install the matching extra::

        pip install mud[mysql]   # mysql-connector-python
        pip install mud[mssql]   # pymssql

Architecture::

    DatabaseAdapter (base.py)        Abstract base with connect/get/release
        |-- SQLiteAdapter            stdlib sqlite3 (always available)
        |-- MySQLAdapter             mysql.connector pool (optional)
        |-- MSSQLAdapter             pymssql (optional)

    AdapterRegistry (registry.py)    Singleton: driver key -> adapter class

Guardrails:
    ❌ Importing optional drivers at module scope
    ✅ Import-guarded at ``connect()`` time with clear ``ConfigError``
    ❌ ``adapter = MySQLAdapter(...)`` inside engine code
    ✅ ``adapter = get_adapter(dialect.driver, dsn)``

Tags:
    mud, database, adapters, multi-backend, import-guarded, registry-pattern

Doc-Types:
    package-overview, module-index
"""

from mud.protocols import Connection, Cursor

from .base import DatabaseAdapter, parse_server_dsn
from .mssql import MSSQLAdapter
from .mysql import MySQLAdapter
from .registry import AdapterRegistry, adapter_registry, get_adapter
from .sqlite import SQLiteAdapter

__all__ = [
    # Protocols
    "Connection",
    "Cursor",
    # Base class
    "DatabaseAdapter",
    "parse_server_dsn",
    # Implementations
    "SQLiteAdapter",
    "MySQLAdapter",
    "MSSQLAdapter",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "get_adapter",
]
