"""mud -- a small ORM for dataclass entities on SQLite, MySQL and SQL Server.

Manifesto:
    Application records should be saved and loaded through one call surface
    whatever the backend. Per-backend SQL differences (identifier quoting,
    pagination, column types, DDL) live in a dialect strategy, and entity
    columns are declared once on the dataclass.

    - **Dataclass entities:** subclass ``Model``, mark columns with ``column()``
    - **Composable filters:** ``where.equal("Age", 30) & where.like(...)``
    - **Lazy schema:** tables and indexes are created on first use
    - **Soft delete:** DeleteDate instead of DELETE unless configured otherwise

Architecture::

    Layer 1 -- Ambient
        errors.py        MudError hierarchy
        logging.py       structlog configuration
        settings.py      DatabaseConfig (pydantic-settings)
        protocols.py     Connection/Cursor + entity capabilities

    Layer 2 -- Expressions
        values.py        Python value -> SQL literal, timestamp parsing
        where.py         Where predicate chains
        order.py         Order chains

    Layer 3 -- Backends
        dialect.py       SQLite / MySQL / SQL Server SQL text
        adapters/        sqlite3, mysql-connector-python, pymssql

    Layer 4 -- Mapping
        fields.py        FieldType, FieldSize, FieldDescriptor
        model.py         Model base dataclass, column()
        schema.py        Reflection + DDL
        criteria.py      Criteria + build_criteria()
        database.py      Database engine, Transaction

Examples:
    >>> from dataclasses import dataclass
    >>> from mud import Database, DatabaseConfig, Model, column, where
    >>> @dataclass
    ... class Person(Model):
    ...     Name: str = column(default="")
    ...     Age: int = column("key:true", default=0)
    >>> db = Database(DatabaseConfig(type="sqlite", database=":memory:"))
    >>> db.save(Person(Name="Ada", Age=36))
    >>> db.count(Person, where.greater("Age", 30))
    1

Tags:
    mud, orm, sql, sqlite, mysql, mssql, dataclasses

Doc-Types:
    - Package Overview
"""

__version__ = "0.1.0"

from mud import order, where
from mud.criteria import Criteria, build_criteria
from mud.database import Database, Transaction
from mud.dialect import Dialect, MSSQLDialect, MySQLDialect, SQLiteDialect, get_dialect, register_dialect
from mud.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    InvalidConfigError,
    InvalidCriteriaError,
    MissingConfigError,
    MudError,
    NoResultsError,
    QueryError,
    SchemaError,
)
from mud.fields import FieldDescriptor, FieldSize, FieldType
from mud.logging import configure_logging, get_logger
from mud.model import Model, column, table_name
from mud.order import Order
from mud.protocols import Restorable, SqlRenderable, StandingData, Updatable
from mud.schema import SchemaReflector, reflect_fields
from mud.settings import DatabaseConfig, get_settings, load_config
from mud.values import Float32
from mud.where import Where

__all__ = [
    "__version__",
    # Modules
    "where",
    "order",
    # Engine
    "Database",
    "Transaction",
    "Criteria",
    "build_criteria",
    # Entities
    "Model",
    "column",
    "table_name",
    "Float32",
    "FieldDescriptor",
    "FieldSize",
    "FieldType",
    "SchemaReflector",
    "reflect_fields",
    # Expressions
    "Where",
    "Order",
    # Dialects
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "MSSQLDialect",
    "get_dialect",
    "register_dialect",
    # Capabilities
    "Updatable",
    "Restorable",
    "StandingData",
    "SqlRenderable",
    # Configuration / logging
    "DatabaseConfig",
    "load_config",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Errors
    "ErrorCategory",
    "MudError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "DatabaseError",
    "SchemaError",
    "QueryError",
    "DatabaseConnectionError",
    "NoResultsError",
    "InvalidCriteriaError",
]
