"""SQL dialect abstraction for backend-agnostic persistence.

Provides a ``Dialect`` base class and concrete implementations for every
supported backend. The engine, the criteria assembler and the expression
builder use ``Dialect`` methods to produce SQL fragments (identifier quoting,
pagination, DDL templates, operator templates) without referencing any
specific driver.

Manifesto:
    Entity code must be portable across SQLite, MySQL/MariaDB and SQL
    Server. Without a dialect layer, quoting and pagination syntax leak into
    every query and break when switching backends.

    - **One interface:** Dialect for all SQL text generation
    - **Zero coupling:** Dialects never import database drivers
    - **Selection by name:** get_dialect(config) maps backend names and
      their synonyms to a fresh dialect
    - **Testable:** every fragment is a plain string

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    Criteria / Engine:
    ┌────────────────────────────────────────────────────────────────┐
    │  sql = "SELECT * FROM " + d.table_identity("Person")           │
    │  sql += d.build_query(where, order, limit, offset)             │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
    ┌──────────────────┐ ┌──────────────────┐ ┌──────────────────────┐
    │ SQLite           │ │ MySQL / MariaDB  │ │ SQL Server           │
    │ "name"           │ │ `name`           │ │ [name]               │
    │ LIMIT n OFFSET o │ │ LIMIT n OFFSET o │ │ ORDER BY [ID] OFFSET │
    │                  │ │                  │ │ o ROWS FETCH NEXT n  │
    └──────────────────┘ └──────────────────┘ └──────────────────────┘

Features:
    - **SQLiteDialect:** double-quote identifiers, ``sqlite_master`` lookup
    - **MySQLDialect:** backtick identifiers, ``SHOW TABLES`` lookup
    - **MSSQLDialect:** bracket identifiers, OFFSET/FETCH pagination with a
      mandatory ORDER BY, guarded CREATE TABLE
    - **get_dialect():** Resolve a dialect from a config or backend name

Examples:
    >>> from mud.dialect import get_dialect
    >>> d = get_dialect("mariadb")
    >>> d.identity_string("Age")
    '`Age`'
    >>> d.operators()[0].format(d.identity_string("Age"), "25")
    '`Age` = 25'

Guardrails:
    ❌ DON'T: Write backend-specific SQL in the engine
    ✅ DO: Use Dialect methods for quoting, pagination and DDL

    ❌ DON'T: Share one MySQL/MSSQL dialect between databases
    ✅ DO: Call get_dialect() per Database, it caches the database name

Tags:
    dialect, sql, abstraction, portability, database, mud, multi-backend

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from mud.errors import ConfigError, InvalidConfigError, MissingConfigError
from mud.fields import (
    COLUMN_TYPES,
    DEFAULT_STRING_SIZE,
    UNSIZED_TYPES,
    FieldDescriptor,
    FieldType,
)

if TYPE_CHECKING:
    from mud.criteria import Criteria
    from mud.settings import DatabaseConfig


def _quote_text(text: str) -> str:
    return text.replace("'", "''")


class Dialect:
    """SQL dialect contract and shared behaviour.

    Subclasses set the quote pair, the driver key and the backend-specific
    fragments. Every method returns a **SQL fragment** (string).
    """

    name: str = ""
    driver: str = ""
    quote_open: str = '"'
    quote_close: str = '"'
    supports_unsigned: bool = True
    column_overrides: dict[FieldType, str] = {}

    def __init__(self) -> None:
        self.database_name = ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # -- Connection --------------------------------------------------------

    def connection_string(self, config: DatabaseConfig | None) -> str:
        """Validate ``config`` and format the driver connection string.

        Raises:
            ConfigError: If no configuration is given.
            MissingConfigError: If a required field is blank.
        """
        if config is None:
            raise ConfigError("No configuration provided")
        for key in ("user", "password", "host", "database"):
            if not str(getattr(config, key, "") or "").strip():
                raise MissingConfigError(key)
        self.database_name = config.database
        user = quote(config.user, safe="")
        password = quote(config.password, safe="")
        return f"{self.driver}://{user}:{password}@{config.host}/{config.database}"

    # -- Identifiers -------------------------------------------------------

    def identity_string(self, name: str) -> str:
        return f"{self.quote_open}{name}{self.quote_close}"

    def table_identity(self, name: str) -> str:
        """Quote a possibly namespaced table name part by part."""
        return ".".join(self.identity_string(part) for part in name.split("."))

    # -- Pagination --------------------------------------------------------

    def limit_string(self, criteria: Criteria | None) -> str:
        if criteria is None or criteria.limit < 1:
            return ""
        return f" LIMIT {criteria.limit}"

    def offset_string(self, criteria: Criteria | None) -> str:
        if criteria is None or criteria.offset < 1:
            return ""
        return f" OFFSET {criteria.offset}"

    def build_query(self, where: str, order: str, limit: str, offset: str) -> str:
        """Join the four rendered fragments, each with one leading space."""
        return self._join_fragments(where, order, limit, offset)

    @staticmethod
    def _join_fragments(*fragments: str) -> str:
        return "".join(f" {text.strip()}" for text in fragments if text and text.strip())

    # -- Introspection / DDL -----------------------------------------------

    def table_exists_query(self, name: str) -> str:
        raise NotImplementedError

    def table_create(self) -> str:
        """Template with ``{name}``, ``{table}`` and ``{columns}`` slots."""
        return "CREATE TABLE IF NOT EXISTS {table} ({columns});"

    def index_create(self) -> str:
        """Template with ``{prefix}``, ``{field}`` and ``{table}`` slots."""
        q0, q1 = self.quote_open, self.quote_close
        return f"CREATE INDEX {q0}{{prefix}}_{{field}}_Idx{q1} ON {{table}}({q0}{{field}}{q1});"

    def column_type(self, field_type: FieldType) -> str:
        return self.column_overrides.get(field_type, COLUMN_TYPES[field_type])

    def column_definition(self, descriptor: FieldDescriptor) -> str:
        """One column of a CREATE TABLE statement."""
        text = f"{self.identity_string(descriptor.name)} {self.column_type(descriptor.type)}"
        if descriptor.type not in UNSIZED_TYPES and not descriptor.identity:
            if descriptor.size.size > 0:
                text += f"({descriptor.size})"
            elif descriptor.type is FieldType.STRING:
                text += f"({DEFAULT_STRING_SIZE})"
        if descriptor.unsigned and self.supports_unsigned:
            text += " UNSIGNED"
        if not descriptor.nullable:
            text += " NOT NULL"
        return text

    # -- Expressions -------------------------------------------------------

    def operators(self) -> list[str]:
        """The 14 comparison templates: 7 positive forms then 7 negated forms."""
        f = f"{self.quote_open}{{}}{self.quote_close}"
        return [
            f"{f} = {{}}",
            f"{f} > {{}}",
            f"{f} < {{}}",
            f"{f} LIKE {{}}",
            f"{f} IN ({{}})",
            f"{f} BETWEEN {{}} AND {{}}",
            f"{f} IS NULL",
            f"{f} <> {{}}",
            f"{f} <= {{}}",
            f"{f} >= {{}}",
            f"{f} NOT LIKE {{}}",
            f"{f} NOT IN ({{}})",
            f"{f} NOT BETWEEN {{}} AND {{}}",
            f"{f} IS NOT NULL",
        ]


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect(Dialect):
    """SQLite dialect: ``"name"`` identifiers, the database is a file path."""

    name = "sqlite"
    driver = "sqlite"

    def connection_string(self, config: DatabaseConfig | None) -> str:
        if config is None:
            raise ConfigError("No configuration provided")
        if not (config.database or "").strip():
            raise MissingConfigError("database")
        self.database_name = config.database
        return config.database

    def table_exists_query(self, name: str) -> str:
        return f"SELECT \"name\" FROM sqlite_master WHERE type='table' AND name='{_quote_text(name)}'"


class MySQLDialect(Dialect):
    """MySQL / MariaDB dialect: backtick identifiers.

    ``table_exists_query`` needs the database name captured by
    ``connection_string``.
    """

    name = "mysql"
    driver = "mysql"
    quote_open = "`"
    quote_close = "`"

    def table_exists_query(self, name: str) -> str:
        if not self.database_name:
            return f"SHOW TABLES LIKE '{_quote_text(name)}'"
        return f"SHOW TABLES WHERE Tables_in_{self.database_name} = '{_quote_text(name)}'"


class MSSQLDialect(Dialect):
    """SQL Server dialect: bracket identifiers, OFFSET/FETCH pagination.

    SQL Server only paginates an ordered result, so ``ORDER BY [ID]`` is
    added when the criteria carries no order of its own. With a limit, the
    offset is part of ``limit_string`` and ``offset_string`` is empty.
    """

    name = "mssql"
    driver = "mssql"
    quote_open = "["
    quote_close = "]"
    supports_unsigned = False
    column_overrides = {FieldType.DOUBLE: "FLOAT"}

    def _default_order(self, criteria: Criteria) -> str:
        if criteria.has_order():
            return ""
        return f" ORDER BY {self.identity_string('ID')}"

    def limit_string(self, criteria: Criteria | None) -> str:
        if criteria is None or criteria.limit < 1:
            return ""
        offset = max(criteria.offset, 0)
        return (
            f"{self._default_order(criteria)} OFFSET {offset} ROWS "
            f"FETCH NEXT {criteria.limit} ROWS ONLY"
        )

    def offset_string(self, criteria: Criteria | None) -> str:
        if criteria is None or criteria.offset < 1 or criteria.limit >= 1:
            return ""
        return f"{self._default_order(criteria)} OFFSET {criteria.offset} ROWS"

    def build_query(self, where: str, order: str, limit: str, offset: str) -> str:
        return self._join_fragments(where, order, offset, limit)

    def table_exists_query(self, name: str) -> str:
        table = name.rsplit(".", 1)[-1]
        return f"SELECT [Name] FROM [sys].[tables] WHERE [Name] = '{_quote_text(table)}'"

    def table_create(self) -> str:
        return "IF OBJECT_ID(N'{name}', N'U') IS NULL BEGIN CREATE TABLE {table} ({columns}); END;"


# =========================================================================
# Registry / Factory
# =========================================================================

DialectFactory = Callable[[], Dialect]

# Factories, not instances: MySQL and SQL Server cache the database name.
_DIALECTS: dict[str, DialectFactory] = {
    "sqlite": SQLiteDialect,
    "sqlite3": SQLiteDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "sqlserver": MSSQLDialect,
    "mssql": MSSQLDialect,
}


def get_dialect(config_or_name: DatabaseConfig | str | Any) -> Dialect:
    """Get a fresh dialect for a configuration or backend name.

    Args:
        config_or_name: A ``DatabaseConfig`` (its ``type`` is used) or a name
            such as ``'sqlite'``, ``'mariadb'`` or ``'mssql'``.

    Raises:
        ConfigError: If ``config_or_name`` is None.
        InvalidConfigError: If the backend name is not recognised.

    Example:
        >>> get_dialect("sqlserver").identity_string("ID")
        '[ID]'
    """
    if config_or_name is None:
        raise ConfigError("No configuration provided")
    db_type = config_or_name if isinstance(config_or_name, str) else getattr(config_or_name, "type", None)
    key = str(db_type or "").strip().lower()
    factory = _DIALECTS.get(key)
    if factory is None:
        raise InvalidConfigError(
            "type",
            db_type,
            f"Unknown database type {db_type!r}. Supported: {sorted(_DIALECTS)}",
        )
    return factory()


def register_dialect(name: str, factory: DialectFactory) -> None:
    """Register a custom dialect or a synonym for an existing one.

    Args:
        name: Lookup key (lower-cased automatically).
        factory: Zero-argument callable returning a new :class:`Dialect`.
    """
    _DIALECTS[name.lower()] = factory


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "MSSQLDialect",
    "get_dialect",
    "register_dialect",
]
