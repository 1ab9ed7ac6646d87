"""
Data access engine: CRUD over dataclass entities.

``Database`` ties the pieces together: it resolves the dialect from the
configuration, gets a driver adapter from the registry, lazily creates each
entity's table the first time it is touched, renders criteria to SQL and
maps result rows back onto entity instances.

Manifesto:
    Application code should persist records, not write SQL:

    - **One call surface:** fetch, range, first, count, save, remove,
      remove_many and refresh behave the same on every backend
    - **Lazy schema:** a table and its indexes are created on first use,
      seeded with the entity's standing data, then never checked again
    - **Soft delete by default:** removed rows get a DeleteDate and drop out
      of ordinary queries unless the configuration allows hard deletes
    - **Fresh round trips:** no caching of rows; every call hits the database

Architecture:
    ::

        db.fetch(Person, where.equal("Age", 30))
            │
            ├─ build_criteria(*args)                     criteria.py
            ├─ _ensure_table(Person)                     unknown → ensured → known
            │     ├─ dialect.table_exists_query()
            │     ├─ SchemaReflector.create_statements() (only if absent)
            │     └─ save(each Person.standing_data())
            ├─ "SELECT * FROM <table>" + criteria.to_sql(dialect)
            ├─ adapter.transaction()                     commit / rollback
            └─ _populate(row) → Person(...) → restore() hook

    Table state per entity type::

        unknown ──first fetch/range/first/count/save──▶ ensured ──▶ known
                                                      (DDL + seed if absent)

Examples:
    >>> from mud import Database, DatabaseConfig, where
    >>> db = Database(DatabaseConfig(type="sqlite", database="app.db"))
    >>> person = Person(Name="Ada", Age=36)
    >>> db.save(person)
    >>> db.first(Person, where.equal("Name", "Ada")).Age
    36
    >>> with db.begin_transaction() as tx:
    ...     db.save(Person(Name="Grace", Age=45), tx=tx)
    ...     db.remove_many(Person, where.greater("Age", 100), tx=tx)

Guardrails:
    ❌ DON'T: Use raw_execute() for ordinary reads and writes
    ✅ DO: Use fetch/save/remove, raw SQL bypasses soft delete and schema

    ❌ DON'T: Expect a failed statement to roll back an explicit transaction
    ✅ DO: Roll back yourself, or use ``with db.begin_transaction()``

Tags:
    orm, crud, engine, transactions, soft-delete, mud

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import dataclasses
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

from mud.adapters import DatabaseAdapter, get_adapter
from mud.criteria import Criteria, build_criteria
from mud.dialect import Dialect, get_dialect
from mud.errors import InvalidCriteriaError, NoResultsError, QueryError, SchemaError
from mud.fields import FieldDescriptor, FieldType
from mud.logging import LogContext, get_logger
from mud.model import table_name
from mud.protocols import Connection, Cursor, Restorable, StandingData, Updatable
from mud.schema import SchemaReflector
from mud.settings import DatabaseConfig
from mud.values import Float32, make_value, sql_to_time, to_utc, utc_now
from mud.where import equal

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_SKIP = object()


# =============================================================================
# Row helpers
# =============================================================================


def _now() -> datetime:
    """Current UTC time at the millisecond precision stored in the database."""
    now = utc_now()
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _entity_class(entity: Any) -> type:
    return entity if isinstance(entity, type) else type(entity)


def _column_names(cursor: Cursor) -> list[str]:
    return [str(column[0]) for column in cursor.description or ()]


def _all_rows(cursor: Cursor) -> tuple[list[str], list[Any]]:
    return _column_names(cursor), list(cursor.fetchall())


def _scalar(cursor: Cursor) -> Any:
    row = cursor.fetchone()
    return row[0] if row else None


def _rowcount(cursor: Cursor) -> int:
    return cursor.rowcount


def _blank(cls: type[T]) -> T:
    """An instance to populate; required dataclass fields start as None."""
    try:
        return cls()
    except TypeError:
        entity = cls.__new__(cls)
        for f in dataclasses.fields(cls):
            if f.default is not dataclasses.MISSING:
                value = f.default
            elif f.default_factory is not dataclasses.MISSING:
                value = f.default_factory()
            else:
                value = None
            object.__setattr__(entity, f.name, value)
        return entity


def _convert(descriptor: FieldDescriptor, value: Any) -> Any:
    """Driver value -> attribute value, or ``_SKIP`` when it cannot convert."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return _SKIP

    kind = descriptor.type
    try:
        if kind is FieldType.DATETIME:
            result = to_utc(value) if isinstance(value, datetime) else sql_to_time(str(value))
            if result is None:
                return _SKIP
        elif kind in (FieldType.INT, FieldType.LONG):
            result = int(value)
        elif kind is FieldType.BOOL:
            result = int(value) == 1
        elif kind is FieldType.DECIMAL:
            result = Decimal(str(value))
        elif kind is FieldType.FLOAT:
            result = Float32(value)
        elif kind is FieldType.DOUBLE:
            result = float(value)
        elif kind is FieldType.CHAR:
            result = str(value)[:1]
        else:
            result = str(value)
    except (TypeError, ValueError, ArithmeticError):
        return _SKIP

    target = descriptor.python_type
    if target is not None and not isinstance(result, target):
        try:
            return target(result)
        except (TypeError, ValueError, ArithmeticError):
            return result
    return result


# =============================================================================
# Transactions
# =============================================================================


class Transaction:
    """
    An explicit transaction holding one connection until commit or rollback.

    Usable as a context manager: commits when the block succeeds, rolls back
    when it raises. The engine never commits or rolls back an explicit
    transaction on its own.
    """

    def __init__(self, database: Database, connection: Connection):
        self._database = database
        self.connection = connection
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _close(self) -> None:
        self._active = False

    def commit(self) -> None:
        self._database.commit_transaction(self)

    def rollback(self) -> None:
        self._database.rollback_transaction(self)

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._active:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


# =============================================================================
# Engine
# =============================================================================


class Database:
    """
    Entry point for persistence.

    Owns the dialect, the adapter, the schema reflector and the set of
    tables known to exist. The two caches are guarded by one re-entrant
    lock, so concurrent first use of an entity type creates its table once.

    Args:
        config: Backend selection and connection parameters.
        adapter: Optional pre-built adapter (tests, custom drivers).

    Raises:
        ConfigError: If ``config`` is None, names an unknown backend, or
            lacks a required connection field.
    """

    def __init__(self, config: DatabaseConfig, *, adapter: DatabaseAdapter | None = None):
        self.dialect: Dialect = get_dialect(config)
        dsn = self.dialect.connection_string(config)
        self._config = config
        self._adapter = adapter or get_adapter(
            self.dialect.driver, dsn, autocommit=config.disabled_transactions
        )
        self._lock = threading.RLock()
        self._known_tables: set[str] = set()
        self._schema = SchemaReflector()
        logger.debug("database_created", dialect=self.dialect.name, adapter=self._adapter.name)

    def __repr__(self) -> str:
        return f"Database(dialect={self.dialect.name!r}, database={self._config.database!r})"

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    @property
    def schema(self) -> SchemaReflector:
        return self._schema

    def register(self, entity_type: type, descriptors: list[FieldDescriptor]) -> None:
        """Declare an entity's columns explicitly instead of reflecting them."""
        self._schema.register(entity_type, descriptors)

    def is_known(self, entity_type: Any) -> bool:
        with self._lock:
            return table_name(entity_type) in self._known_tables

    def close(self) -> None:
        self._adapter.disconnect()
        logger.debug("database_closed", dialect=self.dialect.name)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- Statement execution -------------------------------------------------

    @contextmanager
    def _connection(self, tx: Transaction | None) -> Iterator[Connection]:
        if tx is None:
            with self._adapter.transaction() as conn:
                yield conn
            return
        if not tx.active:
            raise QueryError("Transaction is no longer active").with_context(dialect=self.dialect.name)
        yield tx.connection

    def _query_error(self, exc: Exception, sql: str, table: str | None) -> QueryError:
        logger.warning("statement_failed", table=table, dialect=self.dialect.name, error=str(exc))
        error = QueryError(f"Statement failed: {exc}", cause=exc)
        error.with_context(table=table, dialect=self.dialect.name, sql=sql)
        return error

    def _run(
        self,
        sql: str,
        tx: Transaction | None,
        handler: Callable[[Cursor], R],
        *,
        table: str | None = None,
    ) -> R:
        """Execute one statement and hand the cursor to ``handler``.

        ``dialect`` and ``table`` are bound to the logging context for the
        duration, so adapter events logged meanwhile carry them too.
        """
        context = {"dialect": self.dialect.name}
        if table:
            context["table"] = table
        with LogContext(**context):
            logger.debug("sql_execute", sql=sql)
            try:
                with self._connection(tx) as conn:
                    cursor = self._adapter.cursor(conn)
                    try:
                        cursor.execute(sql)
                        return handler(cursor)
                    finally:
                        cursor.close()
            except self._adapter.errors as exc:
                raise self._query_error(exc, sql, table) from exc

    # -- Schema state ----------------------------------------------------------

    def _table_in_database(self, name: str, tx: Transaction | None) -> bool:
        rows = self._run(
            self.dialect.table_exists_query(name), tx, lambda c: c.fetchall(), table=name
        )
        return bool(rows)

    def _ensure_table(self, cls: type, tx: Transaction | None) -> None:
        name = table_name(cls)
        with self._lock:
            if name in self._known_tables:
                return
            self._schema.describe(cls)
            if self._table_in_database(name, tx):
                self._known_tables.add(name)
                return

            for statement in self._schema.create_statements(cls, self.dialect):
                try:
                    self._run(statement, tx, _rowcount, table=name)
                except QueryError as exc:
                    cause = exc.cause or exc
                    error = SchemaError(f"Cannot create table {name}: {cause}", cause=cause)
                    error.with_context(table=name, dialect=self.dialect.name, sql=statement)
                    raise error from exc
            self._known_tables.add(name)
            logger.info("table_created", table=name, dialect=self.dialect.name)

            if isinstance(cls, StandingData):
                rows = cls.standing_data() or []
                for row in rows:
                    self.save(row, tx=tx)
                if rows:
                    logger.info("standing_data_seeded", table=name, rows=len(rows))

    def _table_exists(self, cls: type, tx: Transaction | None) -> bool:
        """Known or present in the database; never issues DDL."""
        name = table_name(cls)
        with self._lock:
            if name in self._known_tables:
                return True
            if not self._table_in_database(name, tx):
                return False
            self._schema.describe(cls)
            self._known_tables.add(name)
            return True

    # -- SQL building ------------------------------------------------------------

    def _table(self, cls: type) -> str:
        return self.dialect.table_identity(table_name(cls))

    def _where_only(self, criteria: Criteria) -> str:
        return self.dialect.build_query(criteria.where_string(self.dialect), "", "", "")

    def _literal(self, descriptor: FieldDescriptor, value: Any, table: str) -> str | None:
        if value is None:
            return None
        literal = make_value(value)
        if literal is None:
            logger.debug(
                "value_dropped",
                table=table,
                field=descriptor.name,
                value_type=type(value).__name__,
            )
        return literal

    def _populate(self, cls: type[T], columns: list[str], row: Any) -> T:
        entity = _blank(cls)
        fields = self._schema.field_map(cls)
        for column, value in zip(columns, row):
            descriptor = fields.get(column.lower())
            if descriptor is None:
                continue
            if value is None:
                if descriptor.nullable:
                    descriptor.set_value(entity, None)
                continue
            converted = _convert(descriptor, value)
            if converted is _SKIP:
                logger.debug(
                    "value_dropped",
                    table=table_name(cls),
                    field=descriptor.name,
                    value_type=type(value).__name__,
                )
                continue
            descriptor.set_value(entity, converted)

        if isinstance(entity, Restorable):
            entity.restore(self.dialect)
        return entity

    # -- Reads -------------------------------------------------------------------

    def _select_sql(self, cls: type, criteria: Criteria) -> str:
        return f"SELECT * FROM {self._table(cls)}{criteria.to_sql(self.dialect)}"

    def _fetch(self, cls: type[T], criteria: Criteria, tx: Transaction | None) -> list[T]:
        self._ensure_table(cls, tx)
        columns, rows = self._run(
            self._select_sql(cls, criteria), tx, _all_rows, table=table_name(cls)
        )
        return [self._populate(cls, columns, row) for row in rows]

    def fetch(self, entity_type: type[T] | T, *criteria: Any, tx: Transaction | None = None) -> list[T]:
        """Every entity matching the criteria.

        Raises:
            InvalidCriteriaError: If the criteria argument is unrecognised.
            SchemaError: If the table cannot be created.
            QueryError: If the driver rejects the query.
        """
        cls = _entity_class(entity_type)
        return self._fetch(cls, build_criteria(*criteria), tx)

    def range(self, entity_type: type[T] | T, *criteria: Any) -> Iterator[T]:
        """Lazily yield matching entities one cursor row at a time.

        The criteria is validated and the table ensured before the iterator
        is returned. The iterator runs in its own transaction, committed when
        it is exhausted or closed.
        """
        cls = _entity_class(entity_type)
        parsed = build_criteria(*criteria)
        self._ensure_table(cls, None)
        return self._stream(cls, self._select_sql(cls, parsed))

    def _stream(self, cls: type[T], sql: str) -> Iterator[T]:
        name = table_name(cls)
        logger.debug("sql_execute", sql=sql, table=name)
        try:
            with self._connection(None) as conn:
                cursor = self._adapter.cursor(conn, stream=True)
                try:
                    cursor.execute(sql)
                    columns = _column_names(cursor)
                    while (row := cursor.fetchone()) is not None:
                        yield self._populate(cls, columns, row)
                finally:
                    cursor.close()
        except self._adapter.errors as exc:
            raise self._query_error(exc, sql, name) from exc

    def first(self, entity_type: type[T] | T, *criteria: Any, tx: Transaction | None = None) -> T:
        """The first matching entity.

        Raises:
            NoResultsError: If nothing matches.
        """
        cls = _entity_class(entity_type)
        rows = self._fetch(cls, build_criteria(*criteria).page(1, 0), tx)
        if not rows:
            error = NoResultsError(f"No {table_name(cls)} matched the criteria")
            error.with_context(table=table_name(cls), dialect=self.dialect.name)
            raise error
        return rows[0]

    def count(self, entity_type: Any, *criteria: Any, tx: Transaction | None = None) -> int:
        """Number of matching rows; -1 when the criteria is unrecognised.

        Only the WHERE part of the criteria applies.
        """
        cls = _entity_class(entity_type)
        try:
            parsed = build_criteria(*criteria)
        except InvalidCriteriaError as exc:
            logger.debug("criteria_rejected", table=table_name(cls), error=exc.message)
            return -1
        self._ensure_table(cls, tx)
        return self._count(cls, parsed, tx)

    def _count(self, cls: type, criteria: Criteria, tx: Transaction | None) -> int:
        sql = f"SELECT COUNT(*) FROM {self._table(cls)}{self._where_only(criteria)}"
        value = self._run(sql, tx, _scalar, table=table_name(cls))
        return int(value or 0)

    def refresh(self, entity: Any, tx: Transaction | None = None) -> None:
        """Reload ``entity`` from its row, overwriting attributes in place.

        Raises:
            QueryError: If the entity has never been saved.
            NoResultsError: If its row no longer exists.
        """
        if entity.ID is None:
            error = QueryError("Cannot refresh an entity that has never been saved")
            error.with_context(table=table_name(entity))
            raise error
        fresh = self.first(
            type(entity), Criteria(where=equal("ID", entity.ID), include_deleted=True), tx=tx
        )
        for f in dataclasses.fields(entity):
            setattr(entity, f.name, getattr(fresh, f.name))

    # -- Writes ------------------------------------------------------------------

    def save(self, entity: Any, tx: Transaction | None = None) -> None:
        """Insert a new entity or update an existing one.

        A new entity receives its ID, CreateDate and LastUpdate once the
        INSERT succeeds. An existing entity gets LastUpdate refreshed before
        the UPDATE is built. Entities implementing ``Updatable`` supply their
        own statement instead.
        """
        cls = type(entity)
        name = table_name(cls)
        self._ensure_table(cls, tx)

        if isinstance(entity, Updatable):
            self._run(entity.update(self.dialect), tx, _rowcount, table=name)
            return

        fields = self._schema.describe(cls)
        if entity.ID is None:
            self._insert(entity, name, fields, tx)
        else:
            self._update(entity, name, fields, tx)

    def _insert(
        self, entity: Any, name: str, fields: tuple[FieldDescriptor, ...], tx: Transaction | None
    ) -> None:
        now = _now()
        assigned = {"ID": str(uuid.uuid4()), "CreateDate": now, "LastUpdate": now}
        columns: list[str] = []
        values: list[str] = []
        for f in fields:
            value = assigned[f.name] if f.name in assigned else f.get_value(entity)
            literal = self._literal(f, value, name)
            if literal is None:
                continue
            columns.append(self.dialect.identity_string(f.name))
            values.append(literal)

        sql = (
            f"INSERT INTO {self.dialect.table_identity(name)} "
            f"({', '.join(columns)}) VALUES ({', '.join(values)})"
        )
        self._run(sql, tx, _rowcount, table=name)
        for key, value in assigned.items():
            setattr(entity, key, value)

    def _update(
        self, entity: Any, name: str, fields: tuple[FieldDescriptor, ...], tx: Transaction | None
    ) -> None:
        entity.LastUpdate = _now()
        assignments: list[str] = []
        for f in fields:
            if f.name in ("ID", "CreateDate"):
                continue
            column = self.dialect.identity_string(f.name)
            value = f.get_value(entity)
            if value is None:
                if f.nullable:
                    assignments.append(f"{column} = null")
                continue
            literal = self._literal(f, value, name)
            if literal is not None:
                assignments.append(f"{column} = {literal}")

        sql = (
            f"UPDATE {self.dialect.table_identity(name)} SET {', '.join(assignments)} "
            f"WHERE {self.dialect.identity_string('ID')} = {make_value(entity.ID)}"
        )
        self._run(sql, tx, _rowcount, table=name)

    def remove(self, entity: Any, tx: Transaction | None = None) -> None:
        """Delete one entity: hard when the config is deletable, else soft.

        Unsaved entities are ignored.
        """
        if entity.ID is None:
            return
        name = table_name(entity)
        scope = (
            f" WHERE {self.dialect.identity_string('ID')} = {make_value(entity.ID)}"
            f" AND {self.dialect.identity_string('DeleteDate')} IS NULL"
        )
        table = self.dialect.table_identity(name)
        if self._config.deletable:
            self._run(f"DELETE FROM {table}{scope}", tx, _rowcount, table=name)
            return

        now = _now()
        sql = f"UPDATE {table} SET {self.dialect.identity_string('DeleteDate')} = {make_value(now)}{scope}"
        self._run(sql, tx, _rowcount, table=name)
        entity.DeleteDate = now

    def remove_many(self, entity_type: Any, *criteria: Any, tx: Transaction | None = None) -> int:
        """Delete every live row matching the criteria; returns how many.

        Returns 0 without touching the database further when the table does
        not exist or nothing matches.
        """
        cls = _entity_class(entity_type)
        parsed = replace(build_criteria(*criteria), include_deleted=False)
        if not self._table_exists(cls, tx):
            return 0
        matched = self._count(cls, parsed, tx)
        if matched <= 0:
            return 0

        name = table_name(cls)
        table = self._table(cls)
        where = self._where_only(parsed)
        if self._config.deletable:
            sql = f"DELETE FROM {table}{where}"
        else:
            deleted = self.dialect.identity_string("DeleteDate")
            sql = f"UPDATE {table} SET {deleted} = {make_value(_now())}{where}"
        self._run(sql, tx, _rowcount, table=name)
        logger.info("entities_removed", table=name, count=matched, hard=self._config.deletable)
        return matched

    # -- Raw passthroughs --------------------------------------------------------

    def raw_execute(self, sql: str, tx: Transaction | None = None) -> int:
        """Run a statement verbatim; returns the driver row count."""
        return self._run(sql, tx, _rowcount)

    def raw_scalar(self, sql: str, tx: Transaction | None = None) -> Any:
        """First column of the first row, or None."""
        return self._run(sql, tx, _scalar)

    def raw_select(self, sql: str, tx: Transaction | None = None) -> list[dict[str, Any]]:
        """Rows as dicts keyed by column name."""
        columns, rows = self._run(sql, tx, _all_rows)
        return [dict(zip(columns, row)) for row in rows]

    # -- Explicit transactions ---------------------------------------------------

    def begin_transaction(self) -> Transaction:
        conn = self._adapter.get_connection()
        logger.debug("transaction_started", dialect=self.dialect.name)
        return Transaction(self, conn)

    def commit_transaction(self, tx: Transaction) -> None:
        self._finish(tx, commit=True)

    def rollback_transaction(self, tx: Transaction) -> None:
        self._finish(tx, commit=False)

    def _finish(self, tx: Transaction, *, commit: bool) -> None:
        if not tx.active:
            raise QueryError("Transaction is no longer active").with_context(dialect=self.dialect.name)
        tx._close()
        action = "commit" if commit else "rollback"
        try:
            if commit:
                tx.connection.commit()
            else:
                tx.connection.rollback()
        except self._adapter.errors as exc:
            error = QueryError(f"Transaction {action} failed: {exc}", cause=exc)
            error.with_context(dialect=self.dialect.name)
            raise error from exc
        finally:
            self._adapter.release_connection(tx.connection)
        logger.debug("transaction_finished", action=action, dialect=self.dialect.name)


__all__ = ["Database", "Transaction"]
