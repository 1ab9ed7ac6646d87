"""
Tests for mud.database.

Most tests run the engine against a real SQLite file. The MySQL and SQL
Server tests use a recording adapter that captures the generated SQL and
counts commits and rollbacks.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional
from unittest.mock import patch

import pytest
import structlog

from mud import Database, DatabaseConfig
from mud.adapters import DatabaseAdapter, SQLiteAdapter
from mud.criteria import Criteria
from mud.errors import (
    ConfigError,
    InvalidConfigError,
    InvalidCriteriaError,
    MissingConfigError,
    NoResultsError,
    QueryError,
    SchemaError,
)
from mud.fields import FieldDescriptor, FieldSize, FieldType
from mud.model import Model, column
from mud.order import asc, desc
from mud.where import equal, greater, in_, starts_with


# =============================================================================
# Entities
# =============================================================================


@dataclass
class Person(Model):
    Name: str = column(default="")
    Age: int = column("key:true", default=0)
    Email: Optional[str] = column(default=None)
    Score: float = column(default=0.0)
    Active: bool = column(default=True)
    Balance: Decimal = column("size:10,2", default=Decimal("0.00"))
    Born: Optional[datetime] = column(default=None)


@dataclass
class Address:
    Street: str = column(default="")
    City: str = column("size:64", default="")


@dataclass
class Customer(Model):
    Name: str = column(default="")
    Home: Address = field(default_factory=Address)


@dataclass
class Client(Model):
    Name: str = column(default="")
    Home: Optional[Address] = None


@dataclass
class Country(Model):
    Code: str = column("size:2", default="")

    @classmethod
    def standing_data(cls):
        return [cls(Code="GB"), cls(Code="FR")]


@dataclass
class AuditEntry(Model):
    Message: str = column(default="")

    def update(self, dialect) -> str:
        q = dialect.identity_string
        return (
            f"INSERT INTO {dialect.table_identity('AuditEntry')} "
            f"({q('ID')}, {q('CreateDate')}, {q('LastUpdate')}, {q('Message')}) "
            "VALUES ('fixed-id', '2024-01-01 00:00:00.000', '2024-01-01 00:00:00.000', 'custom')"
        )


@dataclass
class Tag(Model):
    Label: str = column(default="")
    restored_with: str = ""

    def restore(self, dialect) -> None:
        self.Label = self.Label.upper()
        self.restored_with = dialect.name


@dataclass
class Gadget(Model):
    Label: str = ""


class NotAnEntity:
    pass


def seed_people(db: Database) -> None:
    for name, age in (("Ada", 36), ("Grace", 45), ("Linus", 28)):
        db.save(Person(Name=name, Age=age))


# =============================================================================
# Recording adapter
# =============================================================================


class DriverError(Exception):
    pass


class RecordingCursor:
    def __init__(self, connection: RecordingConnection):
        self._connection = connection
        self.description = None
        self.rowcount = -1
        self._rows: list = []

    def execute(self, sql, params=None):
        self._connection.statements.append(sql)
        self._connection.contexts.append(structlog.contextvars.get_contextvars())
        if self._connection.fail_on and self._connection.fail_on in sql:
            raise DriverError(f"rejected: {sql}")
        self._rows = list(self._connection.results.pop(0)) if self._connection.results else []
        self.description = [("ID",)]

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return self._rows

    def close(self):
        pass


class RecordingConnection:
    def __init__(self, results: list, fail_on: str = ""):
        self.results = results
        self.fail_on = fail_on
        self.statements: list[str] = []
        self.contexts: list[dict] = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return RecordingCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        pass


class RecordingAdapter(DatabaseAdapter):
    name = "recording"

    def __init__(self, results: list | None = None, *, fail_on: str = "", autocommit: bool = False):
        super().__init__(autocommit=autocommit)
        self.connection = RecordingConnection(results or [], fail_on)
        self._errors = (DriverError,)
        self.cursor_modes: list[bool] = []

    @classmethod
    def from_connection_string(cls, dsn, *, autocommit=False):
        return cls(autocommit=autocommit)

    def connect(self):
        self._connected = True

    def disconnect(self):
        self._connected = False

    def get_connection(self):
        return self.connection

    def cursor(self, conn, *, stream=False):
        self.cursor_modes.append(stream)
        return conn.cursor()


def mysql_config(**overrides) -> DatabaseConfig:
    values = {"type": "mysql", "host": "db", "database": "shop", "user": "app", "password": "secret"}
    values.update(overrides)
    return DatabaseConfig(**values)


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    def test_no_config(self):
        with pytest.raises(ConfigError):
            Database(None)

    def test_unknown_backend(self):
        with pytest.raises(InvalidConfigError):
            Database(DatabaseConfig(type="oracle"))

    def test_missing_database_path(self):
        with pytest.raises(MissingConfigError):
            Database(DatabaseConfig(type="sqlite", database=""))

    def test_adapter_from_registry(self, db):
        assert isinstance(db.adapter, SQLiteAdapter)
        assert db.dialect.name == "sqlite"

    def test_injected_adapter(self):
        adapter = SQLiteAdapter()
        with Database(DatabaseConfig(type="sqlite", database=":memory:"), adapter=adapter) as database:
            assert database.adapter is adapter
            database.save(Person(Name="Ada"))
            assert database.count(Person) == 1
        assert not adapter.is_connected

    def test_disabled_transactions(self, tmp_path):
        config = DatabaseConfig(type="sqlite", database=str(tmp_path / "auto.db"), disabled_transactions=True)
        with Database(config) as database:
            assert database.adapter.autocommit is True
            database.save(Person(Name="Ada"))
            assert database.count(Person) == 1
            assert database.adapter.get_connection().isolation_level is None


# =============================================================================
# Save / load round trips
# =============================================================================


class TestSave:
    def test_insert_assigns_bookkeeping(self, db):
        person = Person(Name="Ada", Age=36)
        db.save(person)
        assert uuid.UUID(person.ID)
        assert person.CreateDate == person.LastUpdate
        assert person.CreateDate.microsecond % 1000 == 0
        assert person.CreateDate.tzinfo is not None

    def test_round_trip(self, db):
        born = datetime(1815, 12, 10, 8, 30, tzinfo=UTC)
        person = Person(
            Name="Ada",
            Age=36,
            Email="ada@example.com",
            Score=12.5,
            Active=False,
            Balance=Decimal("10.50"),
            Born=born,
        )
        db.save(person)

        loaded = db.first(Person, person.ID)
        assert loaded.ID == person.ID
        assert loaded.Name == "Ada"
        assert loaded.Age == 36
        assert loaded.Email == "ada@example.com"
        assert loaded.Score == 12.5
        assert loaded.Active is False
        assert loaded.Balance == Decimal("10.50")
        assert loaded.Born == born
        assert loaded.CreateDate == person.CreateDate
        assert loaded.LastUpdate == person.LastUpdate
        assert loaded.DeleteDate is None

    def test_quotes_survive(self, db):
        db.save(Person(Name="O'Connor"))
        assert db.first(Person, equal("Name", "O'Connor")).Name == "O'Connor"

    def test_missing_optional_values(self, db):
        person = Person(Name="Bob")
        db.save(person)
        loaded = db.first(Person, person.ID)
        assert loaded.Email is None
        assert loaded.Born is None

    def test_update(self, db):
        person = Person(Name="Ada", Age=36, Email="ada@example.com")
        db.save(person)
        created, updated = person.CreateDate, person.LastUpdate

        person.Name = "Ada Lovelace"
        person.Email = None
        db.save(person)

        loaded = db.first(Person, person.ID)
        assert loaded.Name == "Ada Lovelace"
        assert loaded.Email is None
        assert loaded.CreateDate == created
        assert loaded.LastUpdate >= updated
        assert db.count(Person) == 1

    def test_nested_dataclass(self, db):
        customer = Customer(Name="Acme", Home=Address(Street="1 Main St", City="Leeds"))
        db.save(customer)
        loaded = db.first(Customer, customer.ID)
        assert loaded.Home == Address(Street="1 Main St", City="Leeds")

    def test_missing_optional_nested_dataclass(self, db):
        db.save(Client(Name="Nomad"))
        loaded = db.first(Client, equal("Name", "Nomad"))
        assert loaded.Home is None
        columns = {f.name: f for f in db.schema.describe(Client)}
        assert columns["Street"].nullable
        assert columns["City"].nullable

    def test_present_optional_nested_dataclass(self, db):
        client = Client(Name="Acme", Home=Address(Street="1 Main St", City="Leeds"))
        db.save(client)
        loaded = db.first(Client, client.ID)
        assert loaded.Home == Address(Street="1 Main St", City="Leeds")

    def test_updatable_supplies_statement(self, db):
        entry = AuditEntry(Message="ignored")
        db.save(entry)
        assert entry.ID is None
        [row] = db.fetch(AuditEntry)
        assert row.ID == "fixed-id"
        assert row.Message == "custom"

    def test_restorable_runs_after_load(self, db):
        db.save(Tag(Label="news"))
        [tag] = db.fetch(Tag)
        assert tag.Label == "NEWS"
        assert tag.restored_with == "sqlite"


# =============================================================================
# Reads
# =============================================================================


class TestQueries:
    def test_filter(self, db):
        seed_people(db)
        assert {p.Name for p in db.fetch(Person, greater("Age", 30))} == {"Ada", "Grace"}

    def test_order(self, db):
        seed_people(db)
        assert [p.Name for p in db.fetch(Person, Criteria(order=asc("Age")))] == ["Linus", "Ada", "Grace"]

    def test_limit_and_offset(self, db):
        seed_people(db)
        assert [p.Name for p in db.fetch(Person, Criteria(order=desc("Age"), limit=2))] == ["Grace", "Ada"]
        assert [p.Name for p in db.fetch(Person, Criteria(order=asc("Age"), limit=1, offset=1))] == ["Ada"]

    def test_raw_where(self, db):
        seed_people(db)
        assert [p.Name for p in db.fetch(Person, '"Age" < 30')] == ["Linus"]

    def test_like(self, db):
        seed_people(db)
        assert [p.Name for p in db.fetch(Person, starts_with("Name", "G"))] == ["Grace"]

    def test_filter_that_renders_empty_matches_all(self, db):
        seed_people(db)
        assert len(db.fetch(Person, in_("Age", []))) == 3

    def test_entity_instance_as_type(self, db):
        seed_people(db)
        assert len(db.fetch(Person())) == 3

    def test_unsupported_criteria(self, db):
        with pytest.raises(InvalidCriteriaError):
            db.fetch(Person, 3.14)

    def test_first_respects_order(self, db):
        seed_people(db)
        assert db.first(Person, Criteria(order=desc("Age"))).Name == "Grace"

    def test_first_without_match(self, db):
        seed_people(db)
        with pytest.raises(NoResultsError) as exc_info:
            db.first(Person, equal("Age", 999))
        assert exc_info.value.context.table == "Person"


class TestCount:
    def test_count(self, db):
        seed_people(db)
        assert db.count(Person) == 3
        assert db.count(Person, greater("Age", 30)) == 2
        assert db.count(Person, in_("Age", [28, 45])) == 2

    def test_only_where_applies(self, db):
        seed_people(db)
        assert db.count(Person, Criteria(limit=1)) == 3

    def test_empty_table(self, db):
        assert db.count(Person) == 0

    def test_unsupported_criteria(self, db):
        assert db.count(Person, 3.14) == -1


class TestRange:
    def test_iterates_in_order(self, db):
        seed_people(db)
        names = [p.Name for p in db.range(Person, Criteria(order=asc("Age")))]
        assert names == ["Linus", "Ada", "Grace"]

    def test_table_is_ensured_before_iteration(self, db):
        rows = db.range(Person)
        assert isinstance(rows, Iterator)
        assert db.is_known(Person)
        assert list(rows) == []

    def test_criteria_checked_eagerly(self, db):
        with pytest.raises(InvalidCriteriaError):
            db.range(Person, 42)

    def test_early_close_releases_connection(self, db):
        seed_people(db)
        rows = db.range(Person)
        next(rows)
        rows.close()
        db.save(Person(Name="Edsger"))
        assert db.count(Person) == 4


# =============================================================================
# Deletes
# =============================================================================


class TestRemove:
    def test_soft_delete(self, db):
        person = Person(Name="Ada")
        db.save(person)
        db.remove(person)

        assert person.DeleteDate is not None
        assert db.count(Person) == 0
        [hidden] = db.fetch(Person, Criteria(include_deleted=True))
        assert hidden.DeleteDate is not None

    def test_removing_twice_is_harmless(self, db):
        person = Person(Name="Ada")
        db.save(person)
        db.remove(person)
        db.remove(person)
        assert db.count(Person, Criteria(include_deleted=True)) == 1

    def test_unsaved_entity_is_ignored(self, db):
        db.remove(Person(Name="Ghost"))
        assert not db.is_known(Person)

    def test_hard_delete(self, hard_db):
        person = Person(Name="Ada")
        hard_db.save(person)
        hard_db.remove(person)
        assert hard_db.count(Person, Criteria(include_deleted=True)) == 0


class TestRemoveMany:
    def test_soft_delete_matching(self, db):
        for name, age in (("Ada", 30), ("Bob", 30), ("Cy", 40)):
            db.save(Person(Name=name, Age=age))

        assert db.remove_many(Person, equal("Age", 30)) == 2
        assert [p.Name for p in db.fetch(Person)] == ["Cy"]
        everyone = db.fetch(Person, Criteria(include_deleted=True))
        assert sum(p.DeleteDate is not None for p in everyone) == 2

    def test_already_deleted_rows_are_not_counted(self, db):
        db.save(Person(Name="Ada", Age=30))
        db.remove_many(Person, equal("Age", 30))
        assert db.remove_many(Person, Criteria(where=equal("Age", 30), include_deleted=True)) == 0

    def test_no_match(self, db):
        seed_people(db)
        assert db.remove_many(Person, equal("Age", 99)) == 0
        assert db.count(Person) == 3

    def test_missing_table_is_not_created(self, db):
        assert db.remove_many(Person, equal("Age", 30)) == 0
        assert not db.is_known(Person)
        assert db.raw_scalar("SELECT COUNT(*) FROM sqlite_master WHERE name = 'Person'") == 0

    def test_hard_delete(self, hard_db):
        seed_people(hard_db)
        assert hard_db.remove_many(Person, greater("Age", 30)) == 2
        assert hard_db.count(Person, Criteria(include_deleted=True)) == 1


class TestRefresh:
    def test_reloads_changed_row(self, db):
        person = Person(Name="Ada")
        db.save(person)
        db.raw_execute(f"UPDATE \"Person\" SET \"Name\" = 'Changed' WHERE \"ID\" = '{person.ID}'")
        db.refresh(person)
        assert person.Name == "Changed"

    def test_sees_soft_deleted_row(self, db):
        person = Person(Name="Ada")
        db.save(person)
        db.remove(person)
        person.DeleteDate = None
        db.refresh(person)
        assert person.DeleteDate is not None

    def test_unsaved_entity(self, db):
        with pytest.raises(QueryError):
            db.refresh(Person())


# =============================================================================
# Schema lifecycle
# =============================================================================


class TestSchemaLifecycle:
    def test_table_created_on_first_use(self, db):
        assert not db.is_known(Person)
        assert db.count(Person) == 0
        assert db.is_known(Person)

    def test_ddl_runs_once(self, db):
        with patch.object(db.schema, "create_statements", wraps=db.schema.create_statements) as spy:
            db.save(Person(Name="Ada"))
            db.save(Person(Name="Grace"))
            db.fetch(Person)
            db.count(Person)
        assert spy.call_count == 1

    def test_existing_table_is_not_recreated(self, db, sqlite_config):
        db.save(Person(Name="Ada"))
        with Database(sqlite_config) as second:
            with patch.object(second.schema, "create_statements", wraps=second.schema.create_statements) as spy:
                assert len(second.fetch(Person)) == 1
            assert spy.call_count == 0

    def test_key_columns_are_indexed(self, db):
        db.count(Person)
        rows = db.raw_select("SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'Person'")
        assert {row["name"] for row in rows} == {
            "Person_ID_Idx", "Person_CreateDate_Idx", "Person_LastUpdate_Idx", "Person_Age_Idx",
        }

    def test_standing_data_seeded_once(self, db, sqlite_config):
        assert [c.Code for c in db.fetch(Country, Criteria(order=asc("Code")))] == ["FR", "GB"]
        with Database(sqlite_config) as second:
            assert second.count(Country) == 2

    def test_registered_descriptors(self, db):
        db.register(Gadget, [FieldDescriptor("Label", FieldType.STRING, FieldSize(32))])
        db.save(Gadget(Label="lamp"))
        assert db.first(Gadget).Label == "lamp"
        columns = {row["name"] for row in db.raw_select('PRAGMA table_info("Gadget")')}
        assert "Label" in columns

    def test_not_an_entity(self, db):
        with pytest.raises(SchemaError):
            db.fetch(NotAnEntity)


# =============================================================================
# Transactions
# =============================================================================


class TestTransactions:
    def test_commit_on_success(self, db):
        with db.begin_transaction() as tx:
            db.save(Person(Name="Ada"), tx=tx)
            db.save(Person(Name="Grace"), tx=tx)
        assert not tx.active
        assert db.count(Person) == 2

    def test_explicit_rollback(self, db):
        db.count(Person)
        tx = db.begin_transaction()
        db.save(Person(Name="Temp"), tx=tx)
        assert db.count(Person, tx=tx) == 1
        db.rollback_transaction(tx)
        assert db.count(Person) == 0

    def test_rollback_on_exception(self, db):
        db.count(Person)
        with pytest.raises(RuntimeError):
            with db.begin_transaction() as tx:
                db.save(Person(Name="Temp"), tx=tx)
                raise RuntimeError("abort")
        assert db.count(Person) == 0

    def test_rollback_after_unrelated_call(self, db):
        tx = db.begin_transaction()
        db.save(Person(Name="inside-tx"), tx=tx)
        assert db.count(Person) == 0
        tx.rollback()
        assert db.fetch(Person) == []

    def test_range_does_not_commit_open_transaction(self, db):
        db.count(Person)
        tx = db.begin_transaction()
        db.save(Person(Name="Temp"), tx=tx)
        assert list(db.range(Person)) == []
        tx.rollback()
        assert db.count(Person) == 0

    def test_finished_transaction_is_rejected(self, db):
        tx = db.begin_transaction()
        tx.commit()
        with pytest.raises(QueryError):
            tx.commit()
        with pytest.raises(QueryError):
            db.save(Person(Name="Late"), tx=tx)

    def test_failed_statement_leaves_transaction_open(self, db):
        tx = db.begin_transaction()
        with pytest.raises(QueryError):
            db.raw_execute("INSERT INTO nowhere VALUES (1)", tx=tx)
        assert tx.active
        tx.rollback()
        assert not tx.active


# =============================================================================
# Raw SQL
# =============================================================================


class TestRawSql:
    def test_execute_scalar_select(self, db):
        db.raw_execute("CREATE TABLE notes (body TEXT)")
        assert db.raw_execute("INSERT INTO notes VALUES ('a'), ('b')") == 2
        assert db.raw_scalar("SELECT COUNT(*) FROM notes") == 2
        assert db.raw_select("SELECT body FROM notes ORDER BY body") == [{"body": "a"}, {"body": "b"}]

    def test_scalar_without_rows(self, db):
        db.raw_execute("CREATE TABLE notes (body TEXT)")
        assert db.raw_scalar("SELECT body FROM notes") is None

    def test_driver_error_is_wrapped(self, db):
        with pytest.raises(QueryError) as exc_info:
            db.raw_execute("SELEC nonsense")
        assert exc_info.value.context.sql == "SELEC nonsense"
        assert isinstance(exc_info.value.cause, sqlite3.Error)


# =============================================================================
# Generated SQL on server dialects
# =============================================================================


class TestMySQLStatements:
    def test_first_save_creates_table_then_inserts(self):
        adapter = RecordingAdapter()
        db = Database(mysql_config(), adapter=adapter)
        db.save(Person(Name="Ada", Age=36))

        statements = adapter.connection.statements
        assert statements[0] == "SHOW TABLES WHERE Tables_in_shop = 'Person'"
        assert statements[1].startswith(
            "CREATE TABLE IF NOT EXISTS `Person` (`ID` VARCHAR(36) NOT NULL, `CreateDate` DATETIME NOT NULL"
        )
        assert statements[5] == "CREATE INDEX `Person_Age_Idx` ON `Person`(`Age`);"
        insert = statements[6]
        assert insert.startswith(
            "INSERT INTO `Person` (`ID`, `CreateDate`, `LastUpdate`, `Name`, `Age`, `Score`, `Active`, `Balance`) VALUES ('"
        )
        assert insert.endswith("'Ada', 36, 0.000000, 1, 0.00)")
        assert len(statements) == 7
        assert adapter.connection.commits == 7
        assert adapter.connection.rollbacks == 0

    def test_update_statement(self):
        adapter = RecordingAdapter([[("Person",)]])
        db = Database(mysql_config(), adapter=adapter)
        person = Person(Name="Ada", Age=36)
        person.ID = "abc"
        db.save(person)

        update = adapter.connection.statements[-1]
        assert update.startswith("UPDATE `Person` SET `LastUpdate` = '")
        assert "`DeleteDate` = null" in update
        assert "`Email` = null" in update
        assert "`Name` = 'Ada'" in update
        assert "`ID` = 'abc'," not in update
        assert update.endswith(" WHERE `ID` = 'abc'")

    def test_soft_remove_many(self):
        adapter = RecordingAdapter([[("Person",)], [(2,)]])
        db = Database(mysql_config(), adapter=adapter)

        assert db.remove_many(Person, greater("Age", 30)) == 2
        statements = adapter.connection.statements
        assert statements[1] == "SELECT COUNT(*) FROM `Person` WHERE `Age` > 30 AND `DeleteDate` IS NULL"
        assert statements[2].startswith("UPDATE `Person` SET `DeleteDate` = '")
        assert statements[2].endswith("' WHERE `Age` > 30 AND `DeleteDate` IS NULL")

    def test_hard_remove_many(self):
        adapter = RecordingAdapter([[("Person",)], [(1,)]])
        db = Database(mysql_config(deletable=True), adapter=adapter)

        db.remove_many(Person, greater("Age", 30))
        assert adapter.connection.statements[2] == "DELETE FROM `Person` WHERE `Age` > 30 AND `DeleteDate` IS NULL"

    def test_driver_error_rolls_back(self):
        adapter = RecordingAdapter(fail_on="BOOM")
        db = Database(mysql_config(), adapter=adapter)

        with pytest.raises(QueryError) as exc_info:
            db.raw_execute("BOOM")
        assert isinstance(exc_info.value.cause, DriverError)
        assert adapter.connection.rollbacks == 1
        assert adapter.connection.commits == 0

    def test_explicit_transaction_is_not_rolled_back(self):
        adapter = RecordingAdapter(fail_on="BOOM")
        db = Database(mysql_config(), adapter=adapter)
        tx = db.begin_transaction()

        with pytest.raises(QueryError):
            db.raw_execute("BOOM", tx=tx)
        assert adapter.connection.rollbacks == 0
        tx.rollback()
        assert adapter.connection.rollbacks == 1

    def test_range_requests_streaming_cursor(self):
        adapter = RecordingAdapter([[("Person",)]])
        db = Database(mysql_config(), adapter=adapter)

        assert list(db.range(Person)) == []
        assert adapter.cursor_modes == [False, True]

    def test_statements_run_with_log_context(self):
        adapter = RecordingAdapter([[("Person",)]])
        db = Database(mysql_config(), adapter=adapter)

        db.count(Person)
        db.raw_execute("SELECT 1")
        counted, raw = adapter.connection.contexts[-2:]
        assert counted["table"] == "Person"
        assert counted["dialect"] == "mysql"
        assert "table" not in raw
        assert raw["dialect"] == "mysql"
        assert "table" not in structlog.contextvars.get_contextvars()

    def test_autocommit_skips_commit(self):
        adapter = RecordingAdapter(autocommit=True)
        db = Database(mysql_config(disabled_transactions=True), adapter=adapter)
        db.raw_execute("SELECT 1")
        assert adapter.connection.commits == 0

    def test_ddl_failure_is_schema_error(self):
        adapter = RecordingAdapter(fail_on="CREATE TABLE")
        db = Database(mysql_config(), adapter=adapter)

        with pytest.raises(SchemaError) as exc_info:
            db.fetch(Person)
        assert exc_info.value.context.sql.startswith("CREATE TABLE")
        assert not db.is_known(Person)

    def test_concurrent_first_use_creates_table_once(self):
        adapter = RecordingAdapter()
        db = Database(mysql_config(), adapter=adapter)

        with ThreadPoolExecutor(max_workers=8) as pool:
            counts = list(pool.map(lambda _: db.count(Person), range(16)))

        assert counts == [0] * 16
        creates = [s for s in adapter.connection.statements if s.startswith("CREATE TABLE")]
        assert len(creates) == 1


class TestMSSQLStatements:
    def test_paged_select(self):
        adapter = RecordingAdapter([[("Person",)]])
        config = DatabaseConfig(type="mssql", host="sql01", database="erp", user="sa", password="pw")
        db = Database(config, adapter=adapter)

        assert db.fetch(Person, Criteria(limit=5)) == []
        statements = adapter.connection.statements
        assert statements[0] == "SELECT [Name] FROM [sys].[tables] WHERE [Name] = 'Person'"
        assert statements[1] == (
            "SELECT * FROM [Person] WHERE [DeleteDate] IS NULL "
            "ORDER BY [ID] OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY"
        )
