"""SQLite database adapter."""

from __future__ import annotations

import uuid
from typing import Any

from mud.errors import DatabaseConnectionError
from mud.logging import get_logger
from mud.protocols import Connection

from .base import DatabaseAdapter

logger = get_logger(__name__)


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Uses the built-in sqlite3 module. Every checkout opens its own
    connection, so an explicit transaction is never committed by another
    caller's statement. Suitable for:
    - Development and testing
    - Embedded, single-process applications

    ``connect()`` opens an anchor connection that lives until
    ``disconnect()``. File databases are switched to WAL so readers and a
    writer do not block each other. ``:memory:`` becomes a private
    shared-cache database kept alive by the anchor; shared cache locks per
    table, so reading a table another transaction has written to but not
    committed fails instead of waiting.
    """

    name = "sqlite"

    def __init__(
        self,
        path: str = ":memory:",
        *,
        autocommit: bool = False,
        timeout: float = 5.0,
    ):
        super().__init__(autocommit=autocommit)
        self._path = path or ":memory:"
        self._timeout = timeout
        self._target = self._path
        self._anchor: Any = None

    @classmethod
    def from_connection_string(cls, dsn: str, *, autocommit: bool = False) -> SQLiteAdapter:
        return cls(dsn, autocommit=autocommit)

    @property
    def path(self) -> str:
        return self._path

    @property
    def in_memory(self) -> bool:
        return self._path == ":memory:"

    def _open(self) -> Any:
        import sqlite3

        return sqlite3.connect(
            self._target,
            timeout=self._timeout,
            check_same_thread=False,
            uri=self._target.startswith("file:"),
            # None puts the driver in autocommit mode.
            isolation_level=None if self._autocommit else "",
        )

    def connect(self) -> None:
        """Open the anchor connection."""
        import sqlite3

        if self.in_memory:
            self._target = f"file:mud-{uuid.uuid4().hex}?mode=memory&cache=shared"

        try:
            self._anchor = self._open()
            if not self.in_memory:
                self._anchor.execute("PRAGMA journal_mode=WAL")
            self._errors = (sqlite3.Error,)
            self._connected = True
            logger.debug("connection_opened", adapter=self.name, path=self._path)

        except sqlite3.Error as e:
            self._anchor = None
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close the anchor connection."""
        if self._anchor:
            self._anchor.close()
            self._anchor = None
            self._connected = False
            self._target = self._path
            logger.debug("connection_closed", adapter=self.name, path=self._path)

    def get_connection(self) -> Connection:
        """Open a connection for one transaction."""
        if not self._anchor:
            self.connect()
        try:
            return self._open()
        except self._errors as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ) from e

    def release_connection(self, conn: Connection) -> None:
        """Close a connection from ``get_connection()``."""
        conn.close()


__all__ = [
    "SQLiteAdapter",
]
