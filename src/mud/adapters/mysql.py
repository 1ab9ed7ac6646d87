"""MySQL / MariaDB database adapter.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package with a
connection pool.

Install the driver::

    pip install mysql-connector-python
    # or:  pip install mud[mysql]

This adapter is import-guarded: if ``mysql.connector`` is not installed
a clear :class:`~mud.errors.ConfigError` is raised at ``connect()`` time.
"""

from __future__ import annotations

from typing import Any

from mud.errors import ConfigError, DatabaseConnectionError
from mud.logging import get_logger
from mud.protocols import Connection, Cursor

from .base import DatabaseAdapter, parse_server_dsn

logger = get_logger(__name__)


class MySQLAdapter(DatabaseAdapter):
    """MySQL / MariaDB database adapter.

    Uses ``mysql.connector`` connection pooling; every transaction checks a
    connection out of the pool and returns it on commit or rollback.
    """

    name = "mysql"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        database: str = "",
        user: str = "",
        password: str = "",
        *,
        autocommit: bool = False,
        pool_size: int = 5,
        charset: str = "utf8mb4",
        connect_timeout: int = 10,
    ):
        super().__init__(autocommit=autocommit)
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self._password = password
        self._pool_size = pool_size
        self._charset = charset
        self._connect_timeout = connect_timeout
        self._pool: Any = None

    @classmethod
    def from_connection_string(cls, dsn: str, *, autocommit: bool = False) -> MySQLAdapter:
        return cls(**parse_server_dsn(dsn, default_port=3306), autocommit=autocommit)

    def connect(self) -> None:
        """Create the MySQL connection pool."""
        try:
            import mysql.connector
            from mysql.connector import pooling
        except ImportError:
            raise ConfigError(
                "mysql-connector-python is required for MySQL. "
                "Install with: pip install mysql-connector-python"
            ) from None

        try:
            self._pool = pooling.MySQLConnectionPool(
                pool_name=f"mud_{self.database}",
                pool_size=self._pool_size,
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self._password,
                charset=self._charset,
                connect_timeout=self._connect_timeout,
                autocommit=self._autocommit,
                # An unbuffered cursor closed early must not leave rows on the wire.
                consume_results=True,
            )
            self._errors = (mysql.connector.Error,)
            self._connected = True
            logger.debug("pool_created", adapter=self.name, host=self.host, database=self.database)
        except mysql.connector.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Drop the MySQL connection pool.

        mysql.connector has no public call to drain a pool. Checked-out
        connections close through ``release_connection()``; idle ones are left
        open until the dropped pool is garbage collected or the server times
        them out.
        """
        self._pool = None
        self._connected = False

    def get_connection(self) -> Connection:
        """Get connection from pool."""
        if not self._pool:
            self.connect()
        try:
            return self._pool.get_connection()
        except self._errors as e:
            raise DatabaseConnectionError(
                f"No MySQL connection available: {e}",
                cause=e,
            ) from e

    def release_connection(self, conn: Connection) -> None:
        """Return connection to pool."""
        try:
            conn.close()  # mysql.connector returns to pool on close
        except self._errors as e:
            logger.warning("connection_release_failed", adapter=self.name, error=str(e))

    def cursor(self, conn: Connection, *, stream: bool = False) -> Cursor:
        # Buffered unless streaming, so a partly read result never blocks
        # the next statement.
        return conn.cursor(buffered=not stream)


__all__ = [
    "MySQLAdapter",
]
