"""Microsoft SQL Server database adapter.

Uses ``pymssql``, a DB-API 2.0 driver built on FreeTDS.

Install the driver::

    pip install pymssql
    # or:  pip install mud[mssql]

This adapter is import-guarded: if ``pymssql`` is not installed a clear
:class:`~mud.errors.ConfigError` is raised at ``connect()`` time rather
than at import time.
"""

from __future__ import annotations

import threading
from typing import Any

from mud.errors import ConfigError, DatabaseConnectionError
from mud.logging import get_logger
from mud.protocols import Connection

from .base import DatabaseAdapter, parse_server_dsn

logger = get_logger(__name__)


class MSSQLAdapter(DatabaseAdapter):
    """SQL Server database adapter.

    pymssql has no pool of its own, so the adapter keeps up to ``pool_size``
    idle connections. A checkout takes an idle connection or opens a new
    one; nothing is shared between two callers at the same time.
    """

    name = "mssql"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 1433,
        database: str = "",
        user: str = "",
        password: str = "",
        *,
        autocommit: bool = False,
        login_timeout: int = 10,
        pool_size: int = 5,
    ):
        super().__init__(autocommit=autocommit)
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self._password = password
        self._login_timeout = login_timeout
        self._pool_size = pool_size
        self._driver: Any = None
        self._idle: list[Any] = []
        self._lock = threading.Lock()

    @classmethod
    def from_connection_string(cls, dsn: str, *, autocommit: bool = False) -> MSSQLAdapter:
        return cls(**parse_server_dsn(dsn, default_port=1433), autocommit=autocommit)

    def _open(self) -> Any:
        try:
            return self._driver.connect(
                server=self.host,
                port=str(self.port),
                user=self.user,
                password=self._password,
                database=self.database,
                autocommit=self._autocommit,
                login_timeout=self._login_timeout,
            )
        except self._driver.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQL Server: {e}",
                cause=e,
            ) from e

    def connect(self) -> None:
        """Load pymssql and open the first connection."""
        try:
            import pymssql
        except ImportError:
            raise ConfigError(
                "pymssql is required for SQL Server. Install with: pip install pymssql"
            ) from None

        self._driver = pymssql
        self._errors = (pymssql.Error,)
        conn = self._open()
        with self._lock:
            self._idle.append(conn)
        self._connected = True
        logger.debug("connection_opened", adapter=self.name, host=self.host, database=self.database)

    def disconnect(self) -> None:
        """Close every idle connection."""
        with self._lock:
            idle, self._idle = self._idle, []
            self._connected = False
        for conn in idle:
            self._close(conn)

    def get_connection(self) -> Connection:
        """Take an idle connection, or open a new one."""
        if not self._connected:
            self.connect()
        with self._lock:
            if self._idle:
                return self._idle.pop()
        return self._open()

    def release_connection(self, conn: Connection) -> None:
        """Keep the connection for reuse, or close it when the pool is full."""
        with self._lock:
            if self._connected and len(self._idle) < self._pool_size:
                self._idle.append(conn)
                return
        self._close(conn)

    def _close(self, conn: Any) -> None:
        try:
            conn.close()
        except self._errors as e:
            logger.warning("connection_release_failed", adapter=self.name, error=str(e))


__all__ = [
    "MSSQLAdapter",
]
