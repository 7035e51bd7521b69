"""Database connection handling using DuckDB."""

import asyncio
import logging
from typing import Any

import duckdb

from sqlreporter.errors import ConnectionUnavailableError

log = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


def _open_connection(
    connection_string: str,
    config: dict[str, Any] | None = None,
) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection for the given database path."""
    return duckdb.connect(connection_string, config=config or {})


class ConnectionManager:
    """Owns the single database connection reports run against.

    Not safe for concurrent reconfiguration: callers serialize ``configure``
    against report runs.
    """

    def __init__(
        self,
        connection_string: str = "",
        config: dict[str, Any] | None = None,
    ) -> None:
        self.connection_string = connection_string.strip()
        self.config = dict(config or {})
        self._conn: duckdb.DuckDBPyConnection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """The live connection; raises if it has not been opened."""
        if self._conn is None:
            raise ConnectionUnavailableError(
                "Connection is not open, check the connection string has been configured"
            )
        return self._conn

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """A new command handle on the shared database."""
        return self.connection.cursor()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, connection_string: str) -> bool:
        """Point the manager at a database and try to connect.

        An open connection is closed first so its parameters never change
        underneath a running report.
        """
        self.close()
        self.connection_string = connection_string.strip()
        return self.check_healthy()

    async def configure_async(self, connection_string: str) -> bool:
        self.close()
        self.connection_string = connection_string.strip()
        return await self.check_healthy_async()

    # ------------------------------------------------------------------
    # Health checks
    # ------------------------------------------------------------------

    def check_healthy(self) -> bool:
        """Return True if the connection is open or could be opened."""
        if self._conn is not None:
            return True
        if not self._can_open():
            return False
        try:
            self._conn = _open_connection(self.connection_string, self.config)
        except Exception as e:
            log.warning("Failed to open database %r: %s", self.connection_string, e)
            return False
        log.info("Opened database %r", self.connection_string)
        return True

    async def check_healthy_async(self) -> bool:
        if self._conn is not None:
            return True
        if not self._can_open():
            return False
        try:
            self._conn = await asyncio.to_thread(
                _open_connection, self.connection_string, self.config
            )
        except Exception as e:
            log.warning("Failed to open database %r: %s", self.connection_string, e)
            return False
        log.info("Opened database %r", self.connection_string)
        return True

    def _can_open(self) -> bool:
        if not self.connection_string:
            log.warning("No connection string configured")
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
