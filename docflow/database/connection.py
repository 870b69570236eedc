from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from docflow.config.settings import Settings


class Database:
    """Owns the PostgreSQL connection pool for one process."""

    def __init__(self, settings: Settings) -> None:
        self._conninfo = (
            f"host={settings.db_host} "
            f"port={settings.db_port} "
            f"dbname={settings.db_database} "
            f"user={settings.db_username} "
            f"password={settings.db_password}"
        )
        self._min_size = settings.db_pool_min_size
        self._max_size = settings.db_pool_max_size
        self._connect_timeout = settings.db_connect_timeout_seconds
        self._pool: ConnectionPool | None = None

    def open(self) -> None:
        """Open the pool and wait until the first connection is usable."""
        if self._pool is not None:
            return
        self._pool = ConnectionPool(
            self._conninfo,
            min_size=self._min_size,
            max_size=self._max_size,
            open=False,
        )
        try:
            self._pool.open(wait=True, timeout=self._connect_timeout)
        except Exception:
            self._pool.close()
            self._pool = None
            raise

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection[Any], None, None]:
        """Yield a connection from the pool. Caller manages commit/rollback."""
        if self._pool is None:
            raise RuntimeError("Connection pool not initialized. Call open() first.")
        with self._pool.connection() as conn:
            yield conn
