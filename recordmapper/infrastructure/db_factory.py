"""
Database connection factory for the PostgreSQL executor.

Provides centralized management of the async PostgreSQL pool used by
`PostgresViewQuery` / `PostgresActionQuery`. The PoolManager singleton keeps a
single pool per process and releases it on shutdown.

Opening the pool retries transient connection failures using tenacity. The
record mapper core never retries; retries live only here.
"""

from __future__ import annotations

import threading
from typing import Optional

import psycopg
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from recordmapper.config import get_settings
from recordmapper.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    settings = get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


class PoolManager:
    """
    Thread-safe singleton for managing the async connection pool.

    The pool is created closed; `open()` opens it (with retry) and `close()`
    releases it. Both are coroutines because the async pool must be opened and
    closed inside a running event loop.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._async_pool: Optional[AsyncConnectionPool] = None
            return cls._instance

    def get_async_pool(self, min_size: Optional[int] = None, max_size: Optional[int] = None) -> AsyncConnectionPool:
        """
        Get or create the asynchronous connection pool.

        Parameters
        ----------
        min_size : int, optional
            Minimum number of idle connections to keep (`POOL_MIN_SIZE`).
        max_size : int, optional
            Maximum total connections in the pool (`POOL_MAX_SIZE`).

        Returns
        -------
        AsyncConnectionPool
            The managed async pool instance (not yet opened).
        """
        with self._lock:
            if self._async_pool is None:
                settings = get_settings()
                self._async_pool = AsyncConnectionPool(
                    conninfo=build_dsn(),
                    min_size=min_size or settings.pool_min_size,
                    max_size=max_size or settings.pool_max_size,
                    open=False,
                )
            return self._async_pool

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(_TRANSIENT),
        reraise=True,
    )
    async def open(self) -> AsyncConnectionPool:
        """Open the managed pool, waiting until `min_size` connections are ready."""
        pool = self.get_async_pool()
        await pool.open(wait=True)
        log.info("[POOL OPEN]", extra={"min_size": pool.min_size, "max_size": pool.max_size})
        return pool

    async def close(self) -> None:
        """
        Close the managed pool and release resources.

        Safe to call when no pool was created.
        """
        with self._lock:
            pool, self._async_pool = self._async_pool, None
        if pool is not None:
            await pool.close()
            log.info("[POOL CLOSED]")


def get_async_pool(min_size: Optional[int] = None, max_size: Optional[int] = None) -> AsyncConnectionPool:
    """
    Get or create the asynchronous connection pool via PoolManager.
    """
    manager = PoolManager()
    return manager.get_async_pool(min_size=min_size, max_size=max_size)


__all__ = [
    "PoolManager",
    "build_dsn",
    "get_async_pool",
]
