"""
Document store connection (asyncpg).

The serving process may be short-lived and re-created between request bursts,
so the connection is opened lazily on first use and then reused for as long
as it answers a cheap liveness probe. A `ConnectionCache` is constructed once
per process by the app factory (see `api/main.py`) and reached by handlers
through `get_connections`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import asyncpg
from fastapi import Request

from . import config
from .documents import DocumentCollection
from .errors import ConnectivityError

PARCELS_TABLE = "parcels"

logger = logging.getLogger(__name__)

# Failures raised by a store call once a connection exists.
STORE_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class ConnectionHandle:
    """
    A live session to the store plus the collection derived from it.

    `pool` is None for stores that own no network resources (tests).
    """

    def __init__(self, collection: Any, *, pool: asyncpg.Pool | None = None) -> None:
        self.collection = collection
        self.pool = pool

    async def ping(self) -> None:
        await self.collection.ping()

    def saturated(self) -> bool:
        """Every pooled connection is checked out, so a probe would queue behind running queries."""
        if self.pool is None:
            return False
        return self.pool.get_idle_size() == 0 and self.pool.get_size() >= self.pool.get_max_size()

    async def retire(self, grace_s: float) -> None:
        """
        Close the pool once in-flight queries have finished, and terminate
        whatever is still open after `grace_s`.
        """
        if self.pool is None:
            return
        try:
            await asyncio.wait_for(self.pool.close(), timeout=grace_s)
        except Exception as exc:
            logger.warning("db_retire_forced error_type=%s error=%s", type(exc).__name__, exc)
            self.pool.terminate()

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()


Connector = Callable[[config.StoreSettings], Awaitable[ConnectionHandle]]


async def connect_postgres(settings: config.StoreSettings) -> ConnectionHandle:
    connect_kwargs: dict[str, Any] = {}
    if settings.ssl:
        connect_kwargs["ssl"] = settings.ssl

    pool = await asyncpg.create_pool(
        dsn=settings.dsn(),
        min_size=1,
        max_size=settings.pool_max_size,
        command_timeout=settings.command_timeout_s,
        timeout=settings.connect_timeout_s,
        **connect_kwargs,
    )
    collection = DocumentCollection(pool, PARCELS_TABLE)
    try:
        await collection.ensure_table()
    except BaseException:
        pool.terminate()
        raise
    return ConnectionHandle(collection, pool=pool)


class ConnectionCache:
    """
    Process-wide holder of at most one live `ConnectionHandle`.

    `acquire()` returns the cached handle while it passes the liveness probe,
    and otherwise opens a new one. Opening is single-flight: concurrent
    callers on a cold cache wait for one shared connect.

    A handle that fails its probe becomes `stale`: it is no longer handed out
    and is closed in the background. The cache reads `absent` again once that
    close has finished, or `live` as soon as a replacement is connected.
    """

    def __init__(self, connect: Connector | None = None) -> None:
        self._connect = connect or connect_postgres
        self._handle: ConnectionHandle | None = None
        self._stale: ConnectionHandle | None = None
        self._retiring: set[asyncio.Task] = set()
        self._ping_timeout_s = 5.0
        self._retire_grace_s = 30.0
        self._lock = asyncio.Lock()
        self.connect_count = 0

    @property
    def state(self) -> str:
        if self._handle is not None:
            return "live"
        if self._stale is not None:
            return "stale"
        return "absent"

    async def acquire(self) -> ConnectionHandle:
        handle = self._handle
        if handle is not None:
            if await self._is_alive(handle):
                return handle
            self._discard(handle)

        async with self._lock:
            # Another caller may have connected while this one waited.
            if self._handle is not None:
                return self._handle

            settings = config.load_store_settings()
            try:
                handle = await self._connect(settings)
            except Exception as exc:
                logger.error(
                    "db_connect_failed host=%s database=%s error_type=%s error=%s",
                    settings.host,
                    settings.database,
                    type(exc).__name__,
                    exc,
                )
                raise ConnectivityError(f"Connect to {settings.host} failed: {exc}") from exc

            self.connect_count += 1
            self._ping_timeout_s = settings.ping_timeout_s
            self._retire_grace_s = settings.command_timeout_s
            self._handle = handle
            logger.info(
                "db_connected host=%s database=%s connects=%s",
                settings.host,
                settings.database,
                self.connect_count,
            )
            return handle

    async def _is_alive(self, handle: ConnectionHandle) -> bool:
        # A saturated pool is busy, not dead: the probe would only measure queueing.
        if handle.saturated():
            logger.debug("db_ping_skipped reason=pool_saturated")
            return True
        try:
            await asyncio.wait_for(handle.ping(), timeout=self._ping_timeout_s)
        except Exception as exc:
            if handle.saturated():
                logger.debug("db_ping_queued reason=pool_saturated")
                return True
            logger.warning("db_ping_failed error_type=%s error=%s", type(exc).__name__, exc)
            return False
        return True

    def _discard(self, handle: ConnectionHandle) -> None:
        # Concurrent callers may all see the same failed probe; retire it once.
        if self._handle is not handle:
            return
        self._handle = None
        self._stale = handle
        task = asyncio.create_task(handle.retire(self._retire_grace_s))
        self._retiring.add(task)
        task.add_done_callback(lambda done: self._retired(done, handle))
        logger.info("db_stale_handle_discarded")

    def _retired(self, task: asyncio.Task, handle: ConnectionHandle) -> None:
        self._retiring.discard(task)
        if self._stale is handle:
            self._stale = None

    async def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.close()
        if self._retiring:
            await asyncio.gather(*self._retiring)


def get_connections(request: Request) -> ConnectionCache:
    """FastAPI dependency: the process-wide connection cache."""
    return request.app.state.connections
