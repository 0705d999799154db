"""
ConnectionPool - bounded, reusable RethinkDB connections.

Usage:
    pool = create_pool({"host": "localhost", "db": "app"}, {"max": 10, "min": 2})
    await pool.initialize()          # optional: pre-open min_size connections

    docs = await run(r.table("users"), pool)

    async with pool.acquire_connection() as conn:
        await r.table("users").get("bob").run(conn)

    await pool.close()

Connections are opened lazily on acquire. At most ``max_size`` are handed out
at once; further callers wait on the pool semaphore. Idle connections older
than ``idle_timeout`` are closed while the pool holds more than ``min_size``
connections. This happens on every acquire/release and from a background
maintenance loop, started on first use, that also tops the pool up to
``min_size``.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Mapping, Optional, Set, Tuple, Union

from .config import ConnectionOptions, PoolOptions
from .connection import get_connection
from .errors import AcquireFailed, InvalidConfig

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Manages a bounded set of connections to one database.

    One instance per database target, shared by everything that runs
    queries against it.
    """

    def __init__(
        self,
        connection_options: ConnectionOptions,
        options: Optional[PoolOptions] = None,
        factory: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        self._connection_options = connection_options
        self._options = options or PoolOptions()
        self._factory = factory or (lambda: get_connection(self._connection_options))
        self._semaphore = asyncio.Semaphore(self._options.max_size)
        self._idle: Deque[Tuple[Any, float]] = deque()
        self._in_use: Set[Any] = set()
        self._closed = False
        self._clock = time.monotonic
        self._maintenance_task: Optional[asyncio.Task] = None

    @property
    def options(self) -> PoolOptions:
        return self._options

    @property
    def connection_options(self) -> ConnectionOptions:
        return self._connection_options

    @property
    def size(self) -> int:
        """Open connections owned by the pool, idle or handed out."""
        return len(self._idle) + len(self._in_use)

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def in_use(self) -> int:
        return len(self._in_use)

    @property
    def closed(self) -> bool:
        return self._closed

    async def initialize(self) -> None:
        """Open connections until the pool holds ``min_size``."""
        if self._closed:
            raise AcquireFailed("Connection pool is closed")
        try:
            await self._fill_min()
        except Exception as e:
            raise AcquireFailed(f"Cannot open pooled connection: {e}") from e
        self._start_maintenance()
        logger.info(
            f"Connection pool initialized ({self.size} connection(s), "
            f"max {self._options.max_size})"
        )

    async def acquire(self) -> Any:
        """
        Take a connection, waiting while ``max_size`` are handed out.

        Raises:
            AcquireFailed: If the pool is closed, the acquire timeout expires,
                or a new connection cannot be opened
        """
        if self._closed:
            raise AcquireFailed("Connection pool is closed")
        self._start_maintenance()

        try:
            if self._options.acquire_timeout is not None:
                await asyncio.wait_for(
                    self._semaphore.acquire(), self._options.acquire_timeout
                )
            else:
                await self._semaphore.acquire()
        except asyncio.TimeoutError as e:
            raise AcquireFailed(
                f"No connection available within {self._options.acquire_timeout}s"
            ) from e

        if self._closed:
            self._semaphore.release()
            raise AcquireFailed("Connection pool is closed")

        try:
            await self._evict_idle()
            conn = self._take_idle()
            if conn is None:
                conn = await self._factory()
        except Exception as e:
            self._semaphore.release()
            raise AcquireFailed(f"Cannot open pooled connection: {e}") from e
        except BaseException:
            # cancelled while opening; the slot must still be returned
            self._semaphore.release()
            raise

        self._in_use.add(conn)
        logger.debug(f"Acquired connection ({self.in_use}/{self._options.max_size} in use)")
        return conn

    async def release(self, conn: Any) -> None:
        """Return a connection taken with acquire(). Closed connections are dropped."""
        if conn not in self._in_use:
            logger.warning("Ignoring release of a connection not acquired from this pool")
            return

        self._in_use.discard(conn)
        try:
            if self._closed or not _is_open(conn):
                await self._destroy(conn)
            else:
                self._idle.append((conn, self._clock()))
                await self._evict_idle()
        finally:
            self._semaphore.release()
        logger.debug(f"Released connection ({self.in_use}/{self._options.max_size} in use)")

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncIterator[Any]:
        """Acquire a connection for the duration of an ``async with`` block."""
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)

    async def run(self, query: Any) -> Any:
        """Run a query on a pooled connection. See executor.run()."""
        from .executor import run

        return await run(query, self)

    async def evict_idle(self) -> int:
        """Close idle connections past ``idle_timeout``. Returns how many were closed."""
        return await self._evict_idle()

    async def close(self) -> None:
        """Close idle connections and refuse further acquires.

        Connections still handed out are closed when released.
        """
        self._closed = True
        if self._maintenance_task is not None:
            self._maintenance_task.cancel()
            try:
                await self._maintenance_task
            except asyncio.CancelledError:
                pass
            self._maintenance_task = None
        while self._idle:
            conn, _ = self._idle.popleft()
            await self._destroy(conn)
        logger.info("Connection pool closed")

    def _start_maintenance(self) -> None:
        if self._maintenance_task is not None or self._closed:
            return

        async def maintenance_loop():
            interval = self._options.idle_timeout / 2
            while not self._closed:
                try:
                    await self._fill_min()
                except Exception as e:
                    logger.warning(f"Cannot top up connection pool: {e}")
                await asyncio.sleep(interval)
                await self._evict_idle()

        self._maintenance_task = asyncio.create_task(maintenance_loop())
        logger.debug("Started connection pool maintenance loop")

    async def _fill_min(self) -> None:
        while not self._closed and self.size < self._options.min_size:
            conn = await self._factory()
            if self._closed:
                await self._destroy(conn)
                return
            self._idle.append((conn, self._clock()))

    def _take_idle(self) -> Optional[Any]:
        # Most recently released first, so older connections age out
        while self._idle:
            conn, _ = self._idle.pop()
            if _is_open(conn):
                return conn
            logger.debug("Dropping idle connection closed by the server")
        return None

    async def _evict_idle(self) -> int:
        evicted = 0
        deadline = self._clock() - self._options.idle_timeout
        while (
            self._idle
            and self.size > self._options.min_size
            and self._idle[0][1] <= deadline
        ):
            conn, _ = self._idle.popleft()
            await self._destroy(conn)
            evicted += 1
        if evicted:
            logger.debug(f"Evicted {evicted} idle connection(s)")
        return evicted

    async def _destroy(self, conn: Any) -> None:
        try:
            result = conn.close()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Error closing pooled connection: {e}")


def _is_open(conn: Any) -> bool:
    is_open = getattr(conn, "is_open", None)
    return is_open() if callable(is_open) else True


def create_pool(
    connection_options: Union[ConnectionOptions, Mapping[str, Any], None],
    pool_options: Union[PoolOptions, Mapping[str, Any], None] = None,
) -> ConnectionPool:
    """
    Create a pool for one database. No connection is opened here.

    Raises:
        InvalidConfig: If ``connection_options`` has no ``db``, or the pool
            options are out of range
    """
    if connection_options is None:
        raise InvalidConfig("Bad connection options: db is required")
    options = ConnectionOptions.from_value(connection_options)
    if not options.db:
        raise InvalidConfig("Bad connection options: db is required")

    return ConnectionPool(options, PoolOptions.from_value(pool_options))
