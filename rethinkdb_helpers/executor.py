"""
Query executor - run a ReQL query against a connection or a pool.

run() resolves its target once into an ExecutionTarget:
- Direct(connection): the query runs on the caller's connection
- Pooled(pool): a connection is acquired, used for this one query, and
  released on every exit path

Cursors never escape: a cursor result is drained into a list before run()
returns.

Three ways to supply the target:

    docs = await run(r.table("users"), conn)

    users = bind(pool)
    doc = await users.run(r.table("users").get("bob"))

    with use_target(pool):
        doc = await run(r.table("users").get("bob"))
"""

import inspect
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Union

from .errors import AcquireFailed, CursorDrainFailed, InvalidConfig, QueryFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Direct:
    """Run on a connection owned by the caller"""
    connection: Any


@dataclass(frozen=True)
class Pooled:
    """Acquire from and release to a pool around each query"""
    pool: Any


ExecutionTarget = Union[Direct, Pooled]

_bound_target: ContextVar[Optional[Any]] = ContextVar(
    "rethinkdb_helpers_target", default=None
)


def current_target() -> Optional[Any]:
    """The connection or pool bound with use_target(), if any."""
    return _bound_target.get()


@contextmanager
def use_target(target: Any) -> Iterator[ExecutionTarget]:
    """Bind a connection or pool for run() calls made without one.

    The binding follows the current context, including tasks spawned
    from it with asyncio.gather().
    """
    token = _bound_target.set(target)
    try:
        yield resolve_target(target)
    finally:
        _bound_target.reset(token)


def resolve_target(target: Any = None) -> ExecutionTarget:
    """
    Classify ``target`` as Direct or Pooled.

    Anything exposing callable ``acquire`` and ``release`` is a pool; any
    other object is a connection. None falls back to the bound target.

    Raises:
        InvalidConfig: If no target is given and none is bound
    """
    if isinstance(target, (Direct, Pooled)):
        return target
    if target is None:
        target = _bound_target.get()
        if target is None:
            raise InvalidConfig("No connection or pool given and none bound")
        if isinstance(target, (Direct, Pooled)):
            return target
    if callable(getattr(target, "acquire", None)) and callable(getattr(target, "release", None)):
        return Pooled(target)
    return Direct(target)


async def run(query: Any, target: Any = None) -> Any:
    """
    Run ``query`` and return its result with cursors drained to a list.

    Args:
        query: ReQL query object
        target: Connection, pool, or None to use the bound target

    Returns:
        The query's document/scalar result, or a list of documents

    Raises:
        AcquireFailed: If the pool cannot provide a connection
        QueryFailed: If the driver reports an error running the query
        CursorDrainFailed: If iterating the result cursor fails
        InvalidConfig: If no target is given and none is bound
    """
    resolved = resolve_target(target)

    if isinstance(resolved, Direct):
        return await _execute(query, resolved.connection)

    pool = resolved.pool
    try:
        conn = await pool.acquire()
    except AcquireFailed:
        raise
    except Exception as e:
        raise AcquireFailed(f"Cannot acquire connection: {e}") from e

    try:
        return await _execute(query, conn)
    finally:
        result = pool.release(conn)
        if inspect.isawaitable(result):
            await result


async def _execute(query: Any, conn: Any) -> Any:
    try:
        result = await query.run(conn)
    except Exception as e:
        raise QueryFailed(f"Query failed: {e}") from e

    if _is_cursor(result):
        return await _drain(result)
    return result


def _is_cursor(result: Any) -> bool:
    return hasattr(result, "__aiter__")


async def _drain(cursor: Any) -> List[Any]:
    try:
        return [doc async for doc in cursor]
    except Exception as e:
        raise CursorDrainFailed(f"Cursor failed while reading results: {e}") from e


class Executor:
    """
    A run() pre-bound to one connection or pool.

    Usage:
        db = bind(pool)
        await db.setup({"db": "app", "tables": {"users": {}}})
        docs = await db.run(r.table("users"))
        await db.clear(["users"])
    """

    def __init__(self, target: Any):
        self._target = resolve_target(target)

    @property
    def target(self) -> ExecutionTarget:
        return self._target

    async def run(self, query: Any) -> Any:
        return await run(query, self._target)

    async def setup(self, config: Any) -> bool:
        from .schema import setup

        return await setup(config, self._target)

    async def clear(self, tables: Optional[List[str]] = None, db: Optional[str] = None) -> bool:
        from .schema import clear

        return await clear(tables, self._target, db=db)


def bind(target: Any) -> Executor:
    """Return an Executor whose methods run against ``target``."""
    return Executor(target)
