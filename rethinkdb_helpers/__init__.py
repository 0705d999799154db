"""
rethinkdb_helpers - connect, run, setup, clear and pool for RethinkDB.

A thin asyncio layer over the rethinkdb driver:
- conn / get_connection: open one connection
- create_pool: bounded connection pool with idle eviction
- run: execute a query on a connection or pool; cursors come back as lists
- setup: idempotently create a database, its tables and indexes
- clear: delete every document from some or all tables

Quick Start:
    from rethinkdb import r
    from rethinkdb_helpers import conn, run, setup, clear, create_pool

    c = await conn({"host": "localhost", "db": "app"})
    await setup({"db": "app", "tables": {"users": {"pk": "email", "sk": "name"}}}, c)

    await run(r.table("users").insert({"email": "bob@example.com", "name": "Bob"}), c)
    users = await run(r.table("users"), c)          # list, never a cursor

    pool = create_pool({"db": "app"}, {"max": 10, "min": 2})
    bob = await run(r.table("users").get("bob@example.com"), pool)

    await clear(["users"], c)
"""

from .config import (
    ConnectionOptions,
    IndexConfig,
    PoolOptions,
    SetupConfig,
    TableConfig,
    load_setup_config,
)
from .connection import conn, get_connection
from .errors import (
    AcquireFailed,
    ConnectionFailed,
    CursorDrainFailed,
    DriverUnavailable,
    InvalidConfig,
    QueryFailed,
    RethinkHelperError,
)
from .executor import (
    Direct,
    ExecutionTarget,
    Executor,
    Pooled,
    bind,
    resolve_target,
    run,
    use_target,
)
from .pool import ConnectionPool, create_pool
from .schema import clear, clear_tables, setup

__version__ = "0.2.0"

__all__ = [
    # Operations
    "conn",
    "get_connection",
    "run",
    "setup",
    "clear",
    "clear_tables",
    "create_pool",
    "bind",
    "use_target",
    "resolve_target",
    # Types
    "ConnectionPool",
    "Executor",
    "ExecutionTarget",
    "Direct",
    "Pooled",
    # Config
    "ConnectionOptions",
    "PoolOptions",
    "IndexConfig",
    "TableConfig",
    "SetupConfig",
    "load_setup_config",
    # Errors
    "RethinkHelperError",
    "DriverUnavailable",
    "ConnectionFailed",
    "QueryFailed",
    "CursorDrainFailed",
    "AcquireFailed",
    "InvalidConfig",
]
