"""Fixtures for tests against a live RethinkDB server.

Configuration via environment variables:
    RETHINKDB_TEST_HOST  - Required. Host of a disposable RethinkDB server.
    RETHINKDB_TEST_PORT  - Driver port (default: 28015).

The tests drop and recreate the ``helpers_test`` database.
"""

import os

import pytest

from rethinkdb_helpers import ConnectionOptions, QueryFailed, get_connection, run
from rethinkdb_helpers.driver import get_driver

TEST_DB = "helpers_test"


@pytest.fixture
def options():
    host = os.environ.get("RETHINKDB_TEST_HOST")
    if not host:
        pytest.skip("RETHINKDB_TEST_HOST not set")
    port = int(os.environ.get("RETHINKDB_TEST_PORT", "28015"))
    return ConnectionOptions(host=host, port=port, db=TEST_DB)


@pytest.fixture
def r():
    return get_driver()


@pytest.fixture
async def conn(options, r):
    connection = await get_connection(options)
    try:
        await run(r.db_drop(TEST_DB), connection)
    except QueryFailed:
        pass  # nothing to drop on a fresh server
    await run(r.db_create(TEST_DB), connection)
    await run(r.table_create("t1"), connection)
    await run(r.table("t1").insert([{"id": 1, "cnt": "test1"}, {"id": 2, "cnt": "test2"}]), connection)
    yield connection
    await connection.close()
