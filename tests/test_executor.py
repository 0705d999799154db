"""
Tests for rethinkdb_helpers.executor

Covers:
- Direct runs: scalar results unchanged, cursors drained to lists
- Error mapping: QueryFailed, CursorDrainFailed, AcquireFailed
- Pooled runs: one acquire and one release per call on every exit path
- Target resolution: pool vs connection, bound targets, bind()
"""

import asyncio

import pytest
from rethinkdb.errors import ReqlDriverError, ReqlOpFailedError

from rethinkdb_helpers import (
    AcquireFailed,
    CursorDrainFailed,
    Direct,
    InvalidConfig,
    Pooled,
    QueryFailed,
    bind,
    resolve_target,
    run,
    use_target,
)
from tests.fakes import CountingPool, FakeCursor, FakeQuery, FakeTable


@pytest.fixture
def t1(fake_r, conn, server):
    server.databases["test"]["t1"] = _table_with(
        {"id": 1, "cnt": "test1"},
        {"id": 2, "cnt": "test2"},
    )
    return fake_r.table("t1")


def _table_with(*docs):
    table = FakeTable()
    table.docs.extend(docs)
    return table


def _failing_query(error):
    def fn(conn):
        raise error
    return FakeQuery(fn, "failing")


class TestRunDirect:
    async def test_returns_document_unchanged(self, t1, conn):
        result = await run(t1.get(1), conn)
        assert result == {"id": 1, "cnt": "test1"}

    async def test_returns_none_for_missing_document(self, t1, conn):
        assert await run(t1.get(99), conn) is None

    async def test_drains_cursor_to_list(self, t1, conn):
        result = await run(t1, conn)
        assert isinstance(result, list)
        assert sorted(doc["cnt"] for doc in result) == ["test1", "test2"]

    async def test_keeps_cursor_order(self, conn):
        query = FakeQuery(lambda c: FakeCursor([{"n": 3}, {"n": 1}, {"n": 2}]), "ordered")
        assert await run(query, conn) == [{"n": 3}, {"n": 1}, {"n": 2}]

    async def test_list_result_is_not_treated_as_cursor(self, conn):
        query = FakeQuery(lambda c: ["a", "b"], "list")
        assert await run(query, conn) == ["a", "b"]

    async def test_query_error_raises_query_failed(self, conn):
        error = ReqlOpFailedError("Table `test.nope` does not exist.")
        with pytest.raises(QueryFailed) as exc:
            await run(_failing_query(error), conn)
        assert exc.value.__cause__ is error

    async def test_cursor_error_raises_drain_failed(self, conn):
        query = FakeQuery(lambda c: FakeCursor([{"n": 1}, {"n": 2}], fail_after=1), "broken")
        with pytest.raises(CursorDrainFailed) as exc:
            await run(query, conn)
        assert isinstance(exc.value.__cause__, ReqlDriverError)


class TestRunPooled:
    async def test_acquires_and_releases_once(self, t1, conn):
        pool = CountingPool(conn)
        result = await run(t1.get(2), pool)
        assert result == {"id": 2, "cnt": "test2"}
        assert pool.acquired == 1
        assert pool.released == [conn]

    async def test_releases_after_query_failure(self, conn):
        pool = CountingPool(conn)
        with pytest.raises(QueryFailed):
            await run(_failing_query(ReqlDriverError("boom")), pool)
        assert pool.acquired == 1
        assert pool.released == [conn]

    async def test_releases_after_drain_failure(self, conn):
        pool = CountingPool(conn)
        query = FakeQuery(lambda c: FakeCursor([{"n": 1}], fail_after=0), "broken")
        with pytest.raises(CursorDrainFailed):
            await run(query, pool)
        assert pool.released == [conn]

    async def test_acquire_failure_skips_query(self, conn, server):
        pool = CountingPool(conn, acquire_error=RuntimeError("exhausted"))
        query = FakeQuery(lambda c: 1, "never")
        with pytest.raises(AcquireFailed):
            await run(query, pool)
        assert pool.released == []
        assert "never" not in server.queries

    async def test_sync_release_is_supported(self, conn):
        released = []

        class SyncReleasePool:
            async def acquire(self):
                return conn

            def release(self, c):
                released.append(c)

        assert await run(FakeQuery(lambda c: 42, "answer"), SyncReleasePool()) == 42
        assert released == [conn]

    async def test_concurrent_runs_release_every_connection(self, t1, conn):
        pool = CountingPool(conn)
        results = await asyncio.gather(*[run(t1.get(1), pool) for _ in range(5)])
        assert all(r == {"id": 1, "cnt": "test1"} for r in results)
        assert pool.acquired == 5
        assert len(pool.released) == 5


class TestResolveTarget:
    def test_connection_is_direct(self, conn):
        assert resolve_target(conn) == Direct(conn)

    def test_pool_like_is_pooled(self, conn):
        pool = CountingPool(conn)
        assert resolve_target(pool) == Pooled(pool)

    def test_acquire_without_release_is_direct(self):
        class OnlyAcquire:
            def acquire(self):
                pass

        target = OnlyAcquire()
        assert isinstance(resolve_target(target), Direct)

    def test_resolved_target_passes_through(self, conn):
        target = Direct(conn)
        assert resolve_target(target) is target

    def test_missing_target_raises(self):
        with pytest.raises(InvalidConfig):
            resolve_target(None)


class TestBoundTarget:
    async def test_run_uses_bound_connection(self, t1, conn):
        with use_target(conn) as target:
            assert target == Direct(conn)
            assert await run(t1.get(1)) == {"id": 1, "cnt": "test1"}

    async def test_run_uses_bound_pool(self, t1, conn):
        pool = CountingPool(conn)
        with use_target(pool):
            assert await run(t1.get(1)) == {"id": 1, "cnt": "test1"}
        assert pool.released == [conn]

    async def test_binding_is_reset_on_exit(self, t1, conn):
        with use_target(conn):
            pass
        with pytest.raises(InvalidConfig):
            await run(t1.get(1))

    async def test_binding_reaches_gathered_tasks(self, t1, conn):
        with use_target(conn):
            results = await asyncio.gather(run(t1.get(1)), run(t1.get(2)))
        assert [r["id"] for r in results] == [1, 2]

    async def test_bind_returns_executor(self, t1, conn):
        pool = CountingPool(conn)
        executor = bind(pool)
        assert executor.target == Pooled(pool)
        assert await executor.run(t1.get(2)) == {"id": 2, "cnt": "test2"}
        assert pool.acquired == 1
