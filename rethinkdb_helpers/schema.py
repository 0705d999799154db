"""
Schema bootstrap and teardown.

setup() brings a database to the shape described by a SetupConfig:
- drops the database first when ``force`` is set
- creates the database if missing
- creates every configured table with its primary key, then its secondary
  indexes, one concurrent task per table

clear() deletes every document from a list of tables (or all tables).

Both are safe to re-run. Existence is checked before each create/drop; an
"already exists"/"does not exist" error from a concurrent writer is logged
and ignored. Per-table failures of any other kind are logged and do not
fail the batch.

Usage:
    await setup({"db": "app", "tables": {"users": {"pk": "email", "sk": "name"}}}, conn)
    await clear(["users"], conn)
"""

import asyncio
import inspect
import logging
from collections.abc import Iterable
from typing import Any, List, Mapping, Optional, Union

from .config import IndexConfig, SetupConfig, TableConfig
from .connection import get_connection
from .driver import get_driver, is_op_failed
from .errors import QueryFailed
from .executor import current_target, resolve_target, run

logger = logging.getLogger(__name__)



async def setup(
    config: Union[SetupConfig, Mapping[str, Any], None],
    target: Any = None,
) -> bool:
    """
    Ensure the database, tables and indexes in ``config`` exist.

    Args:
        config: SetupConfig or an equivalent mapping
        target: Connection or pool. When omitted and nothing is bound, a
            connection is opened from the config and closed afterwards.

    Returns:
        True once every table task has settled

    Raises:
        InvalidConfig: If ``config`` does not validate
        ConnectionFailed: If a connection has to be opened and cannot be
        QueryFailed: If dropping/creating the database fails for a reason
            other than it already existing or not existing
    """
    config = SetupConfig.from_value(config)
    r = get_driver()

    owned = None
    if target is None and current_target() is None:
        owned = await get_connection(config.connection_options())
        target = owned
    target = resolve_target(target)

    logger.info(f"Setting up database {config.db} ({len(config.tables)} table(s))")
    try:
        databases = await run(r.db_list(), target)

        if config.force and config.db in databases:
            dropped = await _run_idempotent(
                r.db_drop(config.db), target, f"Database {config.db} already dropped"
            )
            if dropped:
                logger.info(f"Dropped database {config.db}")
            databases = [d for d in databases if d != config.db]

        if config.db not in databases:
            created = await _run_idempotent(
                r.db_create(config.db), target, f"Database {config.db} already exists"
            )
            if created:
                logger.info(f"Created database {config.db}")

        existing = set(await run(r.db(config.db).table_list(), target))
        names = list(config.tables)
        results = await asyncio.gather(
            *[
                _ensure_table(r, config.db, name, config.tables[name], name in existing, target)
                for name in names
            ],
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(f"Setup of table {config.db}.{name} failed: {result}")
    finally:
        if owned is not None:
            await _close(owned)

    logger.info(f"Database {config.db} is set up")
    return True


async def clear(
    tables: Any = None,
    target: Any = None,
    *,
    db: Optional[str] = None,
) -> bool:
    """
    Delete all documents from ``tables``, or from every table when omitted.

    ``clear(conn)`` is accepted as shorthand for ``clear(None, conn)``.

    Args:
        tables: Table name or an iterable of names; None for all tables of
            the database
        target: Connection, pool, or None for the bound target
        db: Database holding the tables; defaults to the connection's

    Returns:
        True once every deletion has been attempted

    Raises:
        InvalidConfig: If no target is given and none is bound
    """
    if target is None and tables is not None and not _is_table_names(tables):
        target, tables = tables, None
    target = resolve_target(target)

    r = get_driver()
    scope = r.db(db) if db else r

    if tables is None:
        names = await _list_tables(scope, target)
    elif isinstance(tables, str):
        names = [tables]
    else:
        names = list(tables)

    results = await asyncio.gather(
        *[_delete_all(scope, name, target) for name in names],
        return_exceptions=True,
    )
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.warning(f"Clearing table {name} failed: {result}")

    logger.debug(f"Cleared {len(names)} table(s)")
    return True


# Short alias
clear_tables = clear


async def _ensure_table(
    r: Any,
    db: str,
    name: str,
    table: TableConfig,
    exists: bool,
    target: Any,
) -> None:
    if not exists:
        created = await _run_idempotent(
            r.db(db).table_create(name, primary_key=table.pk),
            target,
            f"Table {db}.{name} already exists",
        )
        if created:
            logger.debug(f"Created table {db}.{name} (primary key {table.pk})")

    indexes = table.indexes
    if not indexes:
        return

    table_query = r.db(db).table(name)
    present = set(await run(table_query.index_list(), target))
    for index in indexes:
        if index.name in present:
            continue
        created = await _run_idempotent(
            _index_create(r, table_query, index),
            target,
            f"Index {index.name} already exists on {db}.{name}",
        )
        if created:
            logger.debug(f"Created index {index.name} on {db}.{name}")
    await run(table_query.index_wait(*[index.name for index in indexes]), target)


def _index_create(r: Any, table_query: Any, index: IndexConfig) -> Any:
    options = {}
    if index.multi:
        options["multi"] = True
    if index.geo:
        options["geo"] = True

    if not index.fields:
        return table_query.index_create(index.name, **options)

    fields = [r.row[f] if isinstance(f, str) else f for f in index.fields]
    if len(fields) == 1:
        return table_query.index_create(index.name, fields[0], **options)
    return table_query.index_create(index.name, fields, **options)


def _is_table_names(value: Any) -> bool:
    # a name, or any non-mapping iterable of names (list, generator, dict keys)
    if isinstance(value, str):
        return True
    return isinstance(value, Iterable) and not isinstance(value, Mapping)


async def _list_tables(scope: Any, target: Any) -> List[str]:
    try:
        return list(await run(scope.table_list(), target))
    except QueryFailed as e:
        if not is_op_failed(e):
            raise
        logger.debug(f"Nothing to clear: {e}")
        return []


async def _delete_all(scope: Any, name: str, target: Any) -> None:
    await _run_idempotent(
        scope.table(name).delete(), target, f"Table {name} does not exist"
    )


async def _run_idempotent(query: Any, target: Any, collision: str) -> bool:
    """Run a DDL/delete query. False if it hit an exists/not-exists collision."""
    try:
        await run(query, target)
    except QueryFailed as e:
        if not is_op_failed(e):
            raise
        logger.debug(f"{collision}: {e}")
        return False
    return True


async def _close(conn: Any) -> None:
    result = conn.close()
    if inspect.isawaitable(result):
        await result
