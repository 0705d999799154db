"""
Connection provider - open a single RethinkDB connection.

The caller owns the returned connection and is responsible for closing it:

    conn = await get_connection({"host": "localhost", "db": "app"})
    try:
        ...
    finally:
        await conn.close()
"""

import logging
from typing import Any, Mapping, Optional, Union

from .config import ConnectionOptions
from .driver import get_driver
from .errors import ConnectionFailed

logger = logging.getLogger(__name__)


async def get_connection(
    options: Optional[Union[ConnectionOptions, Mapping[str, Any]]] = None,
) -> Any:
    """
    Open one connection. No retry.

    Args:
        options: ConnectionOptions, a mapping of the same fields, or None
            for localhost:28015/test

    Returns:
        Driver connection

    Raises:
        DriverUnavailable: If the rethinkdb package is not installed
        ConnectionFailed: If the driver cannot connect
    """
    options = ConnectionOptions.from_value(options)
    r = get_driver()
    kwargs = options.connect_kwargs()

    try:
        conn = await r.connect(**kwargs)
    except Exception as e:
        raise ConnectionFailed(
            f"Cannot connect to {kwargs['host']}:{kwargs['port']}: {e}"
        ) from e

    logger.info(f"Connected to rethinkdb at {kwargs['host']}:{kwargs['port']}/{kwargs['db']}")
    return conn


# Short alias
conn = get_connection
