"""
Driver resolution - lazily import the rethinkdb package.

The driver is imported on first use so that a missing install surfaces as
DriverUnavailable at the call site instead of an ImportError at import time.
A single RethinkDB instance, switched to the asyncio loop type, is shared by
the whole package.
"""

import logging

from .errors import DriverUnavailable

logger = logging.getLogger(__name__)

_driver = None


def get_driver():
    """
    Return the shared asyncio-mode RethinkDB instance.

    Raises:
        DriverUnavailable: If the rethinkdb package is not installed
    """
    global _driver
    if _driver is None:
        try:
            from rethinkdb import RethinkDB
        except ImportError as e:
            raise DriverUnavailable(
                "rethinkdb is required. Install with: pip install rethinkdb"
            ) from e
        r = RethinkDB()
        r.set_loop_type("asyncio")
        _driver = r
        logger.debug("rethinkdb driver loaded (asyncio loop type)")
    return _driver


def is_op_failed(exc: BaseException) -> bool:
    """
    True if ``exc`` is, or was raised from, a ReqlOpFailedError.

    RethinkDB reports "already exists" and "does not exist" for databases,
    tables and indexes as ReqlOpFailedError. Setup and clear treat exactly
    these as idempotency collisions.
    """
    from rethinkdb.errors import ReqlOpFailedError

    while exc is not None:
        if isinstance(exc, ReqlOpFailedError):
            return True
        exc = exc.__cause__
    return False
