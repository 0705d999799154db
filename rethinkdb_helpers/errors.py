"""
Error types raised by rethinkdb_helpers.

Everything derives from RethinkHelperError so callers can catch the whole
family. Driver exceptions are chained as ``__cause__``.
"""


class RethinkHelperError(Exception):
    """Base class for all rethinkdb_helpers errors"""
    pass


class DriverUnavailable(RethinkHelperError):
    """Raised when the rethinkdb driver package cannot be imported"""
    pass


class ConnectionFailed(RethinkHelperError):
    """Raised when the driver cannot open a connection"""
    pass


class QueryFailed(RethinkHelperError):
    """Raised when the driver reports a query execution error"""
    pass


class CursorDrainFailed(RethinkHelperError):
    """Raised when a cursor fails while being materialized into a list"""
    pass


class AcquireFailed(RethinkHelperError):
    """Raised when a pool cannot hand out a connection"""
    pass


class InvalidConfig(RethinkHelperError):
    """Raised for configuration errors detected before any I/O"""
    pass
