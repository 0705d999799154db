"""
Shared constants for rethinkdb_helpers.

Centralizes connection and pool defaults so that config models, the
connection provider and the pool agree on them.
"""

# ── Connection defaults ──
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 28015
DEFAULT_DB = "test"
DEFAULT_USER = "admin"
DEFAULT_TIMEOUT = 20  # seconds, passed through to the driver's connect

# ── Table defaults ──
DEFAULT_PRIMARY_KEY = "id"

# ── Pool defaults ──
DEFAULT_POOL_MAX = 10
DEFAULT_POOL_MIN = 2
DEFAULT_IDLE_TIMEOUT = 30.0  # seconds

# Environment variable prefix for ConnectionOptions.from_env()
ENV_PREFIX = "RETHINKDB_"
