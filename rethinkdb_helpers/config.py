"""
Configuration models - connection, pool and schema setup options.

All models accept the short/camelCase keys used by existing setup
dictionaries (``db``/``database``, ``pk``, ``sk``, ``max``, ``idleTimeout``)
so that plain dicts and YAML files validate directly.

Example setup.yaml:
    host: localhost
    port: 28015
    db: app
    force: false
    tables:
      users: {pk: email, sk: name}
      events:
        sk: {name: by_owner_day, fields: [owner, day]}
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .constants import (
    DEFAULT_DB,
    DEFAULT_HOST,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_POOL_MAX,
    DEFAULT_POOL_MIN,
    DEFAULT_PORT,
    DEFAULT_PRIMARY_KEY,
    DEFAULT_TIMEOUT,
    DEFAULT_USER,
    ENV_PREFIX,
)
from .errors import InvalidConfig

logger = logging.getLogger(__name__)


class ConnectionOptions(BaseModel):
    """Where and how to connect. ``db`` stays None until explicitly given."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    db: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("db", "database")
    )
    user: str = DEFAULT_USER
    password: str = ""
    timeout: int = DEFAULT_TIMEOUT

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def from_value(
        cls, value: Union["ConnectionOptions", Mapping[str, Any], None]
    ) -> "ConnectionOptions":
        """Build options from None, a mapping, or an existing instance."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        try:
            return cls.model_validate(dict(value))
        except ValidationError as e:
            raise InvalidConfig(f"Invalid connection options: {e}") from e

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "ConnectionOptions":
        """
        Read options from ``<prefix>HOST``, ``<prefix>PORT``, ``<prefix>DB``,
        ``<prefix>USER``, ``<prefix>PASSWORD`` and ``<prefix>TIMEOUT``.
        Unset variables fall back to the defaults.
        """
        values = {}
        for name in ("host", "port", "db", "user", "password", "timeout"):
            raw = os.environ.get(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls.from_value(values)

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for the driver's connect()."""
        return {
            "host": self.host,
            "port": self.port,
            "db": self.db or DEFAULT_DB,
            "user": self.user,
            "password": self.password,
            "timeout": self.timeout,
        }


class PoolOptions(BaseModel):
    """Sizing and idle eviction for ConnectionPool.

    Timeouts are in seconds, except the camelCase ``idleTimeout`` key, which is
    read as milliseconds.
    """

    max_size: int = Field(
        default=DEFAULT_POOL_MAX, validation_alias=AliasChoices("max_size", "max")
    )
    min_size: int = Field(
        default=DEFAULT_POOL_MIN, validation_alias=AliasChoices("min_size", "min")
    )
    idle_timeout: float = Field(default=DEFAULT_IDLE_TIMEOUT)
    acquire_timeout: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("acquire_timeout", "acquireTimeout"),
    )

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _idle_timeout_millis(cls, data: Any) -> Any:
        # `idleTimeout` from existing pool configs is in milliseconds
        if isinstance(data, Mapping) and "idleTimeout" in data and "idle_timeout" not in data:
            data = dict(data)
            millis = data.pop("idleTimeout")
            data["idle_timeout"] = millis / 1000 if isinstance(millis, (int, float)) else millis
        return data

    @model_validator(mode="after")
    def _check_sizes(self) -> "PoolOptions":
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        if self.min_size < 0 or self.min_size > self.max_size:
            raise ValueError("min_size must be between 0 and max_size")
        if self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        return self

    @classmethod
    def from_value(
        cls, value: Union["PoolOptions", Mapping[str, Any], None]
    ) -> "PoolOptions":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        try:
            return cls.model_validate(dict(value))
        except ValidationError as e:
            raise InvalidConfig(f"Invalid pool options: {e}") from e


class IndexConfig(BaseModel):
    """
    A secondary index.

    ``fields`` builds a compound index; each entry is a ReQL expression
    or a field name (turned into ``r.row[name]`` at creation time).
    """

    name: str
    multi: bool = False
    geo: bool = False
    fields: Optional[List[Any]] = None

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)


class TableConfig(BaseModel):
    """Primary key and secondary indexes of one table"""

    pk: str = Field(
        default=DEFAULT_PRIMARY_KEY,
        validation_alias=AliasChoices("pk", "primary_key", "primaryKey"),
    )
    sk: Union[None, str, IndexConfig, List[Union[str, IndexConfig]]] = Field(
        default=None,
        validation_alias=AliasChoices("sk", "secondary_index", "secondaryIndex"),
    )

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    @property
    def indexes(self) -> List[IndexConfig]:
        """Secondary indexes normalized to a list of IndexConfig."""
        if self.sk is None:
            return []
        specs = self.sk if isinstance(self.sk, list) else [self.sk]
        return [IndexConfig(name=s) if isinstance(s, str) else s for s in specs]


class SetupConfig(BaseModel):
    """Target database and the tables it should contain"""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    db: str = Field(default=DEFAULT_DB, validation_alias=AliasChoices("db", "database"))
    user: str = DEFAULT_USER
    password: str = ""
    force: bool = False
    tables: Dict[str, TableConfig] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("tables", mode="before")
    @classmethod
    def _empty_tables(cls, value: Any) -> Any:
        # `users:` with no body in YAML, or {"users": None} in code
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {name: (spec or {}) for name, spec in value.items()}
        return value

    @classmethod
    def from_value(
        cls, value: Union["SetupConfig", Mapping[str, Any], None]
    ) -> "SetupConfig":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        try:
            return cls.model_validate(dict(value))
        except ValidationError as e:
            raise InvalidConfig(f"Invalid setup config: {e}") from e

    def connection_options(self) -> ConnectionOptions:
        return ConnectionOptions(
            host=self.host,
            port=self.port,
            db=self.db,
            user=self.user,
            password=self.password,
        )


def load_setup_config(file_path: Union[str, Path]) -> SetupConfig:
    """
    Load a SetupConfig from a YAML file.

    Args:
        file_path: Path to YAML file

    Returns:
        Validated SetupConfig

    Raises:
        InvalidConfig: If the file is missing, not valid YAML, or does not
            describe a valid setup
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise InvalidConfig(f"Setup file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfig(f"Invalid YAML in {file_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise InvalidConfig(f"Setup file must contain a mapping: {file_path}")

    config = SetupConfig.from_value(data)
    logger.debug(f"Loaded setup config from {file_path}: {len(config.tables)} table(s)")
    return config
