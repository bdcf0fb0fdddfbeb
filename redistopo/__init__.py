"""Redis connection topology resolution."""

from __future__ import annotations

from .client import ClientHandle, build_client, driver_options
from .config import ConfigReader, MappingConfigReader, TomlConfigReader, save_config
from .errors import (
    ClientConstructionError,
    ConfigReaderError,
    ConfigSourceError,
    DecodeError,
    InvalidDBIndexError,
    InvalidRedirectCountError,
    MalformedDSNError,
    RedisConfigError,
    SectionNotFoundError,
)
from .models import (
    ClusterConfig,
    ClusterSlotAddr,
    ConnectionConfig,
    SentinelConfig,
    StandaloneConfig,
    Topology,
)
from .resolver import format_dsn, resolve_from_bundle, resolve_from_dsn

__version__ = "0.1.0"

__all__ = [
    "ClientConstructionError",
    "ClientHandle",
    "ClusterConfig",
    "ClusterSlotAddr",
    "ConfigReader",
    "ConfigReaderError",
    "ConfigSourceError",
    "ConnectionConfig",
    "DecodeError",
    "InvalidDBIndexError",
    "InvalidRedirectCountError",
    "MalformedDSNError",
    "MappingConfigReader",
    "RedisConfigError",
    "SectionNotFoundError",
    "SentinelConfig",
    "StandaloneConfig",
    "TomlConfigReader",
    "Topology",
    "__version__",
    "build_client",
    "driver_options",
    "format_dsn",
    "resolve_from_bundle",
    "resolve_from_dsn",
    "save_config",
]
