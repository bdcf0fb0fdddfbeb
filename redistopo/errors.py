"""Error types raised while resolving and building redis connections."""

from __future__ import annotations


class RedisConfigError(ValueError):
    """Base error for configuration values that cannot be resolved."""


class DecodeError(RedisConfigError):
    """Raised when a configuration section cannot be decoded into a config."""


class MalformedDSNError(RedisConfigError):
    """Raised when a DSN is not a valid redis URI."""


class InvalidDBIndexError(RedisConfigError):
    """Raised when the DSN ``db`` parameter is present but not an integer."""


class InvalidRedirectCountError(RedisConfigError):
    """Raised when the DSN ``max_redirects`` parameter is present but not an integer."""


class ConfigReaderError(RuntimeError):
    """Base error for configuration sources."""


class SectionNotFoundError(ConfigReaderError):
    """Raised when the requested section is missing from the source."""

    def __init__(self, key: str, source: str | None = None) -> None:
        self.key = key
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Section '{key}' not found{where}")


class ConfigSourceError(ConfigReaderError):
    """Raised when a configuration source cannot be read or parsed."""


class ClientConstructionError(RuntimeError):
    """Raised when a driver client cannot be built from a config."""


__all__ = [
    "ClientConstructionError",
    "ConfigReaderError",
    "ConfigSourceError",
    "DecodeError",
    "InvalidDBIndexError",
    "InvalidRedirectCountError",
    "MalformedDSNError",
    "RedisConfigError",
    "SectionNotFoundError",
]
