"""Resolve redis connection configs from config sections or DSN strings.

Two entry points produce a :class:`~redistopo.models.ConnectionConfig`:

* :func:`resolve_from_bundle` decodes the ``redis`` section of a configuration
  source as-is. Whichever topology keys the section carries are trusted; the
  client factory applies sentinel > cluster > standalone precedence later.
* :func:`resolve_from_dsn` parses a single connection string of the form::

      redis://host:port?db=0&username=&password=&slaves=&sentinel_addrs=
          &master_name=&cluster_addrs=&max_redirects=

  and fills exactly one topology: sentinel when ``sentinel_addrs`` is set,
  otherwise cluster when ``cluster_addrs`` is set, otherwise standalone with
  the DSN host as master.

:func:`format_dsn` renders a config back into the same grammar.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import SplitResult, parse_qs, urlencode, urlsplit

from pydantic import ValidationError

from .config import DEFAULT_SECTION, ConfigReader
from .errors import (
    ConfigReaderError,
    DecodeError,
    InvalidDBIndexError,
    InvalidRedirectCountError,
    MalformedDSNError,
    RedisConfigError,
)
from .models import ClusterConfig, ConnectionConfig, SentinelConfig, StandaloneConfig, Topology

LOG = logging.getLogger(__name__)

DSN_SCHEME = "redis"
DSN_DEFAULT_MAX_REDIRECTS = 1

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def resolve_from_bundle(reader: ConfigReader, key: str = DEFAULT_SECTION) -> ConnectionConfig:
    """Decode the ``key`` section of ``reader`` into a config."""

    try:
        section = reader.read_section(key)
    except ConfigReaderError as exc:
        raise DecodeError(f"unmarshal {key} section error: {exc}") from exc
    try:
        config = ConnectionConfig.model_validate(dict(section))
    except ValidationError as exc:
        raise DecodeError(f"unmarshal {key} section error: {exc}") from exc
    LOG.debug(
        "Resolved redis config from section",
        extra={"section": key, "topology": _topology_label(config)},
    )
    return config


def resolve_from_dsn(dsn: str) -> ConnectionConfig:
    """Parse a redis DSN into a config with exactly one topology populated."""

    parts = _split_dsn(dsn)
    query = parse_qs(parts.query, keep_blank_values=True)

    def param(name: str) -> str:
        values = query.get(name)
        return values[0] if values else ""

    db = _parse_int(param("db") or "0", InvalidDBIndexError, "db")
    password = param("password")
    fields: dict[str, object] = {
        "db": db,
        "username": param("username"),
        "password": password,
    }

    sentinel_addrs = param("sentinel_addrs")
    cluster_addrs = param("cluster_addrs")
    if sentinel_addrs:
        # Sentinels share the main credential when configured through a DSN.
        fields["sentinel"] = SentinelConfig(
            master_name=param("master_name"),
            sentinel_addrs=tuple(sentinel_addrs.split(",")),
            sentinel_password=password,
        )
    elif cluster_addrs:
        max_redirects = _parse_int(
            param("max_redirects") or str(DSN_DEFAULT_MAX_REDIRECTS),
            InvalidRedirectCountError,
            "max_redirects",
        )
        fields["cluster"] = ClusterConfig(
            cluster_addrs=tuple(cluster_addrs.split(",")),
            max_redirects=max_redirects,
        )
    else:
        slaves = param("slaves")
        fields["standalone"] = StandaloneConfig(
            master=_authority(parts),
            slaves=tuple(slaves.split(",")) if slaves else (),
        )

    config = ConnectionConfig(**fields)
    LOG.debug("Resolved redis config from DSN", extra={"topology": _topology_label(config)})
    return config


def format_dsn(config: ConnectionConfig) -> str:
    """Render ``config`` as a DSN that :func:`resolve_from_dsn` reads back.

    Pool and timeout settings have no DSN parameters and are dropped, as is a
    sentinel password that differs from the main password.
    """

    params: list[tuple[str, str]] = []
    if config.db:
        params.append(("db", str(config.db)))
    if config.username:
        params.append(("username", config.username))
    if config.password:
        params.append(("password", config.password))

    topology = config.active_topology()
    if topology is Topology.SENTINEL:
        host = config.sentinel.sentinel_addrs[0]
        params.append(("sentinel_addrs", ",".join(config.sentinel.sentinel_addrs)))
        if config.sentinel.master_name:
            params.append(("master_name", config.sentinel.master_name))
    elif topology is Topology.CLUSTER:
        if not config.cluster.cluster_addrs:
            raise RedisConfigError("A cluster slot map cannot be expressed as a DSN")
        host = config.cluster.cluster_addrs[0]
        params.append(("cluster_addrs", ",".join(config.cluster.cluster_addrs)))
        if config.cluster.max_redirects != DSN_DEFAULT_MAX_REDIRECTS:
            params.append(("max_redirects", str(config.cluster.max_redirects)))
    elif topology is Topology.STANDALONE:
        host = config.standalone.master
        if config.standalone.slaves:
            params.append(("slaves", ",".join(config.standalone.slaves)))
    else:
        raise RedisConfigError("Config has no topology to render as a DSN")

    query = urlencode(params, safe=",:")
    return f"{DSN_SCHEME}://{host}" + (f"?{query}" if query else "")


def _split_dsn(dsn: str) -> SplitResult:
    try:
        parts = urlsplit(dsn)
        # Port validation is lazy in urllib; force it here.
        parts.port
    except ValueError as exc:
        raise MalformedDSNError(f"Invalid redis DSN: {exc}") from exc
    if parts.scheme != DSN_SCHEME:
        shown = parts.scheme or "<missing>"
        raise MalformedDSNError(f"Invalid redis DSN: unsupported scheme '{shown}'")
    if not _authority(parts):
        raise MalformedDSNError("Invalid redis DSN: missing host")
    return parts


def _authority(parts: SplitResult) -> str:
    """Return ``host[:port]`` without user-info, as written in the DSN."""

    return parts.netloc.rpartition("@")[2]


def _parse_int(value: str, error: type[RedisConfigError], name: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise error(f"Invalid {name} value '{value}': expected an integer")
    number = int(value)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise error(f"Invalid {name} value '{value}': out of range")
    return number


def _topology_label(config: ConnectionConfig) -> str:
    topology = config.active_topology()
    return topology.value if topology else "none"


__all__ = [
    "DSN_DEFAULT_MAX_REDIRECTS",
    "DSN_SCHEME",
    "format_dsn",
    "resolve_from_bundle",
    "resolve_from_dsn",
]
