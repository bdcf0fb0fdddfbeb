"""Build redis-py clients from resolved connection configs."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
import sys
import time
from typing import Any, Callable, Mapping, Sequence

import redis
from redis.cluster import ClusterNode, RedisCluster
from redis.exceptions import RedisClusterException, RedisError
from redis.sentinel import Sentinel

from .errors import ClientConstructionError
from .models import ConnectionConfig, Topology

LOG = logging.getLogger(__name__)

DEFAULT_PORT = 6379
DEFAULT_SENTINEL_PORT = 26379

# Settings redis-py has no equivalent for.
_UNSUPPORTED = ("min_idle_conns", "idle_timeout", "max_conn_age", "pool_timeout")


@dataclass(frozen=True, slots=True)
class DriverOptions:
    """Keyword arguments for redis-py plus the settings it cannot honour."""

    kwargs: Mapping[str, object]
    ignored: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class NodeLatency:
    """Round-trip time measured for one node."""

    address: str
    latency_ms: float | None
    error: str | None = None


def driver_options(config: ConnectionConfig, *, cluster: bool = False) -> DriverOptions:
    """Translate ``config`` into redis-py connection keyword arguments."""

    kwargs: dict[str, object] = {}
    if config.username:
        kwargs["username"] = config.username
    if config.password:
        kwargs["password"] = config.password
    if not cluster:
        kwargs["db"] = config.db
    if config.pool_size > 0:
        kwargs["max_connections"] = config.pool_size
    _set_timeout(kwargs, "socket_connect_timeout", config.dial_timeout)
    _set_timeout(kwargs, "socket_timeout", config.read_timeout)
    if config.idle_check_frequency > 0:
        kwargs["health_check_interval"] = config.idle_check_frequency
    elif config.idle_check_frequency < 0:
        kwargs["health_check_interval"] = 0

    ignored = [name for name in _UNSUPPORTED if getattr(config, name)]
    if config.write_timeout and config.write_timeout != config.read_timeout:
        ignored.append("write_timeout")
    return DriverOptions(kwargs=kwargs, ignored=tuple(ignored))


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """Split ``host[:port]`` or ``[v6]:port`` into a host and port."""

    if address.startswith("["):
        end = address.find("]")
        if end == -1:
            raise ClientConstructionError(f"Invalid address '{address}': unterminated IPv6 literal")
        host, rest = address[1:end], address[end + 1 :]
        if rest and not rest.startswith(":"):
            raise ClientConstructionError(f"Invalid address '{address}'")
        port_text = rest[1:]
    elif address.count(":") == 1:
        host, port_text = address.split(":")
    elif ":" in address:
        raise ClientConstructionError(f"Invalid address '{address}': wrap IPv6 hosts in brackets")
    else:
        host, port_text = address, ""
    if not host:
        raise ClientConstructionError(f"Invalid address '{address}': missing host")
    if not port_text:
        return host, default_port
    if not port_text.isdigit() or not 0 < int(port_text) < 65536:
        raise ClientConstructionError(f"Invalid address '{address}': bad port '{port_text}'")
    return host, int(port_text)


class ClientHandle:
    """Clients built for one topology, with read routing across replicas."""

    def __init__(
        self,
        topology: Topology,
        master: Any,
        replicas: Sequence[Any] = (),
        *,
        addresses: Sequence[str] = (),
        route_by_latency: bool = False,
        route_randomly: bool = False,
        sentinel: Sentinel | None = None,
    ) -> None:
        self._topology = topology
        self._master = master
        self._replicas = tuple(replicas)
        self._addresses = tuple(addresses)
        self._route_by_latency = route_by_latency
        self._route_randomly = route_randomly
        self._latencies: dict[int, float] = {}
        self._sentinel = sentinel

    @property
    def topology(self) -> Topology:
        return self._topology

    @property
    def sentinel(self) -> Sentinel | None:
        return self._sentinel

    @property
    def master(self) -> Any:
        return self._master

    @property
    def replicas(self) -> tuple[Any, ...]:
        return self._replicas

    @property
    def addresses(self) -> tuple[str, ...]:
        """Node labels in master-then-replica order."""

        return self._addresses

    def for_write(self) -> Any:
        return self._master

    def for_read(self) -> Any:
        """Pick the client for a read-only command.

        Latency routing wins over random routing when both are enabled; until
        :meth:`refresh_latencies` has run, latency routing reads from the master.
        """

        if not self._replicas or not (self._route_by_latency or self._route_randomly):
            return self._master
        nodes = (self._master, *self._replicas)
        if self._route_by_latency and self._latencies:
            fastest = min(self._latencies, key=self._latencies.__getitem__)
            return nodes[fastest]
        if self._route_randomly:
            return random.choice(nodes)
        return self._master

    def refresh_latencies(self) -> tuple[NodeLatency, ...]:
        """PING every node and remember the round-trip times."""

        results: list[NodeLatency] = []
        latencies: dict[int, float] = {}
        for index, node in enumerate((self._master, *self._replicas)):
            address = self._label(index)
            started = time.perf_counter()
            try:
                node.ping()
            except RedisError as exc:
                LOG.warning("Latency probe failed", extra={"node": address, "error": str(exc)})
                results.append(NodeLatency(address=address, latency_ms=None, error=str(exc)))
                continue
            latency_ms = (time.perf_counter() - started) * 1000
            latencies[index] = latency_ms
            results.append(NodeLatency(address=address, latency_ms=latency_ms))
        self._latencies = latencies
        return tuple(results)

    def close(self) -> None:
        """Close every client, raising the first failure once all were tried."""

        nodes = [self._master, *self._replicas]
        if self._sentinel is not None:
            nodes.extend(self._sentinel.sentinels)
        first_error: Exception | None = None
        for node in nodes:
            try:
                node.close()
            except Exception as exc:
                LOG.warning("Failed to close redis client", extra={"error": str(exc)})
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error

    def _label(self, index: int) -> str:
        if index < len(self._addresses):
            return self._addresses[index]
        return f"node-{index}"


def build_client(config: ConnectionConfig, logger: logging.Logger | None = None) -> ClientHandle:
    """Construct redis-py clients for the active topology of ``config``.

    Failures surface as :class:`ClientConstructionError`; deciding whether to
    exit is left to the caller.
    """

    log = logger or LOG
    topology = config.active_topology()
    if topology is None:
        raise ClientConstructionError(
            "No redis topology configured: set sentinel_addrs, cluster_addrs or master"
        )
    options = driver_options(config, cluster=topology is Topology.CLUSTER)
    if options.ignored:
        log.debug(
            "Ignoring options not supported by redis-py",
            extra={"options": ",".join(options.ignored)},
        )
    builder = _BUILDERS[topology]
    try:
        handle = builder(config, dict(options.kwargs))
    except (RedisError, RedisClusterException) as exc:
        raise ClientConstructionError(f"Failed to build {topology.value} client: {exc}") from exc
    log.info(
        "Built redis client",
        extra={"topology": topology.value, "nodes": ",".join(handle.addresses)},
    )
    return handle


def _build_sentinel(config: ConnectionConfig, kwargs: dict[str, object]) -> ClientHandle:
    settings = config.sentinel
    if not settings.master_name:
        raise ClientConstructionError("Sentinel topology requires master_name")
    sentinels = [parse_address(address, DEFAULT_SENTINEL_PORT) for address in settings.sentinel_addrs]
    sentinel_kwargs = {
        key: kwargs[key] for key in ("socket_connect_timeout", "socket_timeout") if key in kwargs
    }
    if settings.sentinel_password:
        sentinel_kwargs["password"] = settings.sentinel_password
    sentinel = Sentinel(sentinels, sentinel_kwargs=sentinel_kwargs, **kwargs)
    master = sentinel.master_for(settings.master_name)
    replicas: tuple[Any, ...] = ()
    addresses = [f"sentinel-master:{settings.master_name}"]
    if config.route_by_latency or config.route_randomly:
        replicas = (sentinel.slave_for(settings.master_name),)
        addresses.append(f"sentinel-replica:{settings.master_name}")
    return ClientHandle(
        Topology.SENTINEL,
        master,
        replicas,
        addresses=addresses,
        route_by_latency=config.route_by_latency,
        route_randomly=config.route_randomly,
        sentinel=sentinel,
    )


def _build_cluster(config: ConnectionConfig, kwargs: dict[str, object]) -> ClientHandle:
    settings = config.cluster
    seeds = [*settings.cluster_addrs, *(slot.master for slot in settings.cluster_slot_addrs)]
    addresses = list(dict.fromkeys(seeds))
    nodes = [ClusterNode(*parse_address(address)) for address in addresses]
    client = RedisCluster(
        startup_nodes=nodes,
        read_from_replicas=config.route_by_latency or config.route_randomly,
        **kwargs,
    )
    # redis-py counts request attempts rather than redirects.
    if settings.max_redirects < 0:
        client.RedisClusterRequestTTL = sys.maxsize
    elif settings.max_redirects > 0:
        client.RedisClusterRequestTTL = settings.max_redirects + 1
    return ClientHandle(Topology.CLUSTER, client, addresses=addresses)


def _build_standalone(config: ConnectionConfig, kwargs: dict[str, object]) -> ClientHandle:
    settings = config.standalone
    addresses = [settings.master, *settings.slaves]
    clients = []
    for address in addresses:
        host, port = parse_address(address)
        clients.append(redis.Redis(host=host, port=port, **kwargs))
    return ClientHandle(
        Topology.STANDALONE,
        clients[0],
        clients[1:],
        addresses=addresses,
        route_by_latency=config.route_by_latency,
        route_randomly=config.route_randomly,
    )


def _set_timeout(kwargs: dict[str, object], name: str, seconds: int) -> None:
    # 0 keeps the driver default, a negative value disables the timeout.
    if seconds > 0:
        kwargs[name] = float(seconds)
    elif seconds < 0:
        kwargs[name] = None


_BUILDERS: dict[Topology, Callable[[ConnectionConfig, dict[str, object]], ClientHandle]] = {
    Topology.SENTINEL: _build_sentinel,
    Topology.CLUSTER: _build_cluster,
    Topology.STANDALONE: _build_standalone,
}


__all__ = [
    "ClientHandle",
    "DEFAULT_PORT",
    "DEFAULT_SENTINEL_PORT",
    "DriverOptions",
    "NodeLatency",
    "build_client",
    "driver_options",
    "parse_address",
]
