"""Connection configuration models shared by the resolver and client factory."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Mapping

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

REDACTED = "******"
DEFAULT_MAX_REDIRECTS = 3


class Topology(str, Enum):
    """Deployment shapes a connection config can describe."""

    SENTINEL = "sentinel"
    CLUSTER = "cluster"
    STANDALONE = "standalone"


def _split_addresses(value: object) -> object:
    """Accept comma-separated strings wherever an address list is expected."""

    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split(",")) if value else ()
    return value


Addresses = Annotated[tuple[str, ...], BeforeValidator(_split_addresses)]


class SentinelConfig(BaseModel):
    """Sentinel-mediated failover settings."""

    model_config = ConfigDict(frozen=True)

    master_name: str = ""
    sentinel_addrs: Addresses = ()
    sentinel_password: str = Field(default="", repr=False)

    def is_set(self) -> bool:
        return bool(self.sentinel_addrs)


class ClusterSlotAddr(BaseModel):
    """One shard of an explicit cluster map: a master and its replicas."""

    model_config = ConfigDict(frozen=True)

    master: str
    slaves: Addresses = ()


class ClusterConfig(BaseModel):
    """Sharded cluster settings."""

    model_config = ConfigDict(frozen=True)

    cluster_addrs: Addresses = ()
    # -1 means unlimited redirects.
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    cluster_slot_addrs: tuple[ClusterSlotAddr, ...] = ()

    def is_set(self) -> bool:
        return bool(self.cluster_addrs or self.cluster_slot_addrs)


class StandaloneConfig(BaseModel):
    """Single master, optionally with read replicas."""

    model_config = ConfigDict(frozen=True)

    master: str = ""
    slaves: Addresses = ()

    def is_set(self) -> bool:
        return bool(self.master)


_TOPOLOGY_SECTIONS: dict[str, type[BaseModel]] = {
    "sentinel": SentinelConfig,
    "cluster": ClusterConfig,
    "standalone": StandaloneConfig,
}


class ConnectionConfig(BaseModel):
    """Resolved redis connection settings handed to the client factory.

    Durations are whole seconds. A zero pool or timeout value leaves the driver
    default in place; ``-1`` disables the corresponding timeout or check. The
    topology sub-sections are written inline in configuration files, so their
    keys (``master_name``, ``cluster_addrs``, ``master`` ...) sit next to the
    auth and pool keys.
    """

    model_config = ConfigDict(frozen=True)

    username: str = ""
    password: str = Field(default="", repr=False)
    # Ignored by cluster deployments.
    db: int = 0

    pool_size: int = 0
    min_idle_conns: int = 0
    idle_timeout: int = 0
    idle_check_frequency: int = 0
    max_conn_age: int = 0
    pool_timeout: int = 0

    dial_timeout: int = 0
    read_timeout: int = 0
    write_timeout: int = 0

    route_by_latency: bool = False
    route_randomly: bool = False

    sentinel: SentinelConfig = Field(default_factory=SentinelConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    standalone: StandaloneConfig = Field(default_factory=StandaloneConfig)

    @model_validator(mode="before")
    @classmethod
    def _lift_inline_sections(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        flat = dict(data)
        for name, model in _TOPOLOGY_SECTIONS.items():
            inline = {key: flat.pop(key) for key in model.model_fields if key in flat}
            nested = flat.get(name)
            if not inline:
                continue
            if isinstance(nested, BaseModel):
                nested = nested.model_dump()
            if nested is not None and not isinstance(nested, Mapping):
                continue
            flat[name] = {**inline, **(nested or {})}
        return flat

    def active_topology(self) -> Topology | None:
        """Return the populated topology, checked sentinel first, then cluster."""

        if self.sentinel.is_set():
            return Topology.SENTINEL
        if self.cluster.is_set():
            return Topology.CLUSTER
        if self.standalone.is_set():
            return Topology.STANDALONE
        return None

    def redacted(self) -> ConnectionConfig:
        """Return a copy with every password masked."""

        updates: dict[str, object] = {}
        if self.password:
            updates["password"] = REDACTED
        if self.sentinel.sentinel_password:
            updates["sentinel"] = self.sentinel.model_copy(update={"sentinel_password": REDACTED})
        return self.model_copy(update=updates)

    def to_section(self) -> dict[str, object]:
        """Flatten into the inline section shape, dropping zero values."""

        section: dict[str, object] = {}
        for name, field in type(self).model_fields.items():
            if name in _TOPOLOGY_SECTIONS:
                continue
            value = getattr(self, name)
            if value != field.default:
                section[name] = value
        for name in _TOPOLOGY_SECTIONS:
            variant: BaseModel = getattr(self, name)
            for key, field in type(variant).model_fields.items():
                value = getattr(variant, key)
                if value == field.default:
                    continue
                if key == "cluster_slot_addrs":
                    section[key] = [
                        {"master": slot.master, "slaves": list(slot.slaves)} for slot in value
                    ]
                elif isinstance(value, tuple):
                    section[key] = list(value)
                else:
                    section[key] = value
        return section

    def __str__(self) -> str:
        return self.redacted().model_dump_json()


__all__ = [
    "ClusterConfig",
    "ClusterSlotAddr",
    "ConnectionConfig",
    "DEFAULT_MAX_REDIRECTS",
    "REDACTED",
    "SentinelConfig",
    "StandaloneConfig",
    "Topology",
]
