"""Configuration sources feeding the topology resolver."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Protocol, runtime_checkable

import tomllib

from .errors import ConfigSourceError, SectionNotFoundError
from .models import ConnectionConfig

CONFIG_FILE = Path.home() / ".config" / "redistopo" / "config.toml"
DEFAULT_SECTION = "redis"


@runtime_checkable
class ConfigReader(Protocol):
    """Protocol implemented by configuration sources."""

    def read_section(self, key: str) -> Mapping[str, object]:
        """Return the raw section stored under ``key``.

        Raises ``SectionNotFoundError`` when the source has no such section.
        """


class MappingConfigReader:
    """Serve sections from an in-memory mapping."""

    def __init__(self, data: Mapping[str, object]) -> None:
        self._data = data

    def read_section(self, key: str) -> Mapping[str, object]:
        try:
            section = self._data[key]
        except KeyError:
            raise SectionNotFoundError(key) from None
        if not isinstance(section, Mapping):
            raise ConfigSourceError(f"Section '{key}' is a {type(section).__name__}, expected a table")
        return section


class TomlConfigReader:
    """Serve sections from a TOML file, read once per call."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else CONFIG_FILE

    @property
    def path(self) -> Path:
        return self._path

    def read_section(self, key: str) -> Mapping[str, object]:
        raw = self._read_file(key)
        section = raw.get(key)
        if section is None:
            raise SectionNotFoundError(key, str(self._path))
        if not isinstance(section, dict):
            raise ConfigSourceError(
                f"Section '{key}' in {self._path} is a {type(section).__name__}, expected a table"
            )
        return section

    def _read_file(self, key: str) -> dict[str, object]:
        try:
            with self._path.open("rb") as handle:
                return tomllib.load(handle)
        except FileNotFoundError:
            raise SectionNotFoundError(key, str(self._path)) from None
        except tomllib.TOMLDecodeError as exc:
            raise ConfigSourceError(f"Invalid TOML in {self._path}: {exc}") from exc
        except OSError as exc:
            raise ConfigSourceError(f"Cannot read {self._path}: {exc}") from exc


def save_config(
    config: ConnectionConfig,
    path: Path | str | None = None,
    *,
    key: str = DEFAULT_SECTION,
) -> Path:
    """Persist ``config`` as an inline TOML section; returns the written path."""

    target = Path(path) if path is not None else CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    section = config.to_section()
    slots = section.pop("cluster_slot_addrs", None)
    lines: list[str] = [f"[{key}]"]
    for name, value in section.items():
        lines.append(f"{name} = {_toml_value(value)}")
    if isinstance(slots, list):
        for slot in slots:
            lines.append("")
            lines.append(f"[[{key}.cluster_slot_addrs]]")
            lines.append(f"master = {_toml_value(slot['master'])}")
            if slot["slaves"]:
                lines.append(f"slaves = {_toml_value(slot['slaves'])}")
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return target


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    # JSON string escapes are valid TOML basic-string escapes, except that
    # TOML also forbids a raw DEL.
    return json.dumps(str(value), ensure_ascii=False).replace("\x7f", "\\u007f")


__all__ = [
    "CONFIG_FILE",
    "ConfigReader",
    "DEFAULT_SECTION",
    "MappingConfigReader",
    "TomlConfigReader",
    "save_config",
]
