"""Tests for configuration readers and the TOML writer."""

from __future__ import annotations

from pathlib import Path
import tomllib

import pytest

from redistopo import config as config_module
from redistopo.config import ConfigReader, MappingConfigReader, TomlConfigReader, save_config
from redistopo.errors import ConfigSourceError, SectionNotFoundError
from redistopo.models import ClusterConfig, ClusterSlotAddr, ConnectionConfig, StandaloneConfig
from redistopo.resolver import resolve_from_bundle


def test_readers_satisfy_protocol(tmp_path: Path) -> None:
    assert isinstance(MappingConfigReader({}), ConfigReader)
    assert isinstance(TomlConfigReader(tmp_path / "config.toml"), ConfigReader)


def test_mapping_reader_returns_section() -> None:
    reader = MappingConfigReader({"redis": {"master": "m:6379"}})

    assert reader.read_section("redis") == {"master": "m:6379"}


def test_mapping_reader_reports_missing_section() -> None:
    with pytest.raises(SectionNotFoundError) as excinfo:
        MappingConfigReader({}).read_section("redis")

    assert excinfo.value.key == "redis"


def test_mapping_reader_rejects_scalar_sections() -> None:
    with pytest.raises(ConfigSourceError):
        MappingConfigReader({"redis": "redis://h"}).read_section("redis")


def test_toml_reader_defaults_to_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[redis]\nmaster = "m:6379"\n')
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    reader = TomlConfigReader()

    assert reader.path == config_path
    assert reader.read_section("redis") == {"master": "m:6379"}


def test_toml_reader_missing_file_is_missing_section(tmp_path: Path) -> None:
    reader = TomlConfigReader(tmp_path / "absent.toml")

    with pytest.raises(SectionNotFoundError) as excinfo:
        reader.read_section("redis")

    assert excinfo.value.source == str(tmp_path / "absent.toml")


def test_toml_reader_missing_table(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[cache]\nmaster = "m"\n')

    with pytest.raises(SectionNotFoundError):
        TomlConfigReader(config_path).read_section("redis")


def test_toml_reader_rejects_non_table_section(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('redis = "redis://h"\n')

    with pytest.raises(ConfigSourceError):
        TomlConfigReader(config_path).read_section("redis")


def test_toml_reader_handles_toml_errors(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("theme = [unterminated")

    with pytest.raises(ConfigSourceError):
        TomlConfigReader(config_path).read_section("redis")


def test_save_config_persists_values(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.toml"

    save_config(
        ConnectionConfig(
            password='se"cret',
            pool_size=10,
            route_randomly=True,
            standalone=StandaloneConfig(master="m:6379", slaves=("r1:6379",)),
        ),
        config_path,
    )

    content = config_path.read_text()
    assert content.startswith("[redis]\n")
    assert 'password = "se\\"cret"' in content
    assert "pool_size = 10" in content
    assert "route_randomly = true" in content
    assert 'slaves = ["r1:6379"]' in content
    assert "db =" not in content


def test_save_config_escapes_control_characters(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config = ConnectionConfig(password="a\x7fb\tc\U0001f600", standalone=StandaloneConfig(master="m:6379"))

    save_config(config, config_path)

    assert "\x7f" not in config_path.read_text()
    assert resolve_from_bundle(TomlConfigReader(config_path)) == config


def test_save_config_writes_slot_tables(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config = ConnectionConfig(
        cluster=ClusterConfig(
            cluster_addrs=("c1:7000",),
            max_redirects=-1,
            cluster_slot_addrs=(
                ClusterSlotAddr(master="m1:7000", slaves=("r1:7001",)),
                ClusterSlotAddr(master="m2:7000"),
            ),
        )
    )

    save_config(config, config_path, key="cache")

    raw = tomllib.loads(config_path.read_text())
    assert raw["cache"]["cluster_slot_addrs"] == [
        {"master": "m1:7000", "slaves": ["r1:7001"]},
        {"master": "m2:7000"},
    ]
    assert resolve_from_bundle(TomlConfigReader(config_path), "cache") == config


def test_save_config_defaults_to_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    config = ConnectionConfig(username="app", db=4, standalone=StandaloneConfig(master="m:6379"))

    written = save_config(config)

    assert written == config_path
    assert resolve_from_bundle(TomlConfigReader()) == config
