"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from redistopo import config as config_module
from redistopo.cli import main
from redistopo.config import TomlConfigReader
from redistopo.resolver import resolve_from_bundle, resolve_from_dsn


def _config_line(output: str) -> dict[str, object]:
    line = next(line for line in output.splitlines() if line.startswith("config: "))
    return json.loads(line[len("config: ") :])


def test_main_prints_resolved_dsn(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["--dsn", "redis://h:6379?cluster_addrs=c1:7000,c2:7000&password=secret", "--to-dsn"])

    out = capsys.readouterr().out
    assert code == 0
    assert "topology: cluster" in out
    payload = _config_line(out)
    assert payload["cluster"]["cluster_addrs"] == ["c1:7000", "c2:7000"]
    assert payload["password"] == "******"
    assert "dsn: redis://c1:7000?password=secret&cluster_addrs=c1:7000,c2:7000" in out


def test_main_reads_default_config_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[redis]\nmaster = "m:6379"\nslaves = "r1:6379,r2:6379"\n')
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    code = main([])

    out = capsys.readouterr().out
    assert code == 0
    assert "topology: standalone" in out
    assert _config_line(out)["standalone"]["slaves"] == ["r1:6379", "r2:6379"]


def test_main_reads_named_section(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = tmp_path / "app.toml"
    config_path.write_text('[cache]\nsentinel_addrs = ["s1:26379"]\nmaster_name = "mm"\n')

    code = main(["--config", str(config_path), "--section", "cache"])

    assert code == 0
    assert "topology: sentinel" in capsys.readouterr().out


def test_main_saves_dsn_as_toml(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "out" / "config.toml"
    dsn = "redis://10.0.0.1:6379?db=2&slaves=10.0.0.2:6379"

    code = main(["--dsn", dsn, "--save", str(target)])

    assert code == 0
    assert f"saved: {target}" in capsys.readouterr().out
    assert resolve_from_bundle(TomlConfigReader(target)) == resolve_from_dsn(dsn)


@pytest.mark.parametrize(
    "argv, message",
    [
        (["--dsn", "redis://h?db=abc"], "Invalid db value 'abc'"),
        (["--dsn", "mysql://h"], "unsupported scheme 'mysql'"),
        (["--dsn", "redis://h?cluster_addrs=c&max_redirects=x"], "Invalid max_redirects value"),
    ],
)
def test_main_reports_dsn_errors(argv: list[str], message: str, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(argv)

    err = capsys.readouterr().err
    assert code == 1
    assert err.startswith("error: ")
    assert message in err


def test_main_reports_missing_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["--config", str(tmp_path / "absent.toml")])

    assert code == 1
    assert "Section 'redis' not found" in capsys.readouterr().err


def test_main_reports_unrenderable_dsn(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[redis]\ndb = 1\n")

    code = main(["--config", str(config_path), "--to-dsn"])

    assert code == 1
    assert "no topology" in capsys.readouterr().err


def test_dsn_and_config_are_exclusive(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["--dsn", "redis://h", "--config", str(tmp_path / "c.toml")])
