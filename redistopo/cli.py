"""Command-line entry point for inspecting redis connection settings."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import DEFAULT_SECTION, TomlConfigReader, save_config
from .errors import RedisConfigError
from .resolver import format_dsn, resolve_from_bundle, resolve_from_dsn

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redistopo",
        description="Resolve a redis DSN or config file and print the connection settings.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--dsn", help="Connection string, e.g. redis://127.0.0.1:6379?db=0")
    source.add_argument(
        "--config",
        type=Path,
        help="TOML file to read (defaults to ~/.config/redistopo/config.toml)",
    )
    parser.add_argument("--section", default=DEFAULT_SECTION, help="Table holding the settings")
    parser.add_argument("--to-dsn", action="store_true", help="Also print the settings as a DSN")
    parser.add_argument("--save", type=Path, help="Write the resolved settings to this TOML file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.dsn:
            config = resolve_from_dsn(args.dsn)
        else:
            config = resolve_from_bundle(TomlConfigReader(args.config), args.section)
        dsn = format_dsn(config) if args.to_dsn else None
    except RedisConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    topology = config.active_topology()
    print(f"topology: {topology.value if topology else 'none'}")
    print(f"config: {config}")
    if dsn is not None:
        print(f"dsn: {dsn}")
    if args.save:
        written = save_config(config, args.save, key=args.section)
        LOG.info("Saved redis config", extra={"path": str(written)})
        print(f"saved: {written}")
    return 0


__all__ = ["build_parser", "main"]
