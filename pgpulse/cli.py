"""Command line entry point printing one JSON snapshot per cycle."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence, TextIO

from .collector import PostgresCollector
from .config import CONFIG_FILE, load_config
from .models import Snapshot
from .runner import CollectionLoop


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pgpulse", description="Collect PostgreSQL server metrics.")
    parser.add_argument("--config", type=Path, default=CONFIG_FILE, help="Path to config.toml")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser


def json_sink(stream: TextIO):
    def _emit(snapshot: Snapshot) -> None:
        stream.write(json.dumps(snapshot, sort_keys=True) + "\n")
        stream.flush()

    return _emit


async def _run(config_path: Path, *, once: bool) -> int:
    config = load_config(config_path)
    collector = PostgresCollector(config)
    loop = CollectionLoop(collector, json_sink(sys.stdout))
    await loop.run(iterations=1 if once else None)
    if once and loop.failures:
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        code = asyncio.run(_run(args.config, once=args.once))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


__all__ = ["build_parser", "json_sink", "main"]
