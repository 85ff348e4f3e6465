"""Command-line driver: list races, archive sessions, manage caches.

Usage
-----
::

    python -m pyopenf1 list 2023 [--no-cache]
    python -m pyopenf1 fetch 9161 [1,44,81] [--no-cache] [--car-data]
    python -m pyopenf1 cached
    python -m pyopenf1 cache-info
    python -m pyopenf1 clear-cache

Directories and fetch tuning come from ``OPENF1_*`` environment
variables (see :meth:`OpenF1Config.from_env`).
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from collections.abc import Sequence

from pyopenf1.archive import RaceArchiver
from pyopenf1.cache import FileCache
from pyopenf1.client import OpenF1Client
from pyopenf1.config import OpenF1Config
from pyopenf1.exceptions import OpenF1Error
from pyopenf1.fetcher import WindowFetcher

_logger = logging.getLogger(__name__)


def _parse_drivers(value: str) -> list[int]:
    try:
        return [int(part.strip()) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"driver list must be comma-separated numbers: {value!r}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pyopenf1", description="Fetch and archive OpenF1 race telemetry")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List race sessions of a year")
    list_cmd.add_argument("year", type=int)
    list_cmd.add_argument("--no-cache", action="store_true", help="Force a fresh API call")

    fetch_cmd = commands.add_parser("fetch", help="Fetch and save a session")
    fetch_cmd.add_argument("session_key", type=int)
    fetch_cmd.add_argument("drivers", nargs="?", type=_parse_drivers, help="e.g. 1,44,81 (default: all)")
    fetch_cmd.add_argument("--no-cache", action="store_true", help="Bypass the roster cache")
    fetch_cmd.add_argument("--car-data", action="store_true", help="Also fetch car data (best-effort)")

    commands.add_parser("cached", help="List saved race files")
    commands.add_parser("cache-info", help="Show metadata cache entries")
    commands.add_parser("clear-cache", help="Remove all metadata cache entries")
    return parser


def _progress(done_ms: int, total_ms: int) -> None:
    _logger.debug("Progress %.1f%%", 100.0 * done_ms / total_ms)


async def _run(args: argparse.Namespace, config: OpenF1Config) -> int:
    data_cache = FileCache(config.data_dir)
    meta_cache = FileCache(config.cache_dir)

    if args.command == "cached":
        keys = data_cache.list()
        if not keys:
            print("No cached race files")
            return 0
        print(f"Cached race files ({len(keys)}):")
        for idx, key in enumerate(keys, start=1):
            stat = data_cache.stat(key)
            size = f"{stat.size / (1024 * 1024):.2f} MB" if stat else "?"
            print(f"{idx}. {key}.json ({size})")
        return 0

    if args.command == "cache-info":
        keys = meta_cache.list()
        if not keys:
            print("No cached data")
            return 0
        print(f"Cache info ({len(keys)} files):")
        for idx, key in enumerate(keys, start=1):
            stat = meta_cache.stat(key)
            if stat is None:
                continue
            print(f"{idx}. {key}.json")
            print(f"   Size: {stat.size / 1024:.2f} KB | Modified: {stat.modified_at:%Y-%m-%d %H:%M}")
        return 0

    if args.command == "clear-cache":
        print(f"Cleared {meta_cache.clear()} cache files")
        return 0

    async with OpenF1Client(config) as client:
        fetcher = WindowFetcher(client, config.fetcher)
        archiver = RaceArchiver(
            client,
            fetcher,
            data_cache,
            meta_cache,
            delay_between_drivers=config.delay_between_drivers,
        )

        if args.command == "list":
            races = await archiver.list_races(args.year, use_cache=not args.no_cache)
            for idx, race in enumerate(races, start=1):
                print(f"{idx}. {race.location} ({race.country_name})")
                print(f"   Session Key: {race.session_key}")
                print(f"   Date: {(race.date_start or '?')[:10]}")
            return 0

        data = await archiver.fetch_race_data(
            args.session_key,
            args.drivers,
            use_cache=not args.no_cache,
            with_car_data=args.car_data,
        )
        print(f"Summary: {data.loaded} drivers loaded, {data.failed} failed")
        if not data.location_data:
            print("No location data loaded, not saving an empty file")
            return 0
        path = archiver.save(data)
        print(f"Saved to: {path}")
        return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        config = OpenF1Config.from_env()
        config = dataclasses.replace(config, fetcher=dataclasses.replace(config.fetcher, progress=_progress))
        return asyncio.run(_run(args, config))
    except OpenF1Error as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
