"""ThermoSync CLI entry points.
This module exposes sync and query commands for the reading store.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
import signal
import sys
import threading
from typing import Any, Sequence

from cli.inspect_command import add_inspect_command, run_inspect_command
from core.config import SyncConfig, load_config_file
from core.constants import DEFAULT_QUERY_LIMIT, SUPPORTED_LOG_LEVELS
from core.errors import ThermoSyncConfigError, ThermoSyncError
from core.logging_config import configure_logging
from sync.sync_client import ThermoSyncClient

DEFAULT_RANGE_DAYS = 30


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="thermosync",
        description="Keep a SQLite reading store in sync with a legacy .mdb file",
    )
    parser.add_argument("--config", help="Optional YAML config file")
    parser.add_argument("--source", help="Override MDB_FILE_PATH for this command")
    parser.add_argument("--store", help="Override THERMOSYNC_STORE_PATH for this command")
    parser.add_argument("--batch-size", type=int, help="Readings per chunk transaction")
    parser.add_argument("--log-level", choices=SUPPORTED_LOG_LEVELS, help="Minimum log level")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_sync_command(subparsers)
    _add_readings_command(subparsers)
    _add_stats_command(subparsers)
    _add_daily_command(subparsers)
    add_inspect_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the ThermoSync CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        configure_logging(config.log_level)
        with ThermoSyncClient(config) as client:
            return _dispatch(parser, client, args)
    except ThermoSyncError as error:
        print(f"error={error}", file=sys.stderr)
        return 1


def _dispatch(
    parser: argparse.ArgumentParser,
    client: ThermoSyncClient,
    args: argparse.Namespace,
) -> int:
    if args.command == "sync":
        return _run_sync_command(client, args)
    if args.command == "readings":
        return _run_readings_command(client, args)
    if args.command == "stats":
        return _run_stats_command(client, args)
    if args.command == "daily":
        return _run_daily_command(client, args)
    if args.command == "inspect-source":
        return run_inspect_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(args: argparse.Namespace) -> SyncConfig:
    """Build config from env, optional file, and CLI overrides.

    Args:
        args: Parsed CLI args.

    Returns:
        Effective config.
    """
    config = SyncConfig.from_env()
    if args.config:
        config = load_config_file(args.config, config)
    if args.source:
        config = replace(config, source_path=Path(args.source).expanduser().resolve())
    if args.store:
        config = replace(config, store_path=Path(args.store).expanduser().resolve())
    if args.batch_size is not None:
        if args.batch_size < 1:
            raise ThermoSyncConfigError(
                f"Invalid --batch-size {args.batch_size}: expected value >= 1."
            )
        config = replace(config, batch_size=args.batch_size)
    if args.log_level:
        config = replace(config, log_level=args.log_level)
    return config


def _run_sync_command(client: ThermoSyncClient, args: argparse.Namespace) -> int:
    """Handle sync command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    if args.once:
        result = client.sync_once()
        watermark = result.watermark.isoformat() if result.watermark else "-"
        print(
            f"processed={str(result.processed).lower()}\t"
            f"written={result.written_count}\t"
            f"skipped={result.skipped_count}\t"
            f"watermark={watermark}"
        )
        return 0
    stop_event = threading.Event()
    _install_stop_handlers(stop_event)
    client.serve(stop_event)
    return 0


def _run_readings_command(client: ThermoSyncClient, args: argparse.Namespace) -> int:
    """Handle readings command."""
    start_time, end_time = _resolve_range(args)
    page = client.get_readings(start_time, end_time, args.limit, args.offset)
    for persisted in page.readings:
        reading = persisted.reading
        zones = "\t".join(_render_value(value) for value in reading.zones)
        print(f"{persisted.row_id}\t{reading.canonical_timestamp}\t{zones}\t{reading.events}")
    print(f"total={page.total}")
    return 0


def _run_stats_command(client: ThermoSyncClient, args: argparse.Namespace) -> int:
    """Handle stats command."""
    start_time, end_time = _resolve_range(args)
    stats = client.get_statistics(start_time, end_time)
    print(
        f"min={_render_value(stats.minimum)}\t"
        f"max={_render_value(stats.maximum)}\t"
        f"avg={_render_value(stats.average)}"
    )
    return 0


def _run_daily_command(client: ThermoSyncClient, args: argparse.Namespace) -> int:
    """Handle daily command."""
    start_time, end_time = _resolve_range(args)
    for daily in client.get_daily_averages(start_time, end_time, args.limit, args.offset):
        zones = "\t".join(_render_value(value) for value in daily.zones)
        print(f"{daily.day}\t{zones}")
    return 0


def _resolve_range(args: argparse.Namespace) -> tuple[datetime, datetime]:
    """Resolve --start/--end/--days into an inclusive range."""
    end_time = _parse_time_arg(args.end, "--end") if args.end else datetime.now()
    if args.end and len(args.end.strip()) == len("YYYY-MM-DD"):
        end_time = end_time.replace(hour=23, minute=59, second=59)
    if args.start:
        start_time = _parse_time_arg(args.start, "--start")
    else:
        start_time = end_time - timedelta(days=args.days)
    return start_time.replace(microsecond=0), end_time.replace(microsecond=0)


def _parse_time_arg(raw_value: str, flag: str) -> datetime:
    try:
        return datetime.fromisoformat(raw_value).replace(tzinfo=None)
    except ValueError as error:
        raise ThermoSyncConfigError(
            f"Invalid {flag} value '{raw_value}': expected ISO date or date-time."
        ) from error


def _render_value(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"


def _install_stop_handlers(stop_event: threading.Event) -> None:
    """Set the stop event on SIGINT/SIGTERM."""

    def _handle_signal(signum: int, frame: Any) -> None:
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)


def _add_range_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", help="Range start, ISO date or date-time")
    parser.add_argument("--end", help="Range end, ISO date or date-time; defaults to now")
    parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_RANGE_DAYS,
        help="Range length when --start is omitted",
    )


def _add_sync_command(subparsers: Any) -> None:
    """Register sync subcommand."""
    parser = subparsers.add_parser("sync", help="Sync the store and watch for source changes")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the startup sync only, without watching",
    )


def _add_readings_command(subparsers: Any) -> None:
    """Register readings subcommand."""
    parser = subparsers.add_parser("readings", help="List readings in a time range")
    _add_range_arguments(parser)
    parser.add_argument("--limit", type=int, default=DEFAULT_QUERY_LIMIT, help="Page size")
    parser.add_argument("--offset", type=int, default=0, help="Rows to skip")


def _add_stats_command(subparsers: Any) -> None:
    """Register stats subcommand."""
    parser = subparsers.add_parser("stats", help="Min/max/avg across all zones in a range")
    _add_range_arguments(parser)


def _add_daily_command(subparsers: Any) -> None:
    """Register daily subcommand."""
    parser = subparsers.add_parser("daily", help="Per-day zone averages in a range")
    _add_range_arguments(parser)
    parser.add_argument("--limit", type=int, default=DEFAULT_QUERY_LIMIT, help="Max days")
    parser.add_argument("--offset", type=int, default=0, help="Days to skip")
