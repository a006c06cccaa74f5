"""Source inspection command wiring for ThermoSync CLI."""

from __future__ import annotations

import argparse
from typing import Any

from core.constants import DATE_FIELD_KEYS, DEFAULT_INSPECT_LIMIT, TIME_FIELD_KEYS
from core.types import SkippedRecord
from ingest.record_normalizer import normalize_record, resolve_field
from sync.sync_client import ThermoSyncClient


def add_inspect_command(subparsers: Any) -> None:
    """Register inspect-source subcommand."""
    parser = subparsers.add_parser(
        "inspect-source",
        help="Print the first raw source rows and how they normalize",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_INSPECT_LIMIT,
        help="Number of raw rows to print",
    )


def run_inspect_command(client: ThermoSyncClient, args: argparse.Namespace) -> int:
    """Print raw date/time/T1 values next to their normalized form."""
    for index, raw in enumerate(client.inspect_source(args.limit), 1):
        outcome = normalize_record(raw)
        if isinstance(outcome, SkippedRecord):
            processed = f"skipped:{outcome.reason}"
        else:
            processed = outcome.canonical_timestamp
        print(
            f"record={index}\t"
            f"date={resolve_field(raw, DATE_FIELD_KEYS)!r}\t"
            f"time={resolve_field(raw, TIME_FIELD_KEYS)!r}\t"
            f"T1={raw.get('T1')!r}\t"
            f"datetime={processed}"
        )
    return 0
