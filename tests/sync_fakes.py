"""Shared fakes for sync tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
import sqlite3
from typing import Callable, Sequence

from core.constants import ZONE_COUNT
from core.types import NormalizedReading, RawRecord
from store.reading_store import ReadingStore, open_reading_store

BASE_TIME = datetime(2024, 1, 10, 0, 0, 0)


def raw_record(timestamp: datetime, zone_value: object = 20.5, events: object = 0) -> RawRecord:
    """Build a raw row in the container's split date/time shape."""
    row: dict[str, object] = {
        "Date": timestamp.strftime("%Y-%m-%d"),
        "Time": f"1899-12-30T{timestamp.strftime('%H:%M:%S')}",
        "Events": events,
    }
    for index in range(1, ZONE_COUNT + 1):
        row[f"T{index}"] = zone_value
    return row


def raw_records(count: int, start: datetime = BASE_TIME) -> list[RawRecord]:
    """Build ``count`` raw rows one minute apart."""
    return [raw_record(start + timedelta(minutes=index)) for index in range(count)]


def reading(timestamp: datetime, zone_value: float | None = 20.0) -> NormalizedReading:
    """Build a normalized reading with every zone set to one value."""
    return NormalizedReading(timestamp=timestamp, zones=(zone_value,) * ZONE_COUNT, events=0)


def readings(count: int, start: datetime = BASE_TIME) -> list[NormalizedReading]:
    """Build ``count`` readings one minute apart."""
    return [reading(start + timedelta(minutes=index)) for index in range(count)]


class FakeSourceReader:
    """In-memory source reader with an optional hook run during reads."""

    def __init__(self, records: Sequence[RawRecord]) -> None:
        self.records = list(records)
        self.read_count = 0
        self.on_read: Callable[[], None] | None = None

    def read(self) -> list[RawRecord]:
        self.read_count += 1
        if self.on_read is not None:
            self.on_read()
        return list(self.records)


class FailingReadingStore(ReadingStore):
    """Reading store that fails when inserting one specific timestamp."""

    def __init__(self, store_path: Path, fail_at: datetime) -> None:
        super().__init__(store_path)
        self._fail_at = fail_at

    def _insert_row(self, cursor: sqlite3.Cursor, reading: NormalizedReading) -> None:
        super()._insert_row(cursor, reading)
        if reading.timestamp == self._fail_at:
            raise sqlite3.IntegrityError("forced insert failure")


def failing_store(tmp_path: Path, fail_at: datetime) -> FailingReadingStore:
    """Open a failing store with its schema created."""
    store = FailingReadingStore(tmp_path / "store.sqlite", fail_at)
    store.create_schema_if_absent()
    return store


def real_store(tmp_path: Path) -> ReadingStore:
    """Open a reading store under a temporary directory."""
    return open_reading_store(tmp_path / "store.sqlite")
