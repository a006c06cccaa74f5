"""SQLite-backed reading store.

This module owns the persisted reading table and its time index.
It provides append, watermark, range, and aggregate queries.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
import sqlite3
import threading
from typing import Iterator, Sequence

from core.constants import (
    DEFAULT_QUERY_LIMIT,
    READINGS_TABLE_NAME,
    READINGS_TIMESTAMP_COLUMN,
    READINGS_TIMESTAMP_INDEX,
    STATISTICS_DECIMALS,
    ZONE_COLUMNS,
)
from core.errors import StoreUnavailableError, StoreWriteError
from core.logging_config import get_logger
from core.types import (
    DailyAverage,
    NormalizedReading,
    PersistedReading,
    ReadingPage,
    ReadingStatistics,
    format_timestamp,
    parse_canonical_timestamp,
)

_LOGGER = get_logger(__name__)
_ZONE_COLUMN_SQL = ", ".join(ZONE_COLUMNS)
_INSERT_SQL = (
    f"INSERT INTO {READINGS_TABLE_NAME} "
    f"({READINGS_TIMESTAMP_COLUMN}, {_ZONE_COLUMN_SQL}, events) "
    f"VALUES ({', '.join('?' for _ in range(len(ZONE_COLUMNS) + 2))})"
)
_RANGE_FILTER_SQL = f"{READINGS_TIMESTAMP_COLUMN} BETWEEN ? AND ?"


class ReadingStore:
    """Append-only time-series store for normalized readings.

    One connection is shared by the sync writer and query callers;
    a lock serializes access so statements never interleave.
    """

    def __init__(self, store_path: Path) -> None:
        """Open the store file.

        Args:
            store_path: SQLite database file; parent directories are created.

        Raises:
            StoreUnavailableError: If the database cannot be opened.
        """
        self._store_path = store_path
        self._lock = threading.Lock()
        try:
            store_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(
                str(store_path),
                check_same_thread=False,
                isolation_level=None,
            )
        except (OSError, sqlite3.Error) as error:
            raise StoreUnavailableError(
                f"Failed to open reading store at {store_path}: {error}. "
                "Set THERMOSYNC_STORE_PATH to a writable location."
            ) from error

    @property
    def store_path(self) -> Path:
        return self._store_path

    def __enter__(self) -> "ReadingStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._connection.close()

    def create_schema_if_absent(self) -> None:
        """Create the reading table and timestamp index when missing."""
        zone_columns = ",\n".join(f"    {column} REAL" for column in ZONE_COLUMNS)
        script = (
            f"CREATE TABLE IF NOT EXISTS {READINGS_TABLE_NAME} (\n"
            "    id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
            f"    {READINGS_TIMESTAMP_COLUMN} DATETIME NOT NULL,\n"
            f"{zone_columns},\n"
            "    events INTEGER NOT NULL DEFAULT 0\n"
            ");\n"
            f"CREATE INDEX IF NOT EXISTS {READINGS_TIMESTAMP_INDEX} "
            f"ON {READINGS_TABLE_NAME}({READINGS_TIMESTAMP_COLUMN});"
        )
        with self._lock:
            try:
                self._connection.executescript(script)
            except sqlite3.Error as error:
                raise StoreUnavailableError(
                    f"Failed to create reading schema in {self._store_path}: {error}."
                ) from error

    def max_timestamp(self) -> datetime | None:
        """Return the greatest persisted timestamp, None when empty.

        Raises:
            StoreUnavailableError: If the query cannot execute.
        """
        row = self._fetch_one(
            f"SELECT MAX({READINGS_TIMESTAMP_COLUMN}) FROM {READINGS_TABLE_NAME}", ()
        )
        if row is None or row[0] is None:
            return None
        return parse_canonical_timestamp(str(row[0]))

    def count_rows(self) -> int:
        """Return the number of persisted readings."""
        row = self._fetch_one(f"SELECT COUNT(*) FROM {READINGS_TABLE_NAME}", ())
        return int(row[0]) if row else 0

    def insert_chunk(self, readings: Sequence[NormalizedReading]) -> int:
        """Insert readings inside one transaction.

        Args:
            readings: Readings to append, one row each.

        Returns:
            Number of inserted rows.

        Raises:
            StoreWriteError: If any insert fails; nothing from the call persists.
        """
        try:
            with self._transaction() as cursor:
                for reading in readings:
                    self._insert_row(cursor, reading)
        except (sqlite3.Error, OverflowError) as error:
            raise StoreWriteError(
                f"Failed to insert {len(readings)} readings into {self._store_path}: {error}. "
                "The transaction was rolled back."
            ) from error
        return len(readings)

    def insert_readings(self, readings: Sequence[NormalizedReading]) -> int:
        """Bulk-append readings in a single transaction."""
        return self.insert_chunk(readings)

    def get_readings(
        self,
        start_time: datetime,
        end_time: datetime,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> ReadingPage:
        """Return one page of readings in an inclusive range.

        Args:
            start_time: Range start, inclusive.
            end_time: Range end, inclusive.
            limit: Maximum rows in the page.
            offset: Rows to skip before the page.

        Returns:
            Page ordered ascending by timestamp, with the range total.
        """
        bounds = (format_timestamp(start_time), format_timestamp(end_time))
        rows = self._fetch_all(
            f"SELECT id, {READINGS_TIMESTAMP_COLUMN}, {_ZONE_COLUMN_SQL}, events "
            f"FROM {READINGS_TABLE_NAME} WHERE {_RANGE_FILTER_SQL} "
            f"ORDER BY {READINGS_TIMESTAMP_COLUMN}, id LIMIT ? OFFSET ?",
            (*bounds, limit, offset),
        )
        total_row = self._fetch_one(
            f"SELECT COUNT(*) FROM {READINGS_TABLE_NAME} WHERE {_RANGE_FILTER_SQL}", bounds
        )
        return ReadingPage(
            readings=[_persisted_from_row(row) for row in rows],
            total=int(total_row[0]) if total_row else 0,
            limit=limit,
            offset=offset,
        )

    def get_statistics(self, start_time: datetime, end_time: datetime) -> ReadingStatistics:
        """Aggregate every non-null zone value in a range, across all zones."""
        bounds = (format_timestamp(start_time), format_timestamp(end_time))
        unpivot_sql = " UNION ALL ".join(
            f"SELECT {column} AS value FROM {READINGS_TABLE_NAME} WHERE {_RANGE_FILTER_SQL}"
            for column in ZONE_COLUMNS
        )
        # An aggregate without GROUP BY always yields exactly one row.
        rows = self._fetch_all(
            f"SELECT MIN(value), MAX(value), AVG(value) FROM ({unpivot_sql}) "
            "WHERE value IS NOT NULL",
            bounds * len(ZONE_COLUMNS),
        )
        minimum, maximum, average = rows[0]
        return ReadingStatistics(
            minimum=minimum,  # type: ignore[arg-type]
            maximum=maximum,  # type: ignore[arg-type]
            average=average,  # type: ignore[arg-type]
        )

    def get_daily_averages(
        self,
        start_time: datetime,
        end_time: datetime,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> list[DailyAverage]:
        """Return per-day zone averages rounded for display."""
        day_sql = f"substr({READINGS_TIMESTAMP_COLUMN}, 1, 10)"
        averages_sql = ", ".join(f"AVG({column})" for column in ZONE_COLUMNS)
        rows = self._fetch_all(
            f"SELECT {day_sql} AS day, {averages_sql} FROM {READINGS_TABLE_NAME} "
            f"WHERE {_RANGE_FILTER_SQL} GROUP BY day ORDER BY day LIMIT ? OFFSET ?",
            (format_timestamp(start_time), format_timestamp(end_time), limit, offset),
        )
        return [
            DailyAverage(
                day=str(row[0]),
                zones=tuple(
                    round(value, STATISTICS_DECIMALS) if value is not None else None
                    for value in row[1:]
                ),
            )
            for row in rows
        ]

    def _insert_row(self, cursor: sqlite3.Cursor, reading: NormalizedReading) -> None:
        cursor.execute(_INSERT_SQL, (reading.canonical_timestamp, *reading.zones, reading.events))

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run statements in one explicit transaction, rolling back on error."""
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                yield cursor
                cursor.execute("COMMIT")
            except BaseException:
                if self._connection.in_transaction:
                    cursor.execute("ROLLBACK")
                raise
            finally:
                cursor.close()

    def _fetch_one(self, sql: str, params: tuple[object, ...]) -> tuple[object, ...] | None:
        with self._lock:
            try:
                return self._connection.execute(sql, params).fetchone()
            except sqlite3.Error as error:
                raise StoreUnavailableError(
                    f"Failed to query reading store at {self._store_path}: {error}. "
                    "Check that the store schema exists and the file is readable."
                ) from error

    def _fetch_all(self, sql: str, params: tuple[object, ...]) -> list[tuple[object, ...]]:
        with self._lock:
            try:
                return self._connection.execute(sql, params).fetchall()
            except sqlite3.Error as error:
                raise StoreUnavailableError(
                    f"Failed to query reading store at {self._store_path}: {error}."
                ) from error


def open_reading_store(store_path: Path) -> ReadingStore:
    """Open a store and ensure its schema exists."""
    store = ReadingStore(store_path)
    store.create_schema_if_absent()
    _LOGGER.info("store_opened", store_path=str(store_path))
    return store


def _persisted_from_row(row: tuple[object, ...]) -> PersistedReading:
    zones = tuple(float(value) if value is not None else None for value in row[2:-1])
    reading = NormalizedReading(
        timestamp=parse_canonical_timestamp(str(row[1])),
        zones=zones,
        events=int(row[-1] or 0),  # type: ignore[call-overload]
    )
    return PersistedReading(row_id=int(row[0]), reading=reading)  # type: ignore[call-overload]
