"""Python SDK for sync and query operations.

This module wires config into the source reader, reading store,
change detector, and orchestrator, and exposes the query surface.
"""

from __future__ import annotations

from datetime import datetime
import threading

from core.config import SyncConfig
from core.constants import DEFAULT_INSPECT_LIMIT, DEFAULT_QUERY_LIMIT
from core.errors import SourceUnavailableError
from core.types import (
    DailyAverage,
    NormalizedReading,
    RawRecord,
    ReadingPage,
    ReadingStatistics,
    SyncCycleResult,
)
from ingest.source_reader import MdbSourceReader
from store.reading_store import ReadingStore, open_reading_store
from sync.change_detector import FileChangeDetector
from sync.orchestrator import SyncOrchestrator
from sync.source_watcher import SourceWatcher


class ThermoSyncClient:
    """Primary SDK entry point for sync workflows."""

    def __init__(self, config: SyncConfig | None = None) -> None:
        """Create SDK client and open the reading store.

        Args:
            config: Optional runtime configuration.

        Raises:
            StoreUnavailableError: If the store cannot be opened.
        """
        self._config = config or SyncConfig.from_env()
        self._store = open_reading_store(self._config.store_path)
        self._reader = MdbSourceReader(self._config.source_path, self._config.source_table)
        self._orchestrator = SyncOrchestrator(
            reader=self._reader,
            store=self._store,
            detector=FileChangeDetector(self._config.source_path),
            batch_size=self._config.batch_size,
            debounce_seconds=self._config.debounce_seconds,
        )

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def store(self) -> ReadingStore:
        return self._store

    @property
    def orchestrator(self) -> SyncOrchestrator:
        return self._orchestrator

    def __enter__(self) -> "ThermoSyncClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Cancel pending timers and close the store."""
        self._orchestrator.state.pending_timer.cancel()
        self._store.close()

    def sync_once(self) -> SyncCycleResult:
        """Run the startup sync cycle once.

        Raises:
            SourceUnavailableError: If the source file is missing.
            ThermoSyncError: Any other startup failure.
        """
        self._require_source()
        return self._orchestrator.start()

    def serve(self, stop_event: threading.Event) -> None:
        """Sync at startup, then watch the source until ``stop_event`` is set.

        Raises:
            SourceUnavailableError: If the source file is missing at startup.
            WatchFailureError: If filesystem notifications fail.
        """
        self._require_source()
        watcher = SourceWatcher(self._config.source_path, self._orchestrator.notify_change)
        self._orchestrator.serve_forever(watcher, stop_event)

    def insert_readings(self, readings: list[NormalizedReading]) -> int:
        """Bulk-append readings in one transaction."""
        return self._store.insert_readings(readings)

    def get_readings(
        self,
        start_time: datetime,
        end_time: datetime,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> ReadingPage:
        """Return one ascending page of readings in an inclusive range."""
        return self._store.get_readings(start_time, end_time, limit, offset)

    def get_statistics(self, start_time: datetime, end_time: datetime) -> ReadingStatistics:
        """Return min/max/average across all zones for a range."""
        return self._store.get_statistics(start_time, end_time)

    def get_daily_averages(
        self,
        start_time: datetime,
        end_time: datetime,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> list[DailyAverage]:
        """Return per-day zone averages for a range."""
        return self._store.get_daily_averages(start_time, end_time, limit, offset)

    def inspect_source(self, limit: int = DEFAULT_INSPECT_LIMIT) -> list[RawRecord]:
        """Return the first raw source rows."""
        return self._reader.inspect(limit)

    def _require_source(self) -> None:
        if not self._config.source_path.is_file():
            raise SourceUnavailableError(
                f"MDB file not found at {self._config.source_path}. "
                "Set MDB_FILE_PATH to point to your .mdb file."
            )
