"""Sync orchestrator state machine.

This module coordinates change checks and sync passes. One pass runs
at a time; triggers arriving while a pass is in flight are dropped,
not queued. Failures during startup propagate to the caller, later
failures are logged and the orchestrator returns to idle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import threading
from typing import Protocol

from core.constants import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_WATCH_POLL_SECONDS
from core.errors import ThermoSyncError, WriteFailureError
from core.logging_config import get_logger
from core.types import NormalizedReading, SyncCycleResult
from ingest.pipeline import SyncPassRunner, watermark_after_failure
from ingest.source_reader import SourceReader
from ingest.watermark import resolve_watermark
from sync.change_detector import DebounceTimer, FileObservation

_LOGGER = get_logger(__name__)


class SyncPhase(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    CHECKING = "checking"
    PROCESSING = "processing"
    ERROR = "error"


class ReadingSink(Protocol):
    """Store surface the orchestrator needs."""

    def max_timestamp(self) -> datetime | None:
        ...

    def insert_chunk(self, readings: list[NormalizedReading]) -> int:
        ...


class ChangeDetector(Protocol):
    """Change detector surface the orchestrator needs."""

    @property
    def last_observation(self) -> FileObservation | None:
        ...

    def has_changed(self) -> bool:
        ...

    def reset(self) -> None:
        ...


class Watcher(Protocol):
    """Filesystem watcher lifecycle used by the serve loop."""

    def start(self) -> None:
        ...

    def check_alive(self) -> None:
        ...

    def stop(self) -> None:
        ...


@dataclass
class SyncState:
    """Mutable process-lifetime sync state owned by one orchestrator.

    Attributes:
        pending_timer: Single-slot debounce timer for change notifications.
        phase: Current state machine phase.
        in_progress: Reentrancy guard for the check/process cycle.
        watermark: In-memory watermark after the last cycle.
        last_observation: File size/mtime seen at the last check.
        dropped_notifications: Notifications discarded during a pass.
        last_result: Summary of the last completed cycle.
        last_error: Message of the last failed cycle.
    """

    pending_timer: DebounceTimer
    phase: SyncPhase = SyncPhase.IDLE
    in_progress: bool = False
    watermark: datetime | None = None
    last_observation: FileObservation | None = None
    dropped_notifications: int = 0
    last_result: SyncCycleResult | None = None
    last_error: str | None = None


class SyncOrchestrator:
    """Coordinates startup sync, debounced change handling, and resyncs."""

    def __init__(
        self,
        reader: SourceReader,
        store: ReadingSink,
        detector: ChangeDetector,
        batch_size: int,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._store = store
        self._detector = detector
        self._runner = SyncPassRunner(reader, store, batch_size)
        self._guard = threading.Lock()
        self.state = SyncState(pending_timer=DebounceTimer(debounce_seconds, self._on_debounced))

    def start(self) -> SyncCycleResult:
        """Run the startup check.

        Returns:
            Startup cycle summary.

        Raises:
            ThermoSyncError: Any startup failure; callers treat it as fatal.
        """
        _LOGGER.info("sync_started", batch_size=self._runner.batch_size)
        result = self._run_guarded("startup", fatal=True)
        if result is None:
            raise ThermoSyncError("Startup sync could not run: another cycle is in progress.")
        return result

    def notify_change(self) -> None:
        """Handle one filesystem change notification.

        Dropped while a pass is in flight; otherwise (re)arms the debounce timer.
        """
        with self._guard:
            if self.state.in_progress:
                self.state.dropped_notifications += 1
                _LOGGER.warning(
                    "change_dropped", dropped_notifications=self.state.dropped_notifications
                )
                return
        self.state.pending_timer.schedule()
        _LOGGER.debug("change_debounced")

    def run_cycle(self, trigger: str = "change") -> SyncCycleResult | None:
        """Run one check/process cycle without raising.

        Returns:
            Cycle summary, or None when dropped or failed.
        """
        return self._run_guarded(trigger, fatal=False)

    def serve_forever(
        self,
        watcher: Watcher,
        stop_event: threading.Event,
        poll_interval: float = DEFAULT_WATCH_POLL_SECONDS,
    ) -> None:
        """Run startup sync, then react to change notifications until stopped.

        Raises:
            ThermoSyncError: Startup failures.
            WatchFailureError: If the watcher fails to start or dies.
        """
        self.start()
        watcher.start()
        try:
            while not stop_event.wait(poll_interval):
                watcher.check_alive()
        finally:
            self.state.pending_timer.cancel()
            watcher.stop()

    def _on_debounced(self) -> None:
        _LOGGER.info("source_changed")
        self.run_cycle("change")

    def _run_guarded(self, trigger: str, fatal: bool) -> SyncCycleResult | None:
        with self._guard:
            if self.state.in_progress:
                self.state.dropped_notifications += 1
                _LOGGER.warning("cycle_dropped", trigger=trigger)
                return None
            self.state.in_progress = True
        try:
            result = self._check_and_process(trigger)
        except ThermoSyncError as error:
            self.state.phase = SyncPhase.ERROR
            self.state.last_error = str(error)
            self._detector.reset()
            _LOGGER.error(
                "sync_cycle_failed",
                trigger=trigger,
                error_type=type(error).__name__,
                error=str(error),
                watermark=_render(self.state.watermark),
            )
            if fatal:
                raise
            return None
        finally:
            with self._guard:
                self.state.in_progress = False
                self.state.phase = SyncPhase.IDLE
        self.state.last_result = result
        self.state.last_error = None
        return result

    def _check_and_process(self, trigger: str) -> SyncCycleResult:
        self.state.phase = SyncPhase.CHECKING
        watermark = resolve_watermark(self._store)
        changed = self._detector.has_changed()
        self.state.last_observation = self._detector.last_observation
        self.state.watermark = watermark
        if watermark is not None and not changed:
            _LOGGER.info("sync_cycle_skipped", trigger=trigger, watermark=_render(watermark))
            return SyncCycleResult(trigger=trigger, processed=False, watermark=watermark)
        self.state.phase = SyncPhase.PROCESSING
        try:
            pass_result = self._runner.run(watermark)
        except WriteFailureError as error:
            self.state.watermark = watermark_after_failure(error, watermark)
            raise
        self.state.watermark = pass_result.watermark
        result = SyncCycleResult(
            trigger=trigger,
            processed=True,
            scanned_count=pass_result.scanned_count,
            skipped_count=pass_result.skipped_count,
            new_count=len(pass_result.new_readings),
            written_count=pass_result.write_result.rows_committed,
            watermark=pass_result.watermark,
        )
        _LOGGER.info(
            "sync_cycle_completed",
            trigger=trigger,
            scanned_count=result.scanned_count,
            skipped_count=result.skipped_count,
            written_count=result.written_count,
            watermark=_render(result.watermark),
        )
        return result


def _render(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
