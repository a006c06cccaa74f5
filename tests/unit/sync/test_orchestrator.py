"""Unit tests for the sync orchestrator state machine."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
import threading
import time
from typing import Callable

import pytest

from core.errors import SourceUnavailableError, WatchFailureError, WriteFailureError
from sync.change_detector import FileChangeDetector
from sync.orchestrator import SyncOrchestrator, SyncPhase
from tests.sync_fakes import (
    BASE_TIME,
    FakeSourceReader,
    failing_store,
    raw_record,
    raw_records,
    real_store,
)


class _FakeWatcher:
    """Watcher double that can die after a number of liveness checks."""

    def __init__(self, die_after: int | None = None) -> None:
        self.die_after = die_after
        self.started = False
        self.stopped = False
        self.checks = 0

    def start(self) -> None:
        self.started = True

    def check_alive(self) -> None:
        self.checks += 1
        if self.die_after is not None and self.checks > self.die_after:
            raise WatchFailureError("observer thread exited")

    def stop(self) -> None:
        self.stopped = True


def _source(tmp_path: Path) -> Path:
    path = tmp_path / "plant.mdb"
    path.write_bytes(b"\x00" * 64)
    return path


def _grow(path: Path) -> None:
    with path.open("ab") as handle:
        handle.write(b"\x01" * 64)


def _orchestrator(
    tmp_path: Path,
    reader: FakeSourceReader,
    store: object | None = None,
    batch_size: int = 1000,
    debounce_seconds: float = 0.05,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        reader=reader,
        store=store or real_store(tmp_path),  # type: ignore[arg-type]
        detector=FileChangeDetector(_source(tmp_path)),
        batch_size=batch_size,
        debounce_seconds=debounce_seconds,
    )


def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_startup_loads_everything_into_empty_store(tmp_path: Path) -> None:
    """Startup against an empty store should process the full scan."""
    orchestrator = _orchestrator(tmp_path, FakeSourceReader(raw_records(5)))

    result = orchestrator.start()

    assert (
        result.processed
        and result.written_count == 5
        and result.watermark == BASE_TIME + timedelta(minutes=4)
        and orchestrator.state.phase == SyncPhase.IDLE
    )


def test_unchanged_source_skips_processing(tmp_path: Path) -> None:
    """A cycle with an unchanged file and a watermark should not re-read."""
    reader = FakeSourceReader(raw_records(3))
    orchestrator = _orchestrator(tmp_path, reader)
    orchestrator.start()

    result = orchestrator.run_cycle()

    assert result is not None and not result.processed and reader.read_count == 1


def test_changed_source_writes_only_new_rows(tmp_path: Path) -> None:
    """Rows appended after startup should be written on the next change."""
    reader = FakeSourceReader(raw_records(3))
    orchestrator = _orchestrator(tmp_path, reader)
    orchestrator.start()
    reader.records = raw_records(5)
    _grow(tmp_path / "plant.mdb")

    result = orchestrator.run_cycle()

    assert result is not None and result.processed and result.written_count == 2


def test_startup_failure_is_fatal(tmp_path: Path) -> None:
    """A missing source at startup should propagate."""
    orchestrator = _orchestrator(tmp_path, FakeSourceReader(raw_records(1)))
    (tmp_path / "plant.mdb").unlink()

    with pytest.raises(SourceUnavailableError):
        orchestrator.start()

    assert orchestrator.state.in_progress is False


def test_change_cycle_failure_is_not_fatal(tmp_path: Path) -> None:
    """Failures after startup should be logged and return to idle."""
    orchestrator = _orchestrator(tmp_path, FakeSourceReader(raw_records(1)))
    orchestrator.start()
    (tmp_path / "plant.mdb").unlink()

    result = orchestrator.run_cycle()

    assert (
        result is None
        and orchestrator.state.phase == SyncPhase.IDLE
        and orchestrator.state.last_error is not None
    )


def test_notification_during_processing_is_dropped(tmp_path: Path) -> None:
    """Change notifications while a pass is running should be discarded."""
    reader = FakeSourceReader(raw_records(2))
    orchestrator = _orchestrator(tmp_path, reader)
    reader.on_read = orchestrator.notify_change

    orchestrator.start()

    assert (
        orchestrator.state.dropped_notifications == 1
        and not orchestrator.state.pending_timer.pending
    )


def test_overlapping_cycle_is_dropped(tmp_path: Path) -> None:
    """A cycle triggered during another cycle should not run."""
    reader = FakeSourceReader(raw_records(2))
    orchestrator = _orchestrator(tmp_path, reader)
    nested: list[object] = []
    reader.on_read = lambda: nested.append(orchestrator.run_cycle("change"))

    orchestrator.start()

    assert nested == [None] and reader.read_count == 1


def test_write_failure_keeps_committed_watermark(tmp_path: Path) -> None:
    """A failed chunk should leave the watermark at the last committed chunk."""
    records = raw_records(6)
    store = failing_store(tmp_path, fail_at=BASE_TIME + timedelta(minutes=4))
    orchestrator = _orchestrator(tmp_path, FakeSourceReader(records), store=store, batch_size=2)

    with pytest.raises(WriteFailureError):
        orchestrator.start()

    assert orchestrator.state.watermark == BASE_TIME + timedelta(minutes=3)


def test_failed_cycle_reprocesses_on_next_trigger(tmp_path: Path) -> None:
    """After a failure the next trigger should run a full pass again."""
    reader = FakeSourceReader(raw_records(4))
    store = failing_store(tmp_path, fail_at=BASE_TIME + timedelta(minutes=3))
    orchestrator = _orchestrator(tmp_path, reader, store=store, batch_size=2)
    with pytest.raises(WriteFailureError):
        orchestrator.start()

    orchestrator.run_cycle()

    assert reader.read_count == 2 and store.count_rows() == 2


def test_debounced_notifications_run_one_cycle(tmp_path: Path) -> None:
    """A burst of notifications should trigger a single change cycle."""
    reader = FakeSourceReader(raw_records(2))
    orchestrator = _orchestrator(tmp_path, reader)
    orchestrator.start()
    reader.records = raw_records(4)
    _grow(tmp_path / "plant.mdb")

    for _ in range(4):
        orchestrator.notify_change()
    _wait_until(lambda: reader.read_count >= 2 and not orchestrator.state.in_progress)
    time.sleep(0.15)

    last_result = orchestrator.state.last_result
    assert (
        reader.read_count == 2
        and last_result is not None
        and last_result.trigger == "change"
        and last_result.written_count == 2
    )


def test_serve_forever_stops_when_event_is_set(tmp_path: Path) -> None:
    """Serving should sync, start the watcher, and stop it on shutdown."""
    reader = FakeSourceReader(raw_records(2))
    orchestrator = _orchestrator(tmp_path, reader)
    watcher = _FakeWatcher()
    stop_event = threading.Event()
    stop_event.set()

    orchestrator.serve_forever(watcher, stop_event, poll_interval=0.01)

    assert watcher.started and watcher.stopped and reader.read_count == 1


def test_serve_forever_raises_when_watcher_dies(tmp_path: Path) -> None:
    """A dead watcher should end serving with a watch failure."""
    orchestrator = _orchestrator(tmp_path, FakeSourceReader(raw_records(1)))
    watcher = _FakeWatcher(die_after=2)

    with pytest.raises(WatchFailureError):
        orchestrator.serve_forever(watcher, threading.Event(), poll_interval=0.01)

    assert watcher.stopped and watcher.checks == 3


def test_startup_with_oversized_event_count_persists_zero(tmp_path: Path) -> None:
    """An event count beyond the integer range should not abort startup."""
    records = [raw_record(BASE_TIME, events="1e19")]
    store = real_store(tmp_path)
    orchestrator = _orchestrator(tmp_path, FakeSourceReader(records), store=store)

    result = orchestrator.start()
    page = store.get_readings(BASE_TIME, BASE_TIME)

    assert result.written_count == 1 and page.readings[0].reading.events == 0


def test_change_cycle_with_oversized_event_count_completes(tmp_path: Path) -> None:
    """A later cycle should write rows whose event count overflows the store type."""
    reader = FakeSourceReader([raw_record(BASE_TIME)])
    orchestrator = _orchestrator(tmp_path, reader)
    orchestrator.start()
    reader.records = [
        raw_record(BASE_TIME),
        raw_record(BASE_TIME + timedelta(minutes=1), events=2**64),
    ]
    _grow(tmp_path / "plant.mdb")

    result = orchestrator.run_cycle()

    assert result is not None and result.written_count == 1
