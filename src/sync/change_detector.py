"""Source change detection and notification debouncing.

Change detection compares file size and modification time with the
last observation. A same-size, same-mtime overwrite is not detected.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import threading
from typing import Callable

from core.errors import SourceUnavailableError


@dataclass(frozen=True)
class FileObservation:
    """File size and modification time at one check."""

    size: int
    mtime_ns: int


class FileChangeDetector:
    """Stat-based change detector for the source container."""

    def __init__(self, source_path: Path) -> None:
        self._source_path = source_path
        self._last_observation: FileObservation | None = None

    @property
    def source_path(self) -> Path:
        return self._source_path

    @property
    def last_observation(self) -> FileObservation | None:
        return self._last_observation

    def observe(self) -> FileObservation:
        """Stat the source file.

        Raises:
            SourceUnavailableError: If the file is missing or cannot be stat'ed.
        """
        try:
            stat_result = self._source_path.stat()
        except OSError as error:
            raise SourceUnavailableError(
                f"Failed to stat source at {self._source_path}: {error}."
            ) from error
        return FileObservation(size=stat_result.st_size, mtime_ns=stat_result.st_mtime_ns)

    def has_changed(self) -> bool:
        """Return whether the file differs from the last observation.

        The current observation replaces the last one. A detector that
        has never observed the file reports a change.
        """
        current = self.observe()
        changed = current != self._last_observation
        self._last_observation = current
        return changed

    def reset(self) -> None:
        """Forget the last observation so the next check reports a change."""
        self._last_observation = None


class DebounceTimer:
    """Single-slot timer that collapses bursts of notifications.

    Each ``schedule`` call cancels the pending timer and starts a new one,
    so the callback runs once after ``delay_seconds`` of quiet.
    """

    def __init__(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        self._delay_seconds = delay_seconds
        self._callback = callback
        self._lock = threading.Lock()
        self._pending: threading.Timer | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule(self) -> None:
        """Cancel any pending timer and start a fresh one."""
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            timer = threading.Timer(self._delay_seconds, self._fire)
            timer.daemon = True
            self._pending = timer
            timer.start()

    def cancel(self) -> None:
        """Cancel the pending timer, if any."""
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

    def _fire(self) -> None:
        with self._lock:
            if self._pending is not threading.current_thread():
                return
            self._pending = None
        self._callback()
