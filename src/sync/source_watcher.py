"""Filesystem notifications for the source container.

This module wraps a watchdog observer on the source file's directory
and forwards events that touch the source file itself.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from core.errors import WatchFailureError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_RELEVANT_EVENT_TYPES = ("modified", "created", "moved")
_OBSERVER_JOIN_SECONDS = 5.0


class SourceFileEventHandler(FileSystemEventHandler):
    """Forward change events for one file to a callback."""

    def __init__(self, source_path: Path, on_change: Callable[[], None]) -> None:
        super().__init__()
        self._source_path = source_path.resolve()
        self._on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT_EVENT_TYPES:
            return
        if event.event_type == "moved":
            candidate_paths = [getattr(event, "dest_path", "")]
        else:
            candidate_paths = [event.src_path]
        if any(self._matches(path) for path in candidate_paths):
            self._on_change()

    def _matches(self, raw_path: str | bytes) -> bool:
        if not raw_path:
            return False
        return Path(os.fsdecode(raw_path)).resolve() == self._source_path


class SourceWatcher:
    """Observer lifecycle for source change notifications."""

    def __init__(
        self,
        source_path: Path,
        on_change: Callable[[], None],
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self._source_path = source_path
        self._handler = SourceFileEventHandler(source_path, on_change)
        self._observer_factory = observer_factory
        self._observer: Any = None

    def start(self) -> None:
        """Start watching the source file's directory.

        Raises:
            WatchFailureError: If the observer cannot be started.
        """
        watch_dir = self._source_path.resolve().parent
        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, str(watch_dir), recursive=False)
            observer.start()
        except (OSError, RuntimeError) as error:
            raise WatchFailureError(
                f"Failed to watch {watch_dir} for source changes: {error}. "
                "Check directory permissions and inotify limits."
            ) from error
        self._observer = observer
        _LOGGER.info("watch_started", source_path=str(self._source_path))

    def check_alive(self) -> None:
        """Raise when the observer thread has died.

        Raises:
            WatchFailureError: If notifications are no longer delivered.
        """
        if self._observer is None or not self._observer.is_alive():
            raise WatchFailureError(
                f"Filesystem watcher for {self._source_path} stopped unexpectedly. "
                "Restart the sync service."
            )

    def stop(self) -> None:
        """Stop the observer and wait for its thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(_OBSERVER_JOIN_SECONDS)
        self._observer = None
        _LOGGER.info("watch_stopped", source_path=str(self._source_path))
