"""Shared pytest fixtures for ThermoSync tests."""

from __future__ import annotations

import pytest

_SYNC_ENV_VARS = (
    "MDB_FILE_PATH",
    "THERMOSYNC_STORE_PATH",
    "THERMOSYNC_SOURCE_TABLE",
    "THERMOSYNC_BATCH_SIZE",
    "THERMOSYNC_DEBOUNCE_SECONDS",
    "THERMOSYNC_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_sync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test without ThermoSync settings from the outer shell."""
    for name in _SYNC_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
