"""Public SDK surface for ThermoSync.

This module provides a stable import path for library users.
It re-exports the primary client, config, and typed models.
"""

from __future__ import annotations

from core.config import SyncConfig, load_config_file
from core.types import (
    DailyAverage,
    NormalizedReading,
    PersistedReading,
    ReadingPage,
    ReadingStatistics,
    SyncCycleResult,
    WriteResult,
)
from ingest.record_normalizer import normalize_record
from ingest.watermark import filter_new_readings
from store.batch_writer import BatchWriter, plan_chunks
from sync.sync_client import ThermoSyncClient

__all__ = [
    "BatchWriter",
    "DailyAverage",
    "NormalizedReading",
    "PersistedReading",
    "ReadingPage",
    "ReadingStatistics",
    "SyncConfig",
    "SyncCycleResult",
    "ThermoSyncClient",
    "WriteResult",
    "filter_new_readings",
    "load_config_file",
    "normalize_record",
    "plan_chunks",
]
