"""Core constants used across ThermoSync modules.

This module centralizes source column spellings, store names, and defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_SOURCE_PATH = Path("your-database.mdb")
DEFAULT_STORE_PATH = Path("temperature_data.sqlite")
DEFAULT_SOURCE_TABLE = "Table1"
DEFAULT_BATCH_SIZE = 1000
DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_WATCH_POLL_SECONDS = 1.0
DEFAULT_LOG_LEVEL = "info"
SUPPORTED_LOG_LEVELS = ("debug", "info", "warning", "error")
DEFAULT_QUERY_LIMIT = 1000
DEFAULT_INSPECT_LIMIT = 3
SAMPLE_LOG_LIMIT = 5

ZONE_COUNT = 14
ZONE_COLUMNS = tuple(f"T{index}" for index in range(1, ZONE_COUNT + 1))
DATE_FIELD_KEYS = ("date", "Date")
TIME_FIELD_KEYS = ("time", "Time")
EVENTS_FIELD_KEYS = ("Events", "events")
ZONE_FIELD_KEYS = tuple((column, column.lower()) for column in ZONE_COLUMNS)

READINGS_TABLE_NAME = "temperature_readings"
READINGS_TIMESTAMP_COLUMN = "datetime"
READINGS_TIMESTAMP_INDEX = "idx_datetime"
STATISTICS_DECIMALS = 2

OLE_AUTOMATION_EPOCH_ISO = "1899-12-30"
SKIP_MISSING_FIELD = "missing-field"
SKIP_INVALID_DATE = "invalid-date"
SKIP_INVALID_TIME = "invalid-time"
SKIP_INVALID_COMPOSED = "invalid-composed"
