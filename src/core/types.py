"""Shared typed models.

This module defines immutable data models used by ingest, store,
and sync layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from core.constants import ZONE_COUNT

RawRecord = Mapping[str, object]


@dataclass(frozen=True)
class NormalizedReading:
    """Canonical multi-zone sensor reading.

    Attributes:
        timestamp: Composed local instant at second precision.
        zones: Fourteen optional zone values, ordered T1..T14.
        events: Event count, zero when the source had none.
    """

    timestamp: datetime
    zones: tuple[float | None, ...]
    events: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.timestamp, datetime):
            raise ValueError(f"Reading timestamp must be a datetime, got {self.timestamp!r}.")
        if self.timestamp.microsecond or self.timestamp.tzinfo is not None:
            raise ValueError(
                f"Reading timestamp must be naive with whole seconds, got {self.timestamp!r}."
            )
        if len(self.zones) != ZONE_COUNT:
            raise ValueError(
                f"Reading requires {ZONE_COUNT} zone values, got {len(self.zones)}."
            )

    @property
    def canonical_timestamp(self) -> str:
        """Fixed-format timestamp text used for ordering and persistence."""
        return format_timestamp(self.timestamp)


@dataclass(frozen=True)
class SkippedRecord:
    """Normalization outcome for a raw record that cannot become a reading.

    Attributes:
        reason: Skip reason code, e.g. ``missing-field``.
        detail: Human-readable context for logs.
    """

    reason: str
    detail: str = ""


@dataclass(frozen=True)
class NormalizationReport:
    """Result of normalizing one full source scan."""

    readings: list[NormalizedReading]
    skipped: Counter[str] = field(default_factory=Counter)

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped.values())


@dataclass(frozen=True)
class WriteResult:
    """Progress of a chunked write.

    Attributes:
        chunks_total: Number of chunks the input was split into.
        chunks_committed: Chunks durably committed, in order.
        rows_committed: Readings persisted across committed chunks.
        last_committed_timestamp: Max timestamp of the last committed chunk.
    """

    chunks_total: int
    chunks_committed: int
    rows_committed: int
    last_committed_timestamp: datetime | None = None

    @property
    def complete(self) -> bool:
        return self.chunks_committed == self.chunks_total


@dataclass(frozen=True)
class SyncCycleResult:
    """Summary of one orchestrator check/process cycle.

    Attributes:
        trigger: What started the cycle, ``startup`` or ``change``.
        processed: Whether the cycle ran a full source pass.
        scanned_count: Raw records read from the source.
        skipped_count: Raw records rejected by normalization.
        new_count: Readings newer than the watermark.
        written_count: Readings committed to the store.
        watermark: In-memory watermark after the cycle.
    """

    trigger: str
    processed: bool
    scanned_count: int = 0
    skipped_count: int = 0
    new_count: int = 0
    written_count: int = 0
    watermark: datetime | None = None


@dataclass(frozen=True)
class PersistedReading:
    """Reading as stored, with its surrogate row id."""

    row_id: int
    reading: NormalizedReading


@dataclass(frozen=True)
class ReadingPage:
    """One page of persisted readings for a time range."""

    readings: list[PersistedReading]
    total: int
    limit: int
    offset: int


@dataclass(frozen=True)
class ReadingStatistics:
    """Min/max/average over every zone value in a time range."""

    minimum: float | None
    maximum: float | None
    average: float | None


@dataclass(frozen=True)
class DailyAverage:
    """Per-day zone averages for multi-day range views."""

    day: str
    zones: tuple[float | None, ...]


def format_timestamp(value: datetime) -> str:
    """Render a timestamp in the canonical fixed format."""
    return value.isoformat(timespec="seconds")


def parse_canonical_timestamp(value: str) -> datetime:
    """Parse canonical timestamp text back into a datetime."""
    return datetime.fromisoformat(value)
