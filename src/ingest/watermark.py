"""Watermark resolution and watermark-based deduplication.

The watermark is the maximum timestamp already persisted. It is always
recomputed from the store; no separate watermark file is kept.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from core.types import NormalizedReading, format_timestamp


class WatermarkSource(Protocol):
    """Store surface needed to resolve the watermark."""

    def max_timestamp(self) -> datetime | None:
        ...


def resolve_watermark(store: WatermarkSource) -> datetime | None:
    """Return the maximum persisted timestamp, or None for an empty store.

    Raises:
        StoreUnavailableError: If the store query cannot execute.
    """
    return store.max_timestamp()


def filter_new_readings(
    readings: Sequence[NormalizedReading],
    watermark: datetime | None,
) -> list[NormalizedReading]:
    """Keep readings strictly newer than the watermark.

    Readings sharing one timestamp are not deduplicated against each
    other, only against the persisted watermark.

    Args:
        readings: Normalized readings from one full scan.
        watermark: Current watermark; None means full load.

    Returns:
        Retained readings in input order.
    """
    if watermark is None:
        return list(readings)
    watermark_text = format_timestamp(watermark)
    return [reading for reading in readings if reading.canonical_timestamp > watermark_text]


def max_reading_timestamp(readings: Sequence[NormalizedReading]) -> datetime | None:
    """Return the greatest timestamp among readings, or None when empty."""
    if not readings:
        return None
    return max(reading.timestamp for reading in readings)
