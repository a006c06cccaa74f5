"""Sync pass orchestration.

This module runs one full source pass: read, normalize, deduplicate
against the watermark, and write new readings in chunks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from core.errors import WriteFailureError
from core.logging_config import get_logger
from core.types import NormalizedReading, WriteResult
from ingest.record_normalizer import normalize_records
from ingest.source_reader import SourceReader
from ingest.watermark import filter_new_readings, max_reading_timestamp
from store.batch_writer import BatchWriter, ChunkSink

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class SyncPassResult:
    """Outcome of one successful sync pass.

    Attributes:
        scanned_count: Raw records read from the source.
        skipped_count: Raw records rejected by normalization.
        new_readings: Readings newer than the watermark, ascending.
        write_result: Chunked write progress.
        watermark: Max persisted timestamp after the pass.
    """

    scanned_count: int
    skipped_count: int
    new_readings: list[NormalizedReading]
    write_result: WriteResult
    watermark: datetime | None


class SyncPassRunner:
    """Runs full-scan sync passes against one source and store."""

    def __init__(self, reader: SourceReader, sink: ChunkSink, batch_size: int) -> None:
        self._reader = reader
        self._writer = BatchWriter(sink)
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def run(self, watermark: datetime | None) -> SyncPassResult:
        """Execute one pass and return its summary.

        Args:
            watermark: Max persisted timestamp; None loads everything.

        Returns:
            Pass summary with the advanced watermark.

        Raises:
            SourceUnavailableError: If the source cannot be read.
            WriteFailureError: If a chunk fails; earlier chunks stay committed.
        """
        raw_records = self._reader.read()
        report = normalize_records(raw_records)
        new_readings = order_readings(filter_new_readings(report.readings, watermark))
        _LOGGER.info(
            "new_readings_selected",
            scanned_count=len(raw_records),
            reading_count=len(report.readings),
            new_count=len(new_readings),
            watermark=_render(watermark),
        )
        write_result = self._writer.write(new_readings, self._batch_size)
        advanced = max_reading_timestamp(new_readings) or watermark
        return SyncPassResult(
            scanned_count=len(raw_records),
            skipped_count=report.skipped_count,
            new_readings=new_readings,
            write_result=write_result,
            watermark=advanced,
        )


def order_readings(readings: list[NormalizedReading]) -> list[NormalizedReading]:
    """Sort readings ascending by timestamp, keeping source order for ties."""
    return sorted(readings, key=lambda reading: reading.canonical_timestamp)


def watermark_after_failure(
    error: WriteFailureError,
    previous: datetime | None,
) -> datetime | None:
    """Return the watermark reached before a chunk failure."""
    return error.result.last_committed_timestamp or previous


def _render(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
