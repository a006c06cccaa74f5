"""Chunked transactional persistence.

This module splits ordered readings into bounded chunks and commits
each chunk in its own transaction. A failing chunk aborts the rest;
chunks committed before it stay persisted.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from core.errors import StoreWriteError, ThermoSyncConfigError, WriteFailureError
from core.logging_config import get_logger
from core.types import NormalizedReading, WriteResult

_LOGGER = get_logger(__name__)


class ChunkSink(Protocol):
    """Store surface that persists one chunk atomically."""

    def insert_chunk(self, readings: Sequence[NormalizedReading]) -> int:
        ...


def plan_chunks(
    readings: Sequence[NormalizedReading],
    batch_size: int,
) -> list[Sequence[NormalizedReading]]:
    """Split readings into ordered chunks of ``batch_size``.

    Args:
        readings: Readings in ascending timestamp order.
        batch_size: Maximum chunk size.

    Returns:
        ``ceil(n / batch_size)`` chunks; only the last may be short.

    Raises:
        ThermoSyncConfigError: If batch size is not positive.
    """
    _validate_batch_size(batch_size)
    return [
        readings[offset : offset + batch_size] for offset in range(0, len(readings), batch_size)
    ]


class BatchWriter:
    """Writes reading chunks in order, one transaction per chunk."""

    def __init__(self, sink: ChunkSink) -> None:
        self._sink = sink

    def write(self, readings: Sequence[NormalizedReading], batch_size: int) -> WriteResult:
        """Persist readings chunk by chunk.

        Args:
            readings: Readings in ascending timestamp order.
            batch_size: Readings per chunk transaction.

        Returns:
            Write result with every chunk committed.

        Raises:
            WriteFailureError: If a chunk fails; carries the committed progress.
        """
        chunks = plan_chunks(readings, batch_size)
        chunks_committed = 0
        rows_committed = 0
        last_committed = None
        for chunk_index, chunk in enumerate(chunks, 1):
            try:
                rows_committed += self._sink.insert_chunk(chunk)
            except StoreWriteError as error:
                result = WriteResult(
                    chunks_total=len(chunks),
                    chunks_committed=chunks_committed,
                    rows_committed=rows_committed,
                    last_committed_timestamp=last_committed,
                )
                _LOGGER.error(
                    "chunk_failed",
                    chunk=chunk_index,
                    chunks_total=len(chunks),
                    chunks_committed=chunks_committed,
                    error=str(error),
                )
                raise WriteFailureError(
                    f"Chunk {chunk_index}/{len(chunks)} failed after {chunks_committed} "
                    f"committed chunks ({rows_committed} rows): {error}",
                    result,
                ) from error
            chunks_committed += 1
            last_committed = max(reading.timestamp for reading in chunk)
            _LOGGER.info(
                "chunk_committed",
                chunk=chunk_index,
                chunks_total=len(chunks),
                row_count=len(chunk),
            )
        return WriteResult(
            chunks_total=len(chunks),
            chunks_committed=chunks_committed,
            rows_committed=rows_committed,
            last_committed_timestamp=last_committed,
        )


def _validate_batch_size(batch_size: int) -> None:
    """Validate chunk size input."""
    if batch_size < 1:
        raise ThermoSyncConfigError(
            f"Invalid batch size {batch_size}: expected value >= 1. "
            "Set THERMOSYNC_BATCH_SIZE to a positive integer."
        )
