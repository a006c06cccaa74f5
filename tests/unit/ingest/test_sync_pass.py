"""Unit tests for full-scan sync passes."""

from __future__ import annotations

from datetime import timedelta

from ingest.pipeline import SyncPassRunner, order_readings
from tests.sync_fakes import BASE_TIME, FakeSourceReader, raw_record, raw_records, reading, real_store


def test_pass_writes_new_readings_in_timestamp_order(tmp_path) -> None:
    """Out-of-order source rows should persist in ascending timestamp order."""
    rows = list(reversed(raw_records(5)))
    store = real_store(tmp_path)

    result = SyncPassRunner(FakeSourceReader(rows), store, batch_size=2).run(None)
    page = store.get_readings(BASE_TIME, BASE_TIME + timedelta(hours=1))
    store.close()

    assert [item.reading.timestamp for item in page.readings] == sorted(
        item.reading.timestamp for item in page.readings
    ) and result.write_result.chunks_total == 3


def test_pass_is_idempotent_without_source_changes(tmp_path) -> None:
    """A second pass at the advanced watermark should insert nothing."""
    reader = FakeSourceReader(raw_records(4))
    store = real_store(tmp_path)
    runner = SyncPassRunner(reader, store, batch_size=10)
    first = runner.run(None)

    second = runner.run(first.watermark)
    row_count = store.count_rows()
    store.close()

    assert (second.write_result.rows_committed, row_count) == (0, 4)


def test_pass_counts_skipped_records(tmp_path) -> None:
    """Malformed rows should be counted and not written."""
    rows = raw_records(2) + [{"Date": "2024-01-10"}, raw_record(BASE_TIME, zone_value="x")]
    store = real_store(tmp_path)

    result = SyncPassRunner(FakeSourceReader(rows), store, batch_size=10).run(None)
    store.close()

    assert (result.scanned_count, result.skipped_count, len(result.new_readings)) == (4, 1, 3)


def test_pass_keeps_watermark_when_nothing_is_new(tmp_path) -> None:
    """The watermark should not move when no readings qualify."""
    store = real_store(tmp_path)
    watermark = BASE_TIME + timedelta(days=1)

    result = SyncPassRunner(FakeSourceReader(raw_records(3)), store, batch_size=10).run(watermark)
    store.close()

    assert result.watermark == watermark


def test_order_readings_keeps_source_order_for_ties() -> None:
    """Readings sharing a timestamp should keep their relative order."""
    later = reading(BASE_TIME + timedelta(minutes=1), 1.0)
    first_tie = reading(BASE_TIME, 2.0)
    second_tie = reading(BASE_TIME, 3.0)

    ordered = order_readings([later, first_tie, second_tie])

    assert ordered == [first_tie, second_tie, later]
