"""Unit tests for raw record normalization."""

from __future__ import annotations

from datetime import date, datetime, time

import pytest

from core.types import NormalizedReading, SkippedRecord
from ingest.record_normalizer import (
    coerce_event_count,
    coerce_numeric,
    normalize_record,
    normalize_records,
    parse_date_component,
    parse_time_component,
)


def _row(**fields: object) -> dict[str, object]:
    return dict(fields)


def test_time_reference_date_is_ignored() -> None:
    """Time values carry 1899-12-30; only their clock fields are used."""
    outcome = normalize_record(_row(date="2024-01-10", time="1899-12-30T14:30:00"))

    assert isinstance(outcome, NormalizedReading) and outcome.timestamp == datetime(
        2024, 1, 10, 14, 30, 0
    )


@pytest.mark.parametrize(
    ("date_value", "time_value", "expected"),
    [
        ("2024-01-10T23:59:59", "1899-12-30T00:00:01", datetime(2024, 1, 10, 0, 0, 1)),
        ("2023-12-31", "2030-06-15T07:08:09", datetime(2023, 12, 31, 7, 8, 9)),
        ("02/29/2024", "08:15", datetime(2024, 2, 29, 8, 15, 0)),
        (datetime(2024, 3, 1, 11, 11, 11), datetime(1899, 12, 30, 6, 5, 4), datetime(2024, 3, 1, 6, 5, 4)),
        (date(2024, 3, 2), time(18, 0, 0, 999999), datetime(2024, 3, 2, 18, 0, 0)),
        (45301.75, 0.5, datetime(2024, 1, 10, 12, 0, 0)),
    ],
)
def test_composed_timestamp_uses_date_ymd_and_time_hms(
    date_value: object,
    time_value: object,
    expected: datetime,
) -> None:
    """Composition should take Y/M/D from the date and H/M/S from the time."""
    outcome = normalize_record(_row(Date=date_value, Time=time_value))

    assert isinstance(outcome, NormalizedReading) and outcome.timestamp == expected


@pytest.mark.parametrize(
    "row",
    [
        {},
        {"date": "2024-01-10"},
        {"Time": "1899-12-30T14:30:00"},
        {"DATE": "2024-01-10", "TIME": "14:30:00"},
        {"date": "", "time": "14:30:00"},
        {"date": None, "Date": None, "time": "14:30:00"},
    ],
)
def test_missing_date_or_time_is_skipped(row: dict[str, object]) -> None:
    """Records lacking date or time under every spelling should be skipped."""
    outcome = normalize_record(row)

    assert isinstance(outcome, SkippedRecord) and outcome.reason == "missing-field"


def test_lower_case_key_wins_over_capitalized() -> None:
    """Candidate keys should be resolved in their fixed order."""
    outcome = normalize_record(
        _row(date="2024-01-10", Date="1999-01-01", time="10:00:00", Time="11:00:00")
    )

    assert isinstance(outcome, NormalizedReading) and outcome.timestamp == datetime(
        2024, 1, 10, 10, 0, 0
    )


def test_invalid_date_is_skipped() -> None:
    """Unparseable dates should yield an invalid-date skip."""
    outcome = normalize_record(_row(date="tomorrow", time="10:00:00"))

    assert isinstance(outcome, SkippedRecord) and outcome.reason == "invalid-date"


def test_invalid_time_is_skipped() -> None:
    """Unparseable times should yield an invalid-time skip."""
    outcome = normalize_record(_row(date="2024-01-10", time="25:99"))

    assert isinstance(outcome, SkippedRecord) and outcome.reason == "invalid-time"


def test_zone_values_are_coerced_independently() -> None:
    """Each zone should pass numbers through, parse numeric text, else be None."""
    row = _row(date="2024-01-10", time="10:00:00", T1=21.5, T2="19.25", T3="n/a", T4=True)
    row["T5"] = float("nan")
    row["t6"] = 7

    outcome = normalize_record(row)

    assert isinstance(outcome, NormalizedReading) and outcome.zones[:6] == (
        21.5,
        19.25,
        None,
        None,
        None,
        7.0,
    )


def test_record_with_all_null_zones_is_accepted() -> None:
    """No cross-column validation: a record without zone values still counts."""
    outcome = normalize_record(_row(date="2024-01-10", time="10:00:00"))

    assert isinstance(outcome, NormalizedReading) and outcome.zones == (None,) * 14


@pytest.mark.parametrize(
    ("raw_value", "expected"),
    [(None, 0), ("abc", 0), ("3", 3), (2.0, 2), (float("inf"), 0)],
)
def test_event_count_defaults_to_zero(raw_value: object, expected: int) -> None:
    """Events should coerce like zones but default to zero."""
    assert coerce_event_count(raw_value) == expected


def test_coerce_numeric_rejects_infinite_text() -> None:
    """Non-finite numeric text should not become a zone value."""
    assert coerce_numeric("inf") is None


def test_parse_components_accept_us_desktop_text() -> None:
    """US-style date-time text should parse for both components."""
    parsed = (
        parse_date_component("01/10/2024 00:00:00"),
        parse_time_component("12/30/1899 14:30:00"),
    )

    assert parsed == (date(2024, 1, 10), time(14, 30, 0))


def test_normalize_records_counts_skips_by_reason() -> None:
    """Full-scan normalization should keep readings and count skips."""
    rows = [
        _row(date="2024-01-10", time="10:00:00"),
        _row(date="bad", time="10:00:00"),
        _row(time="10:00:00"),
        _row(date="2024-01-10", time="10:01:00"),
    ]

    report = normalize_records(rows)

    assert (
        len(report.readings) == 2
        and report.skipped == {"invalid-date": 1, "missing-field": 1}
        and report.skipped_count == 2
    )


@pytest.mark.parametrize(
    ("raw_value", "expected"),
    [
        ("21.5", 21.5),
        ("21.5C", 21.5),
        ("  21.5 degC", 21.5),
        ("1e3x", 1000.0),
        ("-4.", -4.0),
        (".5", 0.5),
        ("C21.5", None),
        ("1e999", None),
    ],
)
def test_coerce_numeric_reads_leading_number(raw_value: str, expected: float | None) -> None:
    """Numeric text with a trailing unit or suffix should keep its leading number."""
    assert coerce_numeric(raw_value) == expected


@pytest.mark.parametrize("raw_value", ["1e19", 2**64, -(2**64), "9.3e18"])
def test_event_count_outside_integer_range_is_zero(raw_value: object) -> None:
    """Event counts the store cannot hold as a 64-bit integer should default to zero."""
    assert coerce_event_count(raw_value) == 0


def test_event_count_keeps_large_in_range_value() -> None:
    """Large counts inside the 64-bit range should pass through."""
    assert coerce_event_count(4_000_000_000) == 4_000_000_000
