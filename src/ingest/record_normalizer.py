"""Raw record normalization.

This module turns case-inconsistent raw rows into canonical readings.
Date and time come from separate columns: the time column carries a
fixed reference date, so only its clock fields are meaningful.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta
import math
import re
from typing import Iterable, Sequence

from core.constants import (
    DATE_FIELD_KEYS,
    EVENTS_FIELD_KEYS,
    OLE_AUTOMATION_EPOCH_ISO,
    SAMPLE_LOG_LIMIT,
    SKIP_INVALID_COMPOSED,
    SKIP_INVALID_DATE,
    SKIP_INVALID_TIME,
    SKIP_MISSING_FIELD,
    TIME_FIELD_KEYS,
    ZONE_FIELD_KEYS,
)
from core.errors import MalformedRecordError
from core.logging_config import get_logger
from core.types import NormalizationReport, NormalizedReading, RawRecord, SkippedRecord

_LOGGER = get_logger(__name__)
_OLE_AUTOMATION_EPOCH = datetime.fromisoformat(OLE_AUTOMATION_EPOCH_ISO)
_DATE_TEXT_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%d.%m.%Y")
_DATETIME_TEXT_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
)
_TIME_TEXT_FORMATS = ("%H:%M:%S", "%H:%M", "%I:%M:%S %p", "%I:%M %p")
_NUMERIC_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_EVENT_COUNT_MIN = -(2**63)
_EVENT_COUNT_MAX = 2**63 - 1


def normalize_record(raw: RawRecord) -> NormalizedReading | SkippedRecord:
    """Normalize one raw record into a reading or a skip decision.

    Args:
        raw: Raw column mapping from one source scan.

    Returns:
        Canonical reading, or the reason the record cannot become one.
    """
    try:
        return build_reading(raw)
    except MalformedRecordError as error:
        return SkippedRecord(reason=error.reason, detail=str(error))


def build_reading(raw: RawRecord) -> NormalizedReading:
    """Build a reading from a raw record.

    Raises:
        MalformedRecordError: If date/time are missing or cannot be composed.
    """
    date_value = resolve_field(raw, DATE_FIELD_KEYS)
    time_value = resolve_field(raw, TIME_FIELD_KEYS)
    if date_value is None or time_value is None:
        raise MalformedRecordError(
            SKIP_MISSING_FIELD,
            f"Missing date or time field (date={date_value!r}, time={time_value!r}).",
        )
    calendar_date = parse_date_component(date_value)
    if calendar_date is None:
        raise MalformedRecordError(SKIP_INVALID_DATE, f"Invalid date value {date_value!r}.")
    clock_time = parse_time_component(time_value)
    if clock_time is None:
        raise MalformedRecordError(SKIP_INVALID_TIME, f"Invalid time value {time_value!r}.")
    timestamp = compose_timestamp(calendar_date, clock_time)
    if timestamp is None:
        raise MalformedRecordError(
            SKIP_INVALID_COMPOSED,
            f"Cannot compose timestamp from {calendar_date!r} and {clock_time!r}.",
        )
    zones = tuple(coerce_numeric(resolve_field(raw, keys)) for keys in ZONE_FIELD_KEYS)
    return NormalizedReading(
        timestamp=timestamp,
        zones=zones,
        events=coerce_event_count(resolve_field(raw, EVENTS_FIELD_KEYS)),
    )


def normalize_records(raw_records: Sequence[RawRecord]) -> NormalizationReport:
    """Normalize one full scan, counting skips by reason.

    Args:
        raw_records: Raw records in source order.

    Returns:
        Report with readings in source order and skip counts.
    """
    readings: list[NormalizedReading] = []
    skipped: Counter[str] = Counter()
    for index, raw in enumerate(raw_records):
        outcome = normalize_record(raw)
        if index < SAMPLE_LOG_LIMIT:
            _log_sample(index, raw, outcome)
        if isinstance(outcome, SkippedRecord):
            skipped[outcome.reason] += 1
            _LOGGER.warning(
                "record_skipped", index=index, reason=outcome.reason, detail=outcome.detail
            )
            continue
        readings.append(outcome)
    _LOGGER.info(
        "readings_normalized",
        input_count=len(raw_records),
        reading_count=len(readings),
        skipped=dict(skipped),
    )
    return NormalizationReport(readings=readings, skipped=skipped)


def resolve_field(raw: RawRecord, keys: Iterable[str]) -> object | None:
    """Return the first present, non-blank value among candidate key spellings."""
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def parse_date_component(value: object) -> date | None:
    """Extract the calendar date from a source date value.

    Args:
        value: datetime/date object, date text, or OLE Automation day count.

    Returns:
        Calendar date, or None when the value is not a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_number(value):
        serial = _from_ole_automation(float(value))  # type: ignore[arg-type]
        return serial.date() if serial is not None else None
    if isinstance(value, str):
        parsed = _parse_datetime_text(value.strip())
        if parsed is not None:
            return parsed.date()
        for fmt in _DATE_TEXT_FORMATS:
            try:
                return datetime.strptime(value.strip(), fmt).date()
            except ValueError:
                continue
    return None


def parse_time_component(value: object) -> time | None:
    """Extract the wall-clock time from a source time value.

    The reference date carried by datetime values is discarded.

    Args:
        value: datetime/time object, time text, or OLE Automation day count.

    Returns:
        Clock time without sub-second precision, or None.
    """
    if isinstance(value, datetime):
        return value.time().replace(microsecond=0)
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)
    if _is_number(value):
        serial = _from_ole_automation(float(value))  # type: ignore[arg-type]
        return serial.time().replace(microsecond=0) if serial is not None else None
    if isinstance(value, str):
        text = value.strip()
        parsed = _parse_datetime_text(text)
        if parsed is not None:
            return parsed.time().replace(microsecond=0)
        for fmt in _TIME_TEXT_FORMATS:
            try:
                return datetime.strptime(text, fmt).time()
            except ValueError:
                continue
    return None


def compose_timestamp(calendar_date: date, clock_time: time) -> datetime | None:
    """Combine a date's Y/M/D with a time's H/M/S, dropping sub-seconds."""
    try:
        return datetime(
            calendar_date.year,
            calendar_date.month,
            calendar_date.day,
            clock_time.hour,
            clock_time.minute,
            clock_time.second,
        )
    except (ValueError, OverflowError):
        return None


def coerce_numeric(value: object) -> float | None:
    """Coerce a zone value to a finite float, or None.

    Text is read up to the end of its leading number, so unit suffixes
    such as ``21.5C`` still yield a value.
    """
    if _is_number(value):
        number = float(value)  # type: ignore[arg-type]
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        if match is None:
            return None
        number = float(match.group(0))
        return number if math.isfinite(number) else None
    return None


def coerce_event_count(value: object) -> int:
    """Coerce the event column like a zone value, defaulting to zero.

    Counts outside the store's 64-bit integer range also become zero.
    """
    number = coerce_numeric(value)
    if number is None:
        return 0
    count = int(number)
    if not _EVENT_COUNT_MIN <= count <= _EVENT_COUNT_MAX:
        return 0
    return count


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_datetime_text(text: str) -> datetime | None:
    """Parse ISO or US desktop date-time text; naive result."""
    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(iso_text)
    except ValueError:
        parsed = None
    if parsed is None:
        for fmt in _DATETIME_TEXT_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed.replace(tzinfo=None)


def _from_ole_automation(serial: float) -> datetime | None:
    """Convert an OLE Automation day count to a datetime."""
    if not math.isfinite(serial):
        return None
    try:
        return _OLE_AUTOMATION_EPOCH + timedelta(days=serial)
    except OverflowError:
        return None


def _log_sample(index: int, raw: RawRecord, outcome: NormalizedReading | SkippedRecord) -> None:
    processed = (
        {"datetime": outcome.canonical_timestamp, "T1": outcome.zones[0]}
        if isinstance(outcome, NormalizedReading)
        else {"skipped": outcome.reason}
    )
    _LOGGER.debug(
        "sample_record",
        index=index,
        date=repr(resolve_field(raw, DATE_FIELD_KEYS)),
        time=repr(resolve_field(raw, TIME_FIELD_KEYS)),
        T1=repr(raw.get("T1")),
        processed=processed,
    )
