"""Legacy database container reader.

This module loads the reading table from an Access ``.mdb`` container.
Every read is a full scan; the container offers no incremental access.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from access_parser import AccessParser

from core.errors import SourceUnavailableError
from core.logging_config import get_logger
from core.types import RawRecord

_LOGGER = get_logger(__name__)


class SourceReader(Protocol):
    """Anything that can produce a full scan of raw reading records."""

    def read(self) -> list[RawRecord]:
        ...


class MdbSourceReader:
    """Full-scan reader for one table of an Access container."""

    def __init__(self, source_path: Path, table_name: str) -> None:
        self._source_path = source_path
        self._table_name = table_name

    @property
    def source_path(self) -> Path:
        return self._source_path

    def read(self) -> list[RawRecord]:
        """Read every row of the reading table.

        Returns:
            Raw records in container order.

        Raises:
            SourceUnavailableError: If the container or table cannot be read.
        """
        parser = self._open_parser()
        if self._table_name not in _table_names(parser):
            raise SourceUnavailableError(
                f"Table '{self._table_name}' not found in {self._source_path}. "
                f"Available tables: {', '.join(_table_names(parser)) or '-'}. "
                "Set THERMOSYNC_SOURCE_TABLE to the reading table name."
            )
        try:
            columns = parser.parse_table(self._table_name)
        except Exception as error:
            raise SourceUnavailableError(
                f"Failed to parse table '{self._table_name}' in {self._source_path}: {error}."
            ) from error
        records = _rows_from_columns(columns or {})
        _LOGGER.info(
            "source_read",
            source_path=str(self._source_path),
            table_name=self._table_name,
            record_count=len(records),
        )
        return records

    def inspect(self, limit: int) -> list[RawRecord]:
        """Return the first raw rows for diagnosing source formats."""
        return self.read()[: max(limit, 0)]

    def list_tables(self) -> list[str]:
        """Return user table names present in the container."""
        return _table_names(self._open_parser())

    def _open_parser(self) -> Any:
        if not self._source_path.is_file():
            raise SourceUnavailableError(
                f"Failed to read source at {self._source_path}: file does not exist. "
                "Set MDB_FILE_PATH to point to your .mdb file."
            )
        try:
            return AccessParser(str(self._source_path))
        except Exception as error:
            raise SourceUnavailableError(
                f"Failed to open source container at {self._source_path}: {error}. "
                "Check that the file is a readable Access database."
            ) from error


def _table_names(parser: Any) -> list[str]:
    """Return sorted user table names from a parser catalog."""
    return sorted(name for name in parser.catalog if not str(name).startswith("MSys"))


def _rows_from_columns(columns: Any) -> list[RawRecord]:
    """Transpose a column-oriented table payload into row mappings.

    Args:
        columns: Mapping of column name to the column's value list.

    Returns:
        One mapping per row; short columns contribute ``None``.
    """
    column_names = list(columns)
    if not column_names:
        return []
    row_count = max(len(columns[name]) for name in column_names)
    records: list[RawRecord] = []
    for row_index in range(row_count):
        row: dict[str, object] = {}
        for name in column_names:
            values = columns[name]
            row[name] = values[row_index] if row_index < len(values) else None
        records.append(row)
    return records
