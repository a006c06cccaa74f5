"""ThermoSync exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each sync stage raises a specific error type for debuggability.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.types import WriteResult


class ThermoSyncError(Exception):
    """Base exception for all ThermoSync failures."""


class ThermoSyncConfigError(ThermoSyncError):
    """Raised for invalid runtime configuration."""


class ThermoSyncDependencyError(ThermoSyncError):
    """Raised when an optional runtime dependency is missing."""


class SourceUnavailableError(ThermoSyncError):
    """Raised when the source container cannot be opened or lacks its table."""


class MalformedRecordError(ThermoSyncError):
    """Raised when one raw source record cannot be normalized."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class StoreUnavailableError(ThermoSyncError):
    """Raised when the reading store cannot be opened or queried."""


class StoreWriteError(ThermoSyncError):
    """Raised when an insert transaction fails and is rolled back."""


class WriteFailureError(ThermoSyncError):
    """Raised when a chunk transaction fails and later chunks are abandoned.

    Attributes:
        result: Progress committed before the failing chunk.
    """

    def __init__(self, message: str, result: "WriteResult") -> None:
        super().__init__(message)
        self.result = result


class WatchFailureError(ThermoSyncError):
    """Raised when filesystem change notifications stop working."""