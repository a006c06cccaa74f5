"""Runtime configuration model for ThermoSync.

This module owns all environment variable and config-file parsing.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Mapping, cast

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SOURCE_PATH,
    DEFAULT_SOURCE_TABLE,
    DEFAULT_STORE_PATH,
    SUPPORTED_LOG_LEVELS,
)
from core.errors import ThermoSyncConfigError, ThermoSyncDependencyError

_CONFIG_FILE_KEYS = (
    "source_path",
    "store_path",
    "source_table",
    "batch_size",
    "debounce_seconds",
    "log_level",
)


@dataclass(frozen=True)
class SyncConfig:
    """Validated runtime configuration.

    Attributes:
        source_path: Legacy database container holding the reading table.
        store_path: SQLite file backing the reading store.
        source_table: Name of the reading table inside the container.
        batch_size: Readings written per chunk transaction.
        debounce_seconds: Quiet interval before a change triggers a resync.
        log_level: Minimum structured log level.
    """

    source_path: Path
    store_path: Path
    source_table: str = DEFAULT_SOURCE_TABLE
    batch_size: int = DEFAULT_BATCH_SIZE
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            ThermoSyncConfigError: If environment values are invalid.
        """
        source_value = os.getenv("MDB_FILE_PATH", str(DEFAULT_SOURCE_PATH))
        store_value = os.getenv("THERMOSYNC_STORE_PATH", str(DEFAULT_STORE_PATH))
        source_table = os.getenv("THERMOSYNC_SOURCE_TABLE", DEFAULT_SOURCE_TABLE)
        batch_size = _parse_batch_size(
            os.getenv("THERMOSYNC_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)),
            "THERMOSYNC_BATCH_SIZE",
        )
        debounce_seconds = _parse_debounce_seconds(
            os.getenv("THERMOSYNC_DEBOUNCE_SECONDS", str(DEFAULT_DEBOUNCE_SECONDS)),
            "THERMOSYNC_DEBOUNCE_SECONDS",
        )
        log_level = _parse_log_level(
            os.getenv("THERMOSYNC_LOG_LEVEL", DEFAULT_LOG_LEVEL),
            "THERMOSYNC_LOG_LEVEL",
        )
        return cls(
            source_path=_resolve_path(source_value),
            store_path=_resolve_path(store_value),
            source_table=source_table.strip() or DEFAULT_SOURCE_TABLE,
            batch_size=batch_size,
            debounce_seconds=debounce_seconds,
            log_level=log_level,
        )


def load_config_file(config_path: str, base: SyncConfig) -> SyncConfig:
    """Overlay a YAML config file onto an existing config.

    Args:
        config_path: Path to a YAML mapping with snake_case config keys.
        base: Config whose values are kept for keys the file omits.

    Returns:
        Config with file values applied.

    Raises:
        ThermoSyncDependencyError: If PyYAML is unavailable.
        ThermoSyncConfigError: If the file is missing, invalid, or has unknown keys.
    """
    payload = _load_yaml_mapping(config_path)
    unknown_keys = sorted(set(payload) - set(_CONFIG_FILE_KEYS))
    if unknown_keys:
        raise ThermoSyncConfigError(
            f"Config file {config_path} contains unknown fields: {', '.join(unknown_keys)}. "
            f"Supported fields: {', '.join(_CONFIG_FILE_KEYS)}."
        )
    config = base
    if "source_path" in payload:
        config = replace(config, source_path=_resolve_path(str(payload["source_path"])))
    if "store_path" in payload:
        config = replace(config, store_path=_resolve_path(str(payload["store_path"])))
    if "source_table" in payload:
        config = replace(config, source_table=str(payload["source_table"]).strip())
    if "batch_size" in payload:
        config = replace(
            config, batch_size=_parse_batch_size(str(payload["batch_size"]), "batch_size")
        )
    if "debounce_seconds" in payload:
        config = replace(
            config,
            debounce_seconds=_parse_debounce_seconds(
                str(payload["debounce_seconds"]), "debounce_seconds"
            ),
        )
    if "log_level" in payload:
        config = replace(
            config, log_level=_parse_log_level(str(payload["log_level"]), "log_level")
        )
    return config


def _load_yaml_mapping(config_path: str) -> Mapping[str, object]:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise ThermoSyncDependencyError(
            "YAML config support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise ThermoSyncConfigError(
            f"Config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise ThermoSyncConfigError(
            f"Failed to read config file at {config_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise ThermoSyncConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ThermoSyncConfigError(
            f"Config file {config_file} must contain a mapping, got {type(payload).__name__}."
        )
    return {str(key): value for key, value in payload.items()}


def _resolve_path(raw_value: str) -> Path:
    return Path(raw_value).expanduser().resolve()


def _parse_batch_size(raw_value: str, field_name: str) -> int:
    """Parse a positive chunk size.

    Args:
        raw_value: Raw string value.
        field_name: Env var or config key for error context.

    Returns:
        Parsed batch size.

    Raises:
        ThermoSyncConfigError: If value is not a positive integer.
    """
    try:
        batch_size = int(raw_value)
    except ValueError as error:
        raise ThermoSyncConfigError(
            f"Invalid {field_name} value: expected integer, got '{raw_value}'. "
            f"Set {field_name} to a positive integer."
        ) from error
    if batch_size < 1:
        raise ThermoSyncConfigError(
            f"Invalid {field_name} value {batch_size}: expected value >= 1."
        )
    return batch_size


def _parse_debounce_seconds(raw_value: str, field_name: str) -> float:
    try:
        debounce_seconds = float(raw_value)
    except ValueError as error:
        raise ThermoSyncConfigError(
            f"Invalid {field_name} value: expected number of seconds, got '{raw_value}'."
        ) from error
    if debounce_seconds < 0:
        raise ThermoSyncConfigError(
            f"Invalid {field_name} value {debounce_seconds}: expected value >= 0."
        )
    return debounce_seconds


def _parse_log_level(raw_value: str, field_name: str) -> str:
    log_level = raw_value.strip().lower()
    if log_level not in SUPPORTED_LOG_LEVELS:
        raise ThermoSyncConfigError(
            f"Invalid {field_name} value '{raw_value}'. "
            f"Supported levels: {', '.join(SUPPORTED_LOG_LEVELS)}."
        )
    return log_level
