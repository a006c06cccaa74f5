"""Locations of static test fixtures."""

from __future__ import annotations

from pathlib import Path

FIXTURES_ROOT = Path(__file__).resolve().parent / "fixtures"


def config_fixture(file_name: str) -> str:
    """Return the path of a YAML config fixture as a CLI-style string."""
    return str(FIXTURES_ROOT / "config" / file_name)
