"""Centralized path management for splitz.

All data and configuration live under one home directory, taken from
``SPLITZ_HOME`` or the current working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_home() -> Path:
    env_home = os.environ.get("SPLITZ_HOME")
    return Path(env_home) if env_home else Path.cwd()


@dataclass
class ProjectPaths:
    """Container for all splitz paths, relative to one home directory."""

    root: Path = field(default_factory=_get_home)

    def __post_init__(self) -> None:
        self.root = self.root.expanduser().resolve()

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def settings_file(self) -> Path:
        """Split settings TOML file (tax rate, tolerance)."""
        return self.config / "splitz.toml"

    # --- Data paths ---
    @property
    def receipts_db(self) -> Path:
        """Persisted receipt documents, one JSON file each."""
        return self.root / "receipts_db"

    @property
    def exports(self) -> Path:
        """Default destination for CSV exports."""
        return self.root / "exports"

    def ensure_data_directories(self) -> None:
        self.receipts_db.mkdir(parents=True, exist_ok=True)
        self.exports.mkdir(parents=True, exist_ok=True)


_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance."""
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def reset_paths() -> None:
    """Drop the singleton so the next get_paths() re-reads SPLITZ_HOME. Useful for tests."""
    global _paths
    _paths = None
