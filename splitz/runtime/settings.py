"""Runtime loader for split settings and collaborator endpoints."""

from __future__ import annotations

import os
import tomllib
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path

from splitz.domain.settings import DEFAULT_TAX_RATE, DEFAULT_TOLERANCE, SplitSettings
from splitz.runtime.logging import get_logger
from splitz.runtime.paths import get_paths

logger = get_logger(__name__)

DEFAULT_SERVICE_URL = "http://localhost:8001"


def _decimal_setting(table: dict[str, object], key: str, default: Decimal, path: Path) -> Decimal:
    if key not in table:
        return default
    try:
        return Decimal(str(table[key]))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid {key} in {path}: {table[key]!r}") from exc


@lru_cache(maxsize=4)
def load_split_settings(config_path: str | None = None) -> SplitSettings:
    """
    Load split settings from the ``[split]`` table of splitz.toml.

    Example::

        [split]
        tax_rate = "0.13"
        tolerance = "0.02"
        tax_label = "HST"

    Args:
        config_path: Optional TOML path override. If None, uses the default project path.

    Returns:
        SplitSettings; defaults when the file does not exist.
    """
    path = Path(config_path) if config_path is not None else get_paths().settings_file
    if not path.exists():
        logger.debug("Settings file not found: %s; using defaults", path)
        return SplitSettings()

    with open(path, "rb") as f:
        config = tomllib.load(f)

    table = config.get("split", {})
    if not isinstance(table, dict):
        raise ValueError(f"[split] must be a table in {path}")

    settings = SplitSettings(
        tax_rate=_decimal_setting(table, "tax_rate", DEFAULT_TAX_RATE, path),
        tolerance=_decimal_setting(table, "tolerance", DEFAULT_TOLERANCE, path),
        tax_label=str(table.get("tax_label", "HST")),
    )
    logger.debug("Loaded split settings from %s: %s", path, settings)
    return settings


def extraction_service_url() -> str:
    return os.environ.get("SPLITZ_EXTRACTION_URL", DEFAULT_SERVICE_URL).rstrip("/")


def classifier_service_url() -> str:
    return os.environ.get("SPLITZ_CLASSIFIER_URL", DEFAULT_SERVICE_URL).rstrip("/")
