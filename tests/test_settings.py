from __future__ import annotations

from decimal import Decimal

import pytest

from splitz.domain.settings import SplitSettings
from splitz.runtime.paths import get_paths
from splitz.runtime.settings import (
    DEFAULT_SERVICE_URL,
    classifier_service_url,
    extraction_service_url,
    load_split_settings,
)


def test_load_split_settings_from_toml(tmp_path) -> None:
    config_path = tmp_path / "splitz.toml"
    config_path.write_text(
        """
[split]
tax_rate = "0.05"
tolerance = 0.05
tax_label = "GST"
"""
    )

    load_split_settings.cache_clear()
    settings = load_split_settings(str(config_path))

    assert settings == SplitSettings(tax_rate=Decimal("0.05"), tolerance=Decimal("0.05"), tax_label="GST")


def test_load_split_settings_defaults_when_missing(tmp_path) -> None:
    load_split_settings.cache_clear()
    assert load_split_settings(str(tmp_path / "does_not_exist.toml")) == SplitSettings()


def test_load_split_settings_uses_project_config(splitz_home) -> None:
    config_dir = splitz_home / "config"
    config_dir.mkdir()
    (config_dir / "splitz.toml").write_text('[split]\ntax_rate = "0.15"\n')

    load_split_settings.cache_clear()
    settings = load_split_settings()

    assert get_paths().settings_file == (config_dir / "splitz.toml").resolve()
    assert settings.tax_rate == Decimal("0.15")
    assert settings.tolerance == Decimal("0.02")


def test_load_split_settings_rejects_bad_values(tmp_path) -> None:
    config_path = tmp_path / "splitz.toml"
    config_path.write_text('[split]\ntax_rate = "thirteen"\n')
    load_split_settings.cache_clear()
    with pytest.raises(ValueError):
        load_split_settings(str(config_path))

    config_path.write_text('[split]\ntolerance = "0"\n')
    load_split_settings.cache_clear()
    with pytest.raises(ValueError):
        load_split_settings(str(config_path))


def test_service_urls_from_environment(monkeypatch) -> None:
    monkeypatch.delenv("SPLITZ_EXTRACTION_URL", raising=False)
    monkeypatch.setenv("SPLITZ_CLASSIFIER_URL", "http://classifier:9000/")

    assert extraction_service_url() == DEFAULT_SERVICE_URL
    assert classifier_service_url() == "http://classifier:9000"
