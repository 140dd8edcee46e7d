"""Shared pytest fixtures for splitz tests."""

from __future__ import annotations

import pytest

from splitz.runtime.paths import reset_paths
from splitz.runtime.settings import load_split_settings


@pytest.fixture(autouse=True)
def splitz_home(tmp_path, monkeypatch):
    """Point SPLITZ_HOME at a per-test directory so no test touches real data."""
    monkeypatch.setenv("SPLITZ_HOME", str(tmp_path))
    reset_paths()
    load_split_settings.cache_clear()
    yield tmp_path
    reset_paths()
    load_split_settings.cache_clear()
