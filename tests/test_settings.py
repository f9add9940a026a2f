"""Tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from sectorview.core.config import Settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.primary_outlier_threshold == 1.5
    assert s.secondary_outlier_threshold == 2.0
    assert s.refresh_workers >= 1


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SECTORVIEW_REFRESH_WORKERS", "3")
    monkeypatch.setenv("SECTORVIEW_DISCOVERY_ENABLED", "false")
    s = Settings(_env_file=None)
    assert s.refresh_workers == 3
    assert s.discovery_enabled is False


def test_comma_separated_cors_origins():
    s = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")
    assert s.cors_origins == ["http://a.test", "http://b.test"]


def test_backoff_cap_below_base_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, fetch_backoff_base=5.0, fetch_backoff_max=1.0)


def test_log_level_is_normalised():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
