"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from yardpass.settings import Settings, load_settings


def test_defaults(monkeypatch):
    for name in ("CACHE_TTL_MS", "SINGLE_FLIGHT", "OPERATION_TIMEOUT_MS", "CACHE_MAX_SIZE"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.cache_ttl_ms == 300_000
    assert settings.slow_operation_threshold_ms == 1000
    assert settings.single_flight is True
    assert settings.operation_timeout_ms is None
    assert settings.cache_max_size is None


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("CACHE_TTL_MS", "60000")
    monkeypatch.setenv("SINGLE_FLIGHT", "false")
    monkeypatch.setenv("OPERATION_TIMEOUT_MS", "")

    settings = load_settings()

    assert settings.supabase_url == "https://example.supabase.co"
    assert settings.cache_ttl_ms == 60000
    assert settings.single_flight is False
    assert settings.operation_timeout_ms is None


def test_rejects_negative_ttl():
    with pytest.raises(ValidationError):
        Settings(cache_ttl_ms=-1)
