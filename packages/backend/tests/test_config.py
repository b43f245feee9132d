"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from livecast.config import Settings


def test_legacy_env_names(monkeypatch):
    monkeypatch.setenv("SCHEDULER_INTERVAL_MINUTES", "5")
    monkeypatch.setenv("PORT", "8080")
    config = Settings()
    assert config.scheduler_interval_minutes == 5
    assert config.port == 8080


def test_prefixed_env_names(monkeypatch):
    monkeypatch.setenv("LIVECAST_PUBLIC_URL", "https://live.example.com")
    monkeypatch.setenv("LIVECAST_RATE_LIMIT_TRIGGER_RPM", "10")
    config = Settings()
    assert config.public_url == "https://live.example.com"
    assert config.rate_limit_trigger_rpm == 10


def test_interval_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(scheduler_interval_minutes=0)


def test_memory_backend_refused_in_production():
    with pytest.raises(ValidationError):
        Settings(environment="production", storage_backend="memory")


def test_memory_backend_allowed_in_production_when_opted_in():
    config = Settings(
        environment="production",
        storage_backend="memory",
        allow_memory_storage=True,
    )
    assert config.storage_backend == "memory"


def test_unknown_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(storage_backend="sqlite")


def test_public_url_must_be_absolute():
    with pytest.raises(ValidationError):
        Settings(public_url="live.example.com")


def test_public_url_trailing_slash_dropped():
    assert Settings(public_url="https://live.example.com/").public_url == "https://live.example.com"
