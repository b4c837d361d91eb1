from __future__ import annotations

from src.db.session import engine_options
from src.srs.config import EngineConfig


def test_from_env_reads_overrides(monkeypatch):
    monkeypatch.setenv("SRS_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("SRS_REVIEW_RATIO", "0.5")
    monkeypatch.setenv("SRS_STORE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("SRS_STORE_MAX_RETRIES", "5")

    config = EngineConfig.from_env()

    assert config.timezone == "Europe/Berlin"
    assert config.review_ratio == 0.5
    assert config.store_timeout_seconds == 2.5
    assert config.store_max_retries == 5


def test_from_env_falls_back_on_bad_numbers(monkeypatch):
    monkeypatch.delenv("SRS_TIMEZONE", raising=False)
    monkeypatch.setenv("SRS_REVIEW_RATIO", "lots")
    monkeypatch.setenv("SRS_STORE_MAX_RETRIES", "three")

    config = EngineConfig.from_env()

    assert config.timezone == "UTC"
    assert config.review_ratio == 0.3
    assert config.store_max_retries == 3
    assert config.scheduler.min_ease_factor == 1.3
    assert config.classifier.easy_below_ms == 5000


def test_database_pool_options_from_env(monkeypatch):
    monkeypatch.setenv("DB_POOL_SIZE", "20")
    monkeypatch.setenv("DB_POOL_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("DB_MAX_OVERFLOW", "many")
    monkeypatch.setenv("SQL_ECHO", "true")

    options = engine_options("postgresql+asyncpg://srs:srs@db:5432/srs_engine")

    assert options["pool_size"] == 20
    assert options["pool_timeout"] == 1.5
    assert options["max_overflow"] == 10
    assert options["echo"] is True
    assert options["pool_pre_ping"] is True


def test_sqlite_url_skips_pool_limits(monkeypatch):
    monkeypatch.delenv("SQL_ECHO", raising=False)

    options = engine_options("sqlite+aiosqlite:///./srs.db")

    assert "pool_size" not in options
    assert "pool_timeout" not in options
    assert options["echo"] is False
