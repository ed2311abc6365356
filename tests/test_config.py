"""Tests for settings loading."""

import pytest

from finance_tracker.config import (
    AppSettings,
    DatabaseSettings,
    GeminiSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:

    def test_app_defaults(self, monkeypatch):
        monkeypatch.delenv("RECENT_TRANSACTIONS_LIMIT", raising=False)
        monkeypatch.delenv("CURRENCY_SYMBOL", raising=False)
        settings = AppSettings(_env_file=None)
        assert settings.recent_transactions_limit == 20
        assert settings.currency_symbol == "Rp"

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", " debug ")
        assert AppSettings(_env_file=None).log_level == "DEBUG"

    def test_recent_limit_bounds(self, monkeypatch):
        monkeypatch.setenv("RECENT_TRANSACTIONS_LIMIT", "0")
        with pytest.raises(ValueError):
            AppSettings(_env_file=None)

    def test_database_url_from_env(self, monkeypatch):
        monkeypatch.setenv("FINANCE_DB_URL", "sqlite+aiosqlite:///other.db")
        assert DatabaseSettings(_env_file=None).url == "sqlite+aiosqlite:///other.db"

    def test_database_url_requires_async_driver(self, monkeypatch):
        monkeypatch.setenv("FINANCE_DB_URL", "sqlite:///finance.db")
        with pytest.raises(ValueError, match="aiosqlite"):
            DatabaseSettings(_env_file=None)

    def test_gemini_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            GeminiSettings(_env_file=None)

    def test_validate_all_settings_reports_each_group(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        results = validate_all_settings()
        assert results["database"] is True
        assert results["gemini"] is True
        assert results["app"] is True
