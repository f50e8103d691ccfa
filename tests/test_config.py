"""
Tests for settings loading.
"""

import logging

import pytest
from pydantic import ValidationError

from ecobudget.audit import set_log_level
from ecobudget.config import (
    AppSettings,
    GamificationSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for the settings sections."""

    def test_defaults(self, monkeypatch):
        """Test out-of-the-box values."""
        monkeypatch.delenv("ECOBUDGET_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("ECOBUDGET_GAMIFICATION_UNLOCK_DELAY_SECONDS", raising=False)
        assert StorageSettings().backend == "json"
        gamification = GamificationSettings()
        assert gamification.unlock_delay_ms == 60_000
        assert gamification.run_ticker is False

    def test_env_prefix(self, monkeypatch):
        """Test sections read their own prefixed variables."""
        monkeypatch.setenv("ECOBUDGET_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("ECOBUDGET_GAMIFICATION_UNLOCK_DELAY_SECONDS", "5")
        settings = get_settings()
        assert settings.storage.backend == "memory"
        assert settings.gamification.unlock_delay_ms == 5000

    def test_unknown_backend_rejected(self):
        """Test only json and memory backends exist."""
        with pytest.raises(ValidationError):
            StorageSettings(backend="sqlite")

    def test_tick_interval_bounds(self):
        """Test the ticker cannot be slower than five seconds."""
        with pytest.raises(ValidationError):
            GamificationSettings(tick_interval_seconds=10)

    def test_currency_normalized(self):
        """Test the default currency is upper-cased."""
        assert AppSettings(default_currency=" eur ").default_currency == "EUR"

    def test_validate_all_settings(self, monkeypatch):
        """Test the startup check reports bad sections."""
        assert validate_all_settings() == {"storage": True, "gamification": True, "app": True}

        monkeypatch.setenv("ECOBUDGET_STORAGE_BACKEND", "sqlite")
        results = validate_all_settings()
        assert results["storage"] is False
        assert "storage_error" in results


class TestLogLevel:
    """Tests for the debug switch."""

    def test_debug_toggle(self):
        """Test debug mode lowers the package log level."""
        set_log_level(True)
        assert logging.getLogger("ecobudget").level == logging.DEBUG
        set_log_level(False)
        assert logging.getLogger("ecobudget").level == logging.INFO


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
