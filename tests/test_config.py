"""
Tests for configuration loading.
"""

import pytest
from decimal import Decimal

from finance_tracker.config import AppSettings, get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    # Keep a developer's .env out of the way
    monkeypatch.chdir(tmp_path)
    for name in ("STORAGE_BACKEND", "DEFAULT_WINDOW_DAYS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self):
        settings = AppSettings()
        assert settings.storage_backend == "memory"
        assert settings.default_window_days == 3
        assert settings.extension_chunk_days == 7
        assert settings.min_payment_amount == Decimal("0.01")
        assert settings.category_search_min_length == 3
        assert settings.category_search_limit == 20

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_WINDOW_DAYS", "10")
        assert AppSettings().default_window_days == 10

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            AppSettings()


class TestValidateAllSettings:
    """Tests for the settings status report."""

    def test_memory_backend_skips_sheets(self):
        status = validate_all_settings()
        assert status == {"app": True}

    def test_sheets_backend_reports_missing_config(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        status = validate_all_settings()

        assert status["app"]
        assert status["google_sheets"] is False
        assert "google_sheets_error" in status
