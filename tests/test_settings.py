"""
Tests for configuration loading.
"""

import pytest

from src.config import AppSettings, get_settings, validate_all_settings


class TestAppSettings:
    """Tests for application defaults and overrides."""

    def test_defaults(self, monkeypatch):
        """Test the defaults for new budgets."""
        for name in ("DEFAULT_CURRENCY", "DEFAULT_TEMPLATE_NAME", "RECENT_MONTHS_LIMIT"):
            monkeypatch.delenv(name, raising=False)

        app = AppSettings()

        assert app.default_currency == "USD"
        assert app.default_template_name == "My Budget"
        assert app.default_category_color == "#3B82F6"
        assert app.recent_months_limit == 12

    def test_env_override(self, monkeypatch):
        """Test values are read from the environment."""
        monkeypatch.setenv("DEFAULT_CURRENCY", "eur")
        monkeypatch.setenv("RECENT_MONTHS_LIMIT", "24")

        app = AppSettings()

        assert app.default_currency == "EUR"
        assert app.recent_months_limit == 24

    def test_invalid_threshold(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_WARNING_THRESHOLD", "150")
        with pytest.raises(ValueError):
            AppSettings()


class TestSettingsValidation:
    """Tests for the startup check."""

    def test_missing_google_sheets(self, monkeypatch):
        """Test missing spreadsheet config is reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()

        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["app"] is True

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
