"""Tests for configuration."""

import pytest
from decimal import Decimal

from ledgerbook.config import (
    AppSettings,
    DatabaseSettings,
    get_settings,
    validate_all_settings,
)


class TestAppSettings:

    def test_defaults(self):
        settings = AppSettings(_env_file=None)
        assert settings.phone_min_digits == 10
        assert settings.phone_max_digits == 12
        assert settings.max_entry_amount == Decimal("100000000")
        assert settings.recent_transactions_limit == 5

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValueError):
            AppSettings(reporting_timezone="Mars/Olympus_Mons")

    def test_timezone_property(self):
        assert AppSettings(reporting_timezone="Asia/Kolkata").timezone.key == "Asia/Kolkata"

    def test_phone_bounds_must_be_ordered(self):
        with pytest.raises(ValueError):
            AppSettings(phone_min_digits=12, phone_max_digits=10)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("LEDGER_CURRENCY_GROUPING", "western")
        assert AppSettings().currency_grouping == "western"


class TestDatabaseSettings:

    @pytest.mark.parametrize("url,in_memory", [
        ("sqlite://", True),
        ("sqlite:///:memory:", True),
        ("sqlite:///ledger.db", False),
        ("postgresql://localhost/ledger", False),
    ])
    def test_in_memory_detection(self, url, in_memory):
        assert DatabaseSettings(url=url).is_in_memory is in_memory

    def test_connect_attempts_bounds(self):
        with pytest.raises(ValueError):
            DatabaseSettings(connect_attempts=0)


class TestSettingsCache:

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["database"] is True
        assert results["app"] is True
