"""
BudgetPace - Configuration Tests.
"""

import logging

import pytest

from budgetpace.config import RetryConfig, Settings
from budgetpace.errors import ValidationError


class TestRetryConfig:
    """Tests for RetryConfig backoff delays."""

    def test_exponential_delays(self) -> None:
        retry = RetryConfig(base_delay=1.0, max_delay=30.0)
        assert [retry.delay_for(attempt) for attempt in range(6)] == [1, 2, 4, 8, 16, 30]

    def test_constant_delay(self) -> None:
        retry = RetryConfig(base_delay=2.5, exponential_backoff=False)
        assert retry.delay_for(0) == retry.delay_for(4) == 2.5


class TestSettings:
    """Tests for Settings loading."""

    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        assert settings.data_path == "budgetpace_db.json"
        assert settings.log_level == "INFO"
        assert settings.sync_interval_seconds == 300.0
        assert settings.alert_interval_seconds == 86400.0
        assert settings.retry == RetryConfig()

    def test_direct_construction_gets_default_retry(self) -> None:
        assert Settings().retry == RetryConfig()

    def test_reads_environment(self) -> None:
        settings = Settings.from_env({
            "BUDGETPACE_DATA_PATH": "/tmp/pace.json",
            "BUDGETPACE_LOG_LEVEL": "debug",
            "BUDGETPACE_SYNC_INTERVAL": "60",
            "BUDGETPACE_CACHE_TTL": "120.5",
            "BUDGETPACE_FETCH_TIMEOUT": "5",
            "BUDGETPACE_RETRY_ATTEMPTS": "5",
            "BUDGETPACE_RETRY_DELAY": "0.5",
        })

        assert settings.data_path == "/tmp/pace.json"
        assert settings.log_level == "DEBUG"
        assert settings.sync_interval_seconds == 60.0
        assert settings.cache_ttl_seconds == 120.5
        assert settings.fetch_timeout_seconds == 5.0
        assert settings.retry.max_attempts == 5
        assert settings.retry.base_delay == 0.5

    def test_blank_values_use_defaults(self) -> None:
        settings = Settings.from_env({"BUDGETPACE_SYNC_INTERVAL": "  ", "BUDGETPACE_DATA_PATH": ""})
        assert settings.sync_interval_seconds == 300.0
        assert settings.data_path == "budgetpace_db.json"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("BUDGETPACE_SYNC_INTERVAL", "often"),
            ("BUDGETPACE_CACHE_TTL", "-1"),
            ("BUDGETPACE_RETRY_ATTEMPTS", "2.5"),
            ("BUDGETPACE_RETRY_ATTEMPTS", "0"),
            ("BUDGETPACE_LOG_LEVEL", "LOUD"),
        ],
    )
    def test_rejects_malformed_values(self, name: str, value: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Settings.from_env({name: value})
        assert exc_info.value.errors[0].field_name == name

    @pytest.mark.parametrize(
        "name",
        ["BUDGETPACE_SYNC_INTERVAL", "BUDGETPACE_ALERT_INTERVAL", "BUDGETPACE_FETCH_TIMEOUT"],
    )
    def test_rejects_zero_intervals(self, name: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Settings.from_env({name: "0"})
        assert "greater than zero" in exc_info.value.errors[0].message

    def test_zero_cache_ttl_is_allowed(self) -> None:
        assert Settings.from_env({"BUDGETPACE_CACHE_TTL": "0"}).cache_ttl_seconds == 0.0

    def test_configure_logging_sets_level(self, monkeypatch) -> None:
        captured = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))

        Settings(log_level="WARNING").configure_logging()

        assert captured["level"] == logging.WARNING
