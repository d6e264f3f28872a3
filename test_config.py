"""Runtime settings from the environment."""

import logging

import pytest
from pydantic import ValidationError

from connectors.http_store import HttpOrderStore
from connectors.order_store import RetryConfig
from core.config import DEFAULT_TASK_QUEUE, ReportSettings


class TestReportSettings:
    def test_defaults(self):
        settings = ReportSettings.from_env({})
        assert settings.max_concurrency == 8
        assert settings.retry_attempts == 3
        assert settings.task_queue == DEFAULT_TASK_QUEUE
        assert settings.store_url is None
        assert settings.log_level_number == logging.INFO

    def test_reads_environment_mapping(self):
        settings = ReportSettings.from_env({
            "ORDER_STORE_URL": "https://orders.example.com/api",
            "ORDER_STORE_TOKEN": "secret",
            "REPORT_MAX_CONCURRENCY": "3",
            "REPORT_RETRY_ATTEMPTS": "5",
            "REPORT_RETRY_BASE_DELAY": "0.25",
            "LOG_LEVEL": "debug",
            "LOG_JSON": "true",
        })
        assert settings.store_url == "https://orders.example.com/api"
        assert settings.max_concurrency == 3
        assert settings.retry_attempts == 5
        assert settings.retry_base_delay == 0.25
        assert settings.log_json is True
        assert settings.log_level_number == logging.DEBUG

    def test_empty_values_use_defaults(self):
        settings = ReportSettings.from_env({"REPORT_MAX_CONCURRENCY": "", "REPORT_TASK_QUEUE": ""})
        assert settings.max_concurrency == 8
        assert settings.task_queue == DEFAULT_TASK_QUEUE

    def test_overrides_win(self):
        settings = ReportSettings.from_env({"REPORT_MAX_CONCURRENCY": "3"}, max_concurrency=12, store_url=None)
        assert settings.max_concurrency == 12

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            ReportSettings.from_env({"REPORT_MAX_CONCURRENCY": "0"})
        with pytest.raises(ValidationError):
            ReportSettings.from_env({"REPORT_RETRY_ATTEMPTS": "many"})

    def test_unknown_log_level_falls_back(self):
        assert ReportSettings(log_level="chatty").log_level_number == logging.INFO

    def test_settings_are_frozen(self):
        settings = ReportSettings()
        with pytest.raises(ValidationError):
            settings.max_concurrency = 2


class TestDerivedConfig:
    def test_retry_config(self):
        retry = RetryConfig.from_settings(ReportSettings(retry_attempts=4, retry_base_delay=2, retry_max_delay=5))
        assert retry.max_attempts == 4
        assert [retry.get_delay(i) for i in range(4)] == [2, 4, 5, 5]

    def test_http_store_needs_url(self):
        with pytest.raises(ValueError):
            HttpOrderStore.from_settings(ReportSettings())

        store = HttpOrderStore.from_settings(ReportSettings(store_url="https://orders.example.com/api/", store_token="t"))
        assert store.base_url == "https://orders.example.com/api"
        assert store.token == "t"
