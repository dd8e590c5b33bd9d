"""Tests for environment-driven configuration."""

import logging

import pytest
from pydantic import ValidationError

from sentry_kernel.models.config import SentryConfig, StateConfig, ViewConfig

ENV_VARS = [
    "SENTRY_DB_PATH",
    "SENTRY_STATE_RESET_TIMEOUT",
    "MAPTILER_KEY",
    "SENTRY_SCREENSHOTS_PATH",
    "SENTRY_TEMPLATE_PATH",
    "SENTRY_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so values loaded from .env files are undone on teardown
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestSentryConfig:
    def test_defaults(self):
        config = SentryConfig.from_env()
        assert config.db_path == "history/db/sentry.sqlite"
        assert config.state.idle_timeout_seconds == 3600
        assert config.view.max_distance_km == 800
        assert config.geocoder.api_key is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SENTRY_DB_PATH", "/data/state.sqlite")
        monkeypatch.setenv("SENTRY_STATE_RESET_TIMEOUT", "90")
        monkeypatch.setenv("MAPTILER_KEY", "abc")
        monkeypatch.setenv("SENTRY_SCREENSHOTS_PATH", "/data/maps")
        monkeypatch.setenv("SENTRY_LOG_LEVEL", "debug")

        config = SentryConfig.from_env()

        assert config.db_path == "/data/state.sqlite"
        assert config.state.idle_timeout_seconds == 90
        assert config.geocoder.api_key == "abc"
        assert config.render.output_dir == "/data/maps"
        assert config.log_level == "DEBUG"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "sentry.env"
        env_file.write_text("SENTRY_STATE_RESET_TIMEOUT=15\nMAPTILER_KEY=from-file\n")

        config = SentryConfig.from_env(str(env_file))

        assert config.state.idle_timeout_seconds == 15
        assert config.geocoder.api_key == "from-file"

    def test_bad_number_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("SENTRY_STATE_RESET_TIMEOUT", "an hour")
        with caplog.at_level(logging.WARNING):
            config = SentryConfig.from_env()
        assert config.state.idle_timeout_seconds == 3600
        assert "SENTRY_STATE_RESET_TIMEOUT" in caplog.text

    def test_missing_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            SentryConfig.from_env()
        assert "MAPTILER_KEY" in caplog.text


class TestConfigValidation:
    @pytest.mark.parametrize("timeout", [0, -5])
    def test_timeout_must_be_positive(self, timeout):
        with pytest.raises(ValidationError):
            StateConfig(idle_timeout_seconds=timeout)

    def test_view_defaults(self):
        view = ViewConfig()
        assert view.default_center == (31.16558, 48.379433)
        assert view.min_padding_deg == 1.5
        assert view.padding_ratio == 0.3
