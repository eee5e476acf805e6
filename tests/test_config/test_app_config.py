"""Tests for layered configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from trendily.config import (
    DEFAULT_SENDER,
    AlertsConfig,
    AppConfig,
    LoggingConfig,
    MailerConfig,
    SecurityConfig,
    TrendsConfig,
    load_config,
)

_ENV_VARS = [
    "TRENDILY_ALERT_SECRET", "ALERT_SECRET",
    "TRENDILY_RESEND_API_KEY", "RESEND_API_KEY",
    "TRENDILY_EMAIL_FROM", "EMAIL_FROM",
    "TRENDILY_TEST_RECIPIENTS",
    "TRENDILY_SERPAPI_KEY", "SERPAPI_KEY",
    "TRENDILY_DB_PATH", "TRENDILY_LOG_LEVEL", "TRENDILY_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "default.toml"
    path.write_text(
        '[database]\ndb_path = "data/db/test.db"\n\n'
        "[alerts]\ncooldown_hours = 12\nsend_interval_ms = 500\n",
        encoding="utf-8",
    )
    return path


class TestLoadConfig:
    def test_reads_toml(self, config_file):
        config = load_config(config_file)
        assert config.database.db_path == "data/db/test.db"
        assert config.alerts.cooldown_hours == 12
        assert config.alerts.send_interval_ms == 500
        assert config.alerts.volume_floor is None
        assert config.mailer.sender == DEFAULT_SENDER

    def test_local_toml_overrides(self, config_file):
        (config_file.parent / "local.toml").write_text(
            "[alerts]\ncooldown_hours = 6\n", encoding="utf-8"
        )
        config = load_config(config_file)
        assert config.alerts.cooldown_hours == 6
        assert config.alerts.send_interval_ms == 500

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_env_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("ALERT_SECRET", "from-env")
        monkeypatch.setenv("RESEND_API_KEY", "re_bare")
        monkeypatch.setenv("TRENDILY_RESEND_API_KEY", "re_prefixed")
        monkeypatch.setenv("TRENDILY_EMAIL_FROM", "Me <me@x.io>")
        monkeypatch.setenv("TRENDILY_TEST_RECIPIENTS", " A@x.io, b@x.io ,")
        monkeypatch.setenv("SERPAPI_KEY", "serp")
        monkeypatch.setenv("TRENDILY_DB_PATH", "/tmp/t.db")
        monkeypatch.setenv("TRENDILY_LOG_LEVEL", "debug")
        monkeypatch.setenv("TRENDILY_DEBUG", "true")

        config = load_config(config_file)

        assert config.security.alert_secret.get_secret_value() == "from-env"
        assert config.mailer.api_key.get_secret_value() == "re_prefixed"
        assert config.mailer.sender == "Me <me@x.io>"
        assert config.mailer.allowed_recipients == ["a@x.io", "b@x.io"]
        assert config.trends.serpapi_key.get_secret_value() == "serp"
        assert config.database.db_path == "/tmp/t.db"
        assert config.logging.level == "DEBUG"
        assert config.debug is True

    def test_invalid_value_raises(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[alerts]\nsend_interval_ms = 50\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)


class TestValidators:
    def test_send_interval_floor(self):
        with pytest.raises(ValidationError):
            AlertsConfig(send_interval_ms=299)

    def test_concurrency_fixed_at_one(self):
        with pytest.raises(ValidationError):
            AlertsConfig(max_concurrent_sends=2)

    def test_negative_cooldown(self):
        with pytest.raises(ValidationError):
            AlertsConfig(cooldown_hours=-1)

    def test_subscription_limit(self):
        with pytest.raises(ValidationError):
            AlertsConfig(subscription_limit=0)

    def test_unknown_provider(self):
        with pytest.raises(ValidationError):
            TrendsConfig(providers=["bing"])

    def test_empty_provider_list(self):
        with pytest.raises(ValidationError):
            TrendsConfig(providers=[])

    def test_max_points(self):
        with pytest.raises(ValidationError):
            TrendsConfig(max_points=1)

    def test_log_level(self):
        assert LoggingConfig(level="warning").level == "WARNING"
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")


class TestSecrets:
    def test_dump_masks_secrets(self):
        config = AppConfig(
            security=SecurityConfig(alert_secret="s3cret"),
            mailer=MailerConfig(api_key="re_live"),
        )
        dumped = config.model_dump(mode="json")
        assert dumped["security"]["alert_secret"] == "**********"
        assert dumped["mailer"]["api_key"] == "**********"
        assert "re_live" not in str(dumped)
