"""Tests for the typer CLI, run in-process against a temporary database."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from trendily.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("trendily.utils.logging.configure_logging", lambda config: None)
    for name in ("TRENDILY_ALERT_SECRET", "ALERT_SECRET", "TRENDILY_RESEND_API_KEY",
                 "RESEND_API_KEY", "TRENDILY_DB_PATH", "TRENDILY_TEST_RECIPIENTS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path) -> str:
    path = tmp_path / "config.toml"
    path.write_text(
        f'[database]\ndb_path = "{(tmp_path / "cli.db").as_posix()}"\n',
        encoding="utf-8",
    )
    return str(path)


def _invoke(*args: str):
    return runner.invoke(app, list(args))


class TestCli:
    def test_init_db(self, config_path):
        result = _invoke("init-db", "--config", config_path)
        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output

    def test_validate_config_masks_secrets(self, config_path, monkeypatch):
        monkeypatch.setenv("TRENDILY_RESEND_API_KEY", "re_very_secret")
        result = _invoke("validate-config", "--config", config_path, "--full")
        assert result.exit_code == 0, result.output
        assert "Mailer API key:   set" in result.output
        assert "re_very_secret" not in result.output

    def test_missing_config_exits_1(self, tmp_path):
        result = _invoke("validate-config", "--config", str(tmp_path / "missing.toml"))
        assert result.exit_code == 1

    def test_subscribe_list_unsubscribe(self, config_path):
        result = _invoke("subscribe", "Ana@Example.com", "ai agents", "--threshold", "15",
                         "--config", config_path)
        assert result.exit_code == 0, result.output
        assert "Subscribed ana@example.com to 'ai agents' (threshold 15%)" in result.output

        again = _invoke("subscribe", "ana@example.com", "ai agents", "--config", config_path)
        assert "already subscribed" in again.output

        listed = _invoke("list-subscriptions", "--config", config_path)
        assert "ana@example.com" in listed.output

        gone = _invoke("unsubscribe", "ana@example.com", "ai agents", "--config", config_path)
        assert gone.exit_code == 0, gone.output

        missing = _invoke("unsubscribe", "ana@example.com", "rust", "--config", config_path)
        assert missing.exit_code == 1

    def test_subscribe_invalid_email(self, config_path):
        result = _invoke("subscribe", "nobody", "ai agents", "--config", config_path)
        assert result.exit_code == 1

    def test_check_alerts_without_secret_fails(self, config_path):
        result = _invoke("check-alerts", "--config", config_path)
        assert result.exit_code == 1
        assert "authorization" in result.output

    def test_check_alerts_empty_run(self, config_path, tmp_path, monkeypatch):
        monkeypatch.setenv("TRENDILY_ALERT_SECRET", "s3cret")
        monkeypatch.setenv("TRENDILY_RESEND_API_KEY", "re_test")
        _invoke("init-db", "--config", config_path)
        out = tmp_path / "report.json"

        result = _invoke("check-alerts", "--config", config_path, "--output", str(out))

        assert result.exit_code == 0, result.output
        assert "Sent:     0" in result.output
        assert json.loads(out.read_text(encoding="utf-8"))["attempts"] == 0

    def test_check_alerts_rejects_http_trigger(self, config_path):
        result = _invoke("check-alerts", "--trigger", "http", "--config", config_path)
        assert result.exit_code == 1
