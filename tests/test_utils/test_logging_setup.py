"""Tests for logging configuration and the JSON formatter."""

from __future__ import annotations

import json
import logging

from trendily.config import LoggingConfig
from trendily.utils.logging import _JsonFormatter, configure_logging


class TestJsonFormatter:
    def test_emits_one_object_with_extras(self):
        record = logging.LogRecord(
            "trendily.alerts", logging.INFO, __file__, 1, "sent %s", ("a@x.io",), None
        )
        record.run_slug = "run-1"
        payload = json.loads(_JsonFormatter().format(record))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "trendily.alerts"
        assert payload["msg"] == "sent a@x.io"
        assert payload["run_slug"] == "run-1"


class TestConfigureLogging:
    def test_file_handler_and_quiet_http_loggers(self, tmp_path):
        log_file = tmp_path / "logs" / "t.log"
        root = logging.getLogger()
        saved, saved_level = root.handlers[:], root.level
        try:
            configure_logging(LoggingConfig(level="DEBUG", log_file=str(log_file)))
            assert log_file.parent.exists()
            assert logging.getLogger("httpx").level == logging.WARNING
            assert root.level == logging.DEBUG
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved
            root.setLevel(saved_level)
