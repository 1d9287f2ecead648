"""
Tests for settings and logging setup.
"""

import json
import logging

import pytest

from posprint.config import DB_PATH, DELIVERY_TIMEOUT_SECONDS, PrintSettings
from posprint.log import DevelopmentFormatter, StructuredFormatter, get_logger, setup_logging


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("DB_PATH", "DELIVERY_TIMEOUT", "FONT_PATH", "CURRENCY", "LOG_LEVEL", "LOG_FORMAT", "LOG_FILE", "RECORD_JOBS"):
        monkeypatch.delenv(f"POSPRINT_{name}", raising=False)
    return monkeypatch


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestPrintSettings:
    def test_defaults(self, clean_env):
        settings = PrintSettings.from_env()

        assert settings.db_path == DB_PATH
        assert settings.delivery_timeout == DELIVERY_TIMEOUT_SECONDS
        assert settings.font_path is None
        assert settings.record_jobs

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("POSPRINT_DB_PATH", "/var/lib/posprint/print.db")
        clean_env.setenv("POSPRINT_DELIVERY_TIMEOUT", "4.5")
        clean_env.setenv("POSPRINT_CURRENCY", "DKK")
        clean_env.setenv("POSPRINT_LOG_LEVEL", "debug")
        clean_env.setenv("POSPRINT_LOG_FORMAT", "JSON")
        clean_env.setenv("POSPRINT_RECORD_JOBS", "false")

        settings = PrintSettings.from_env()

        assert settings.db_path == "/var/lib/posprint/print.db"
        assert settings.delivery_timeout == 4.5
        assert settings.currency == "DKK"
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"
        assert not settings.record_jobs

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_bad_timeout(self, clean_env, value):
        clean_env.setenv("POSPRINT_DELIVERY_TIMEOUT", value)

        with pytest.raises(ValueError):
            PrintSettings.from_env()


class TestLogging:
    def test_structured_formatter_carries_context(self):
        logger = logging.getLogger("posprint.test")
        record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, "Printed", (), None)
        record.extra_data = {"printer_id": "bar"}

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "Printed"
        assert payload["level"] == "INFO"
        assert payload["data"] == {"printer_id": "bar"}

    def test_development_formatter(self):
        logger = logging.getLogger("posprint.test")
        record = logger.makeRecord(logger.name, logging.WARNING, __file__, 1, "Slow printer", (), None)
        record.extra_data = {"elapsed": 9.8}

        line = DevelopmentFormatter(use_color=False).format(record)

        assert "WARNING" in line
        assert line.endswith("posprint.test: Slow printer (elapsed=9.8)")

    def test_keyword_context_reaches_the_log_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "posprint.log"
        setup_logging(PrintSettings(log_file=str(log_file), log_format="json", log_level="INFO"))

        get_logger("posprint.test").info("Print delivery attempt finished", printer_id="kitchen", status="delivered")
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["data"] == {"printer_id": "kitchen", "status": "delivered"}
        assert logging.getLogger("httpx").level == logging.WARNING
