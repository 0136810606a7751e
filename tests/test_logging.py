"""Tests for file logging setup."""

from __future__ import annotations

import logging

from chainz.display.logging_config import secret_redaction_filter, setup_logging


class TestSetupLogging:
    def test_creates_log_file(self, tmp_path):
        log_dir = tmp_path / "logs"
        path, level = setup_logging("info", log_dir=str(log_dir))
        assert level == "INFO"
        assert path.startswith(str(log_dir))
        assert path.endswith("_INFO.log")
        assert logging.getLogger("chainz").level == logging.INFO

    def test_invalid_level_falls_back(self, tmp_path, capsys):
        _, level = setup_logging("loud", log_dir=str(tmp_path))
        assert level == "WARNING"
        assert "invalid log level" in capsys.readouterr().err

    def test_secrets_redacted_in_file(self, tmp_path):
        path, _ = setup_logging("debug", log_dir=str(tmp_path))
        secret = "0x" + "5e" * 32
        secret_redaction_filter.register(secret)

        logging.getLogger("chainz.test").info("resolved %s", secret)
        for handler in logging.getLogger("chainz").handlers:
            handler.flush()

        with open(path, encoding="utf-8") as f:
            content = f.read()
        assert "resolved ***REDACTED***" in content
        assert secret not in content
