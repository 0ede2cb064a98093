"""Tests for process-wide logging setup."""

from __future__ import annotations

import structlog

from unity_vault.log_config import configure_logging


class TestConfigureLogging:

    def teardown_method(self):
        structlog.reset_defaults()

    def test_console_renderer(self, capsys):
        configure_logging(log_level="debug", log_format="console")
        structlog.get_logger().info("unity_vault.test.console", key="value")
        assert "unity_vault.test.console" in capsys.readouterr().err

    def test_json_renderer_filters_level(self, capsys):
        configure_logging(log_level="WARNING", log_format="json")
        log = structlog.get_logger()
        log.info("unity_vault.test.hidden")
        log.warning("unity_vault.test.shown")
        err = capsys.readouterr().err
        assert "unity_vault.test.hidden" not in err
        assert '"event": "unity_vault.test.shown"' in err

