"""Tests for the loguru sink configuration."""

import json
import sys

import pytest
from loguru import logger

from config.logging import API_NAME, configure_logging


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.configure(patcher=lambda record: None)
    logger.add(sys.stderr)


class TestConfigureLogging:
    def test_json_lines_carry_correlation_ids(self, config, ctx, capsys, restore_logger):
        configure_logging(config.model_copy(update={"log_json": True, "log_level": "DEBUG"}))

        logger.bind(**ctx.log_extra()).info("Starting user data retrieval...")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["api"] == API_NAME
        assert line["level"] == "INFO"
        assert line["userId"] == "7877"
        assert line["clientId"] == "tests"
        assert line["requestId"] == "req-1"
        assert line["message"] == "Starting user data retrieval..."
        assert line["method"] == "test_json_lines_carry_correlation_ids"

    def test_unbound_lines_fall_back_to_unknown(self, config, capsys, restore_logger):
        configure_logging(config.model_copy(update={"log_json": True}))

        logger.warning("outside a request")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert (line["userId"], line["clientId"], line["requestId"]) == ("unknown", "unknown", "unknown")

    def test_text_format(self, config, ctx, capsys, restore_logger):
        configure_logging(config)

        logger.bind(**ctx.log_extra()).info("hello")

        out = capsys.readouterr().out
        assert "7877 | tests | req-1" in out
        assert out.rstrip().endswith("hello")

    def test_level_filters(self, config, capsys, restore_logger):
        configure_logging(config.model_copy(update={"log_level": "WARNING"}))
        logger.info("quiet")
        assert "quiet" not in capsys.readouterr().out

    def test_file_sink(self, config, tmp_path, restore_logger):
        log_file = tmp_path / "logs" / "agent.log"
        configure_logging(config.model_copy(update={"log_file": str(log_file)}))

        logger.info("to file")
        logger.remove()

        assert "to file" in log_file.read_text(encoding="utf-8")
