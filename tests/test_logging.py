"""Tests for structured logging setup."""

import json
import logging
from typing import Iterator

import pytest
import structlog

from device_simulator.logging import TRANSPORT_LOGGERS, configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore structlog and stdlib logger state after each test."""
    levels = {name: logging.getLogger(name).level for name in TRANSPORT_LOGGERS}
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_json_lines_carry_device_id(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(log_format="json", log_level="INFO", device_id="sim-7")

        get_logger().info("telemetry_sent", battery_level=80.0)

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "telemetry_sent"
        assert line["device_id"] == "sim-7"
        assert line["level"] == "info"
        assert "timestamp" in line

    def test_level_filters_debug(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(log_format="json", log_level="WARNING")

        get_logger().info("hidden")
        get_logger().warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_transport_loggers_quiet_unless_debug(self) -> None:
        configure_logging(log_level="INFO")
        assert logging.getLogger("websockets").level == logging.WARNING

        configure_logging(log_level="DEBUG")
        assert logging.getLogger("websockets").level == logging.DEBUG

    def test_reconfigure_drops_previous_device_id(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(device_id="first")
        configure_logging()

        get_logger().info("started")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert "device_id" not in line
