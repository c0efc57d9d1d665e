"""Logging setup tests."""

import io
import json
import logging

import pytest

from disputes.config import ConfigValidationError, get_config, get_config_manager
from disputes.observability import (
    ROOT_LOGGER_NAME,
    LogEvent,
    configure_logging,
    dispute_context,
    dispute_id_var,
)


@pytest.fixture
def stream():
    return io.StringIO()


def _lines(stream):
    return [line for line in stream.getvalue().splitlines() if line]


class TestConfigureLogging:

    def test_json_format(self, stream):
        get_config_manager().set("observability.log_format", "json")
        configure_logging(stream=stream)

        with dispute_context("abc123_1", "abc123"):
            logging.getLogger("disputes.dispute").warning("closing %s", "now")

        event = json.loads(_lines(stream)[-1])
        assert event["level"] == "warning"
        assert event["logger"] == "disputes.dispute"
        assert event["message"] == "closing now"
        assert event["dispute_id"] == "abc123_1"
        assert event["trade_id"] == "abc123"
        assert "exception" not in event

    def test_json_exception(self, stream):
        get_config_manager().set("observability.log_format", "json")
        configure_logging(stream=stream)
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logging.getLogger("disputes.storage").exception("write failed")

        event = json.loads(_lines(stream)[-1])
        assert "RuntimeError: boom" in event["exception"]
        assert "dispute_id" not in event

    def test_text_format(self, stream):
        configure_logging(stream=stream)
        with dispute_context("abc123_1"):
            logging.getLogger("disputes.codec").error("bad record")
        line = _lines(stream)[-1]
        assert "ERROR" in line
        assert "[abc123_1]" in line
        assert "bad record" in line

    def test_text_format_without_context(self, stream):
        configure_logging(stream=stream)
        logging.getLogger("disputes.codec").error("no dispute")
        assert "[-]" in _lines(stream)[-1]

    def test_level_from_config(self, stream):
        get_config_manager().set("observability.log_level", "error")
        configure_logging(stream=stream)
        logger = logging.getLogger("disputes.storage")
        logger.warning("hidden")
        logger.error("shown")
        lines = _lines(stream)
        assert len(lines) == 1
        assert "shown" in lines[0]

    def test_level_name_case_insensitive(self, stream, monkeypatch):
        monkeypatch.setenv("DISPUTES_LOG_LEVEL", "ERROR")
        root = configure_logging(stream=stream)
        assert root.level == logging.ERROR

    @pytest.mark.parametrize("env_var,value", [
        ("DISPUTES_LOG_LEVEL", "verbose"),
        ("DISPUTES_LOG_LEVEL", "setLevel"),
        ("DISPUTES_LOG_FORMAT", "xml"),
    ])
    def test_invalid_env_setting(self, stream, monkeypatch, env_var, value):
        monkeypatch.setenv(env_var, value)
        with pytest.raises(ConfigValidationError):
            configure_logging(stream=stream)

    def test_reconfigure_replaces_handler(self, stream):
        configure_logging(stream=stream)
        configure_logging(stream=stream)
        root = logging.getLogger(ROOT_LOGGER_NAME)
        managed = [h for h in root.handlers if getattr(h, "_disputes_managed", False)]
        assert len(managed) == 1

    def test_explicit_config(self, stream):
        config = get_config()
        config.observability.log_format.set("json")
        configure_logging(config, stream=stream)
        logging.getLogger("disputes").info("hello")
        assert json.loads(_lines(stream)[-1])["message"] == "hello"


class TestDisputeContext:

    def test_context_restored(self):
        assert dispute_id_var.get() == ""
        with dispute_context("outer_1"):
            with dispute_context("inner_2"):
                assert dispute_id_var.get() == "inner_2"
            assert dispute_id_var.get() == "outer_1"
        assert dispute_id_var.get() == ""

    def test_log_event_drops_empty_fields(self):
        event = LogEvent(timestamp="t", level="info", logger="disputes", message="m")
        assert event.to_dict() == {"timestamp": "t", "level": "info", "logger": "disputes", "message": "m"}
