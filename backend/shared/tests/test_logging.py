import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from shared.logging import QUIET_LOGGERS, serialize_values, setup_logging


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """Close and remove all handlers from the root logger after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@pytest.fixture(autouse=True)
def _allow_file_logging():
    """Disable the _is_test guard so logging tests can create real file handlers."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class TestSetupLogging:
    def test_configures_stdout_handler(self):
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_file_handler_in_log_dir(self, tmp_path):
        log_dir = tmp_path / "ws-probe"
        log_path = setup_logging(log_dir=log_dir)
        root = logging.getLogger()

        assert len(root.handlers) == 2
        file_handler = root.handlers[1]
        assert isinstance(file_handler, logging.FileHandler)
        assert Path(file_handler.baseFilename).parent == log_dir
        assert log_path is not None
        assert log_path.suffix == ".log"

    def test_log_file_has_datetime_in_name(self, tmp_path):
        fixed_time = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        with patch("shared.logging.datetime") as mock_dt:
            mock_dt.now.return_value = fixed_time
            log_path = setup_logging(log_dir=tmp_path / "ws-probe")

        assert log_path is not None
        assert log_path.name == "2025-03-15_10-30-45.log"

    def test_returns_none_without_log_dir(self):
        assert setup_logging() is None

    def test_creates_nested_log_directory(self, tmp_path):
        log_dir = tmp_path / "nested" / "dir"
        log_path = setup_logging(log_dir=log_dir)

        structlog.get_logger("test.nested").info("nested log")

        assert log_dir.exists()
        assert log_path is not None
        assert "nested log" in log_path.read_text()

    def test_repeated_calls_replace_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_log_level_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "bogus")
        with pytest.raises(ValueError, match="Invalid LOG_LEVEL"):
            setup_logging()

    def test_websockets_loggers_stay_quiet_at_debug(self):
        setup_logging(level=logging.DEBUG)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_quiet_loggers_follow_higher_levels(self):
        setup_logging(level=logging.ERROR)
        assert logging.getLogger("websockets.client").level == logging.ERROR

    def test_json_mode_produces_valid_json(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path / "ws-probe")

        structlog.contextvars.bind_contextvars(connection_id="ws_1")
        structlog.get_logger("test.json").info("websocket connected", endpoint="ws://example.test")
        structlog.contextvars.clear_contextvars()

        assert log_path is not None
        parsed = json.loads(log_path.read_text().strip().splitlines()[0])
        assert parsed["event"] == "websocket connected"
        assert parsed["connection_id"] == "ws_1"
        assert parsed["endpoint"] == "ws://example.test"

    def test_console_mode_produces_readable_output(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "console")
        log_path = setup_logging(log_dir=tmp_path / "ws-probe")

        structlog.get_logger("test.console").info("console test event")

        assert log_path is not None
        assert "console test event" in log_path.read_text()

    def test_invalid_log_format_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="Invalid LOG_FORMAT"):
            setup_logging()


class TestSerializeValues:
    class _State(Enum):
        OPEN = "open"
        CLOSED = "closed"

    def test_replaces_enum_with_value(self):
        result = serialize_values(None, "", {"state": self._State.OPEN, "event": "hello"})
        assert result == {"state": "open", "event": "hello"}

    def test_replaces_enum_inside_dict_value(self):
        result = serialize_values(None, "", {"data": {"state": self._State.CLOSED, "count": 3}})
        assert result["data"] == {"state": "closed", "count": 3}

    def test_bytes_replaced_with_size(self):
        result = serialize_values(None, "", {"payload": b"\x00\x01\x02"})
        assert result["payload"] == "<3 bytes>"

    def test_leaves_other_values_unchanged(self):
        event_dict = {"count": 42, "name": "test"}
        assert serialize_values(None, "", event_dict) == {"count": 42, "name": "test"}
