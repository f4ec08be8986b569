"""Tests for configure_logging and JSONFormatter."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from vchan.config.models import LoggingConfig
from vchan.logging import JSONFormatter, channel_context, configure_logging
from vchan.logging.context import ChannelContextFilter


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "vchan.ffmpeg.service", logging.INFO, __file__, 1, msg, (), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    ChannelContextFilter().filter(record)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self) -> None:
        entry = json.loads(JSONFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["message"] == "hello"
        assert entry["logger"] == "vchan.ffmpeg.service"
        assert "context" not in entry

    def test_channel_and_extra_in_context(self) -> None:
        with channel_context("12", "Cartoons"):
            record = _record(pid=4242)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["context"] == {
            "pid": 4242,
            "channel_number": "12",
            "channel_name": "Cartoons",
        }

    def test_exception_included(self) -> None:
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "vchan", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        entry = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad" in entry["exception"]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_stderr_by_default(self) -> None:
        configure_logging(LoggingConfig(level="debug"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)

    def test_file_handler(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "vchan.log"
        configure_logging(LoggingConfig(file=log_file, format="json"))

        with channel_context("7"):
            logging.getLogger("vchan.test").warning("disk slow")
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["message"] == "disk slow"
        assert entry["context"]["channel_number"] == "7"

    def test_text_format_has_channel_tag(self, tmp_path: Path) -> None:
        log_file = tmp_path / "vchan.log"
        configure_logging(LoggingConfig(file=log_file))

        with channel_context("12"):
            logging.getLogger("vchan.test").info("started")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[CH 12] vchan.test - INFO - started" in log_file.read_text()

    def test_include_stderr_adds_second_handler(self, tmp_path: Path) -> None:
        configure_logging(
            LoggingConfig(file=tmp_path / "vchan.log", include_stderr=True)
        )
        assert len(logging.getLogger().handlers) == 2

    def test_unwritable_file_falls_back_to_stderr(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")

        configure_logging(LoggingConfig(file=blocker / "vchan.log"))

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert "Could not open log file" in capsys.readouterr().err
