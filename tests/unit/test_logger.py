"""
tests/unit/test_logger.py — Structured logging setup tests
"""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from taskpull.config.settings import Settings
from taskpull.observability.logger import (
    bind_worker,
    clear_context,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
)


@pytest.fixture
def restore_logging():
    """Undo setup_logging() so later tests see pristine logging config."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def _read_json_lines(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


class TestSetupLogging:

    def test_writes_json_file(self, tmp_path, restore_logging):
        log_dir = tmp_path / "logs"
        setup_logging(level="INFO", log_dir=log_dir, console_output=False)
        get_logger("taskpull.test").info("scheduler.task_started", running=1)
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = _read_json_lines(log_dir / "taskpull.log")
        assert lines[-1]["event"] == "scheduler.task_started"
        assert lines[-1]["running"] == 1
        assert lines[-1]["level"] == "info"
        assert lines[-1]["logger"] == "taskpull.test"
        assert "timestamp" in lines[-1]

    def test_level_filters_file_output(self, tmp_path, restore_logging):
        setup_logging(level="WARNING", log_dir=tmp_path, console_output=False)
        log = get_logger("taskpull.test")
        log.info("quiet")
        log.warning("loud")
        for handler in logging.getLogger().handlers:
            handler.flush()

        events = [line["event"] for line in _read_json_lines(tmp_path / "taskpull.log")]
        assert events == ["loud"]

    def test_worker_id_in_file_output(self, tmp_path, restore_logging):
        setup_logging(level="DEBUG", log_dir=tmp_path, console_output=False)
        bind_worker("w7")
        get_logger("taskpull.test").info("worker.loop_started")
        clear_context()
        get_logger("taskpull.test").info("after")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = _read_json_lines(tmp_path / "taskpull.log")
        assert lines[0]["worker_id"] == "w7"
        assert "worker_id" not in lines[1]

    def test_from_settings(self, tmp_path, restore_logging):
        settings = Settings(logging={"log_dir": str(tmp_path / "from_settings"), "level": "debug"})
        setup_logging_from_settings(settings)
        assert (tmp_path / "from_settings" / "taskpull.log").exists()
        assert logging.getLogger().level == logging.DEBUG

    def test_from_settings_level_override(self, tmp_path, restore_logging):
        settings = Settings(logging={"log_dir": str(tmp_path), "level": "info"})
        setup_logging_from_settings(settings, level="ERROR")
        assert logging.getLogger().level == logging.ERROR


class TestGetLogger:

    def test_initial_values_bound(self):
        with capture_logs() as logs:
            get_logger("taskpull.test", component="scheduler").info("hello", n=1)
        assert logs == [{"event": "hello", "n": 1, "component": "scheduler", "log_level": "info"}]

    def test_bind_worker_sets_contextvar(self):
        bind_worker("w1")
        try:
            assert structlog.contextvars.get_contextvars()["worker_id"] == "w1"
        finally:
            clear_context()
        assert "worker_id" not in structlog.contextvars.get_contextvars()
