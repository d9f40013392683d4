"""Tests for logging setup and configuration."""

import logging
import re
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from core.logging.context import get_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import (
    NOISY_LOGGERS,
    ArchivingTimedRotatingFileHandler,
    generate_trace_id,
    get_log_file_path,
    log_startup,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestGetLogFilePath:

    def test_builds_dated_path(self):
        path = get_log_file_path(Path("logs"), name="webhook")

        assert path.parts[0] == "logs"
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", path.parent.name)
        assert path.name.startswith("webhook_")
        assert path.suffix == ".log"


class TestSetupLogging:

    def test_file_and_console_handlers(self, tmp_path):
        setup_logging(name="webhook", log_dir=tmp_path)

        handlers = logging.getLogger().handlers
        file_handlers = [h for h in handlers if isinstance(h, ArchivingTimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, JSONFormatter)
        assert Path(file_handlers[0].baseFilename).is_relative_to(tmp_path)

    def test_stdout_only_mode_has_no_file_handler(self, tmp_path):
        setup_logging(name="webhook", log_dir=tmp_path, log_to_stdout=True)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], ArchivingTimedRotatingFileHandler)
        assert isinstance(handlers[0].formatter, JSONFormatter)

    def test_stdout_only_plain_format(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_to_stdout=True, json_format=False)
        assert isinstance(logging.getLogger().handlers[0].formatter, ConsoleFormatter)

    def test_console_level_applied(self, tmp_path):
        setup_logging(log_dir=tmp_path, console_level=logging.DEBUG)

        console = [
            h for h in logging.getLogger().handlers
            if not isinstance(h, ArchivingTimedRotatingFileHandler)
        ]
        assert console[0].level == logging.DEBUG

    def test_sets_stage_context(self, tmp_path):
        setup_logging(log_dir=tmp_path, stage="serve", log_to_stdout=True)
        assert get_log_context()["stage"] == "serve"

    def test_suppresses_noisy_loggers(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_to_stdout=True)
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_writes_json_lines(self, tmp_path):
        logger = setup_logging(name="webhook", log_dir=tmp_path)
        logger.info("hello", extra={"event": "afterSurveyComplete"})
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_files = list(tmp_path.rglob("webhook_*.log"))
        assert len(log_files) == 1
        assert '"event": "afterSurveyComplete"' in log_files[0].read_text(encoding="utf-8")


class TestHelpers:
    def test_generate_trace_id_format(self):
        trace_id = generate_trace_id()
        assert re.fullmatch(r"t-\d{8}-\d{6}-[0-9a-f]{4}", trace_id)

    def test_trace_ids_are_unique(self):
        assert len({generate_trace_id() for _ in range(20)}) > 1

    def test_log_startup(self):
        logger = MagicMock()
        log_startup(
            logger,
            "Webhook",
            target_url="https://hooks.example.com",
            survey_ids=[10, 20],
            extra_config={"Richness": "labeled"},
        )

        messages = [c.args for c in logger.info.call_args_list]
        assert ("Starting %s", "Webhook") in messages
        assert ("Surveys: %s", "10, 20") in messages
        assert ("%s: %s", "Richness", "labeled") in messages
