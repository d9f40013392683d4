"""Logging setup and configuration."""

import io
import logging
import secrets
import shutil
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

# Default settings
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 7
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiohttp.access",
    "asyncio",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
]


class ArchivingTimedRotatingFileHandler(TimedRotatingFileHandler):
    """
    TimedRotatingFileHandler that moves rotated files to an archive folder.

    Example:
        Before rotation:
            logs/2026-10-19/webhook_1019_1430.log

        After rotation (daily at midnight):
            logs/2026-10-19/webhook_1019_1430.log (new file)
            logs/2026-10-19/archive/webhook_1019_1430.log.2026-10-19
    """

    def __init__(
        self,
        filename,
        when="midnight",
        interval=1,
        backupCount=0,
        encoding=None,
        delay=False,
        utc=False,
        archive_dir=None,
    ):
        super().__init__(filename, when, interval, backupCount, encoding, delay, utc)
        if archive_dir:
            self.archive_dir = Path(archive_dir)
        else:
            self.archive_dir = Path(self.baseFilename).parent / "archive"

        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def doRollover(self):
        super().doRollover()

        # TimedRotatingFileHandler appends timestamps like .2026-10-19 to rotated files
        log_path = Path(self.baseFilename)
        for rotated_file in log_path.parent.glob(f"{log_path.name}.*"):
            if rotated_file == log_path:
                continue

            archive_file = self.archive_dir / rotated_file.name
            try:
                shutil.move(str(rotated_file), str(archive_file))
            except OSError as e:
                # Not through the logger: we are inside a handler
                print(f"Warning: Failed to archive {rotated_file}: {e}", file=sys.stderr)


def get_log_file_path(log_dir: Path, name: str = "webhook") -> Path:
    """
    Build log file path with a date subfolder.

    Structure: {log_dir}/{YYYY-MM-DD}/{name}_{MMDD}_{HHMM}.log

    Args:
        log_dir: Base log directory
        name: Log file prefix

    Returns:
        Full path to log file
    """
    now = datetime.now()
    filename = f"{name}_{now.strftime('%m%d')}_{now.strftime('%H%M')}.log"
    return log_dir / now.strftime("%Y-%m-%d") / filename


def setup_logging(
    name: str = "limesurvey_webhook",
    stage: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """
    Configure logging with a console handler and an archiving rotating file handler.

    Args:
        name: Logger name and log file prefix
        stage: Stage name injected into every record (serve/send)
        log_dir: Directory for log files (default: ./logs)
        json_format: Use JSON format for file logs (default: True)
        console_level: Console handler level (default: INFO)
        file_level: File handler level (default: DEBUG)
        rotation_when: When to rotate logs - 'midnight', 'H' (hourly), 'M' (minutes)
        rotation_interval: Interval for rotation (default: 1)
        backup_count: Number of backup files to keep (default: 7)
        suppress_noisy: Quiet down HTTP client and SQL engine loggers
        log_to_stdout: Send all log output to stdout only, skipping the file handler.
            Useful for containerized deployments where logs are captured from stdout.

    Returns:
        Configured logger instance
    """
    log_dir = log_dir or DEFAULT_LOG_DIR

    if stage:
        set_log_context(stage=stage)

    console_formatter = ConsoleFormatter()
    if sys.platform == "win32":
        safe_stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        console_handler = logging.StreamHandler(safe_stdout)
    else:
        console_handler = logging.StreamHandler(sys.stdout)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    log_file = None
    if log_to_stdout:
        console_handler.setLevel(min(console_level, file_level))
        console_handler.setFormatter(JSONFormatter() if json_format else console_formatter)
        root_logger.addHandler(console_handler)
    else:
        console_handler.setLevel(console_level)
        console_handler.setFormatter(console_formatter)

        log_file = get_log_file_path(log_dir, name=name)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )

        file_handler = ArchivingTimedRotatingFileHandler(
            log_file,
            when=rotation_when,
            interval=rotation_interval,
            backupCount=backup_count,
            encoding="utf-8",
            archive_dir=log_file.parent / "archive",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(file_formatter)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    if log_file is None:
        logger.debug("Logging initialized: stdout-only mode")
    else:
        logger.debug("Logging initialized: file=%s, json=%s", log_file, json_format)

    return logger


def log_startup(
    logger: logging.Logger,
    component: str,
    target_url: str | None = None,
    survey_ids: list[int] | None = None,
    extra_config: dict | None = None,
) -> None:
    """
    Log standard startup information.

    Args:
        logger: Logger instance to use
        component: Name of the component starting up
        target_url: Webhook target URL (already sanitized)
        survey_ids: Survey ids the webhook fires for
        extra_config: Additional configuration to log
    """
    logger.info("=" * 70)
    logger.info("Starting %s", component)
    logger.info("=" * 70)

    if target_url:
        logger.info("Webhook target: %s", target_url)
    if survey_ids is not None:
        logger.info("Surveys: %s", ", ".join(str(s) for s in survey_ids) or "(none)")

    if extra_config:
        for key, value in extra_config.items():
            logger.info("%s: %s", key, value)

    logger.info("=" * 70)


def generate_trace_id() -> str:
    """
    Generate a unique identifier for one handled event.

    Format: t-YYYYMMDD-HHMMSS-XXXX where XXXX is random hex.
    """
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    suffix = secrets.token_hex(2)
    return f"t-{ts}-{suffix}"
