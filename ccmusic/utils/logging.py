"""Logging setup."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ccmusic"


class JsonFormatter(logging.Formatter):
    """JSON Lines log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def setup_logging(
    level: str = "DEBUG",
    log_file: Path | None = None,
    jsonl: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """
    Set up the ccmusic logger.

    The returned logger is the single sink for the whole run and is handed
    to every component explicitly. Console output goes through Rich at INFO
    and above; the optional log file receives everything down to ``level``.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output (appended to)
        jsonl: If True, use JSONL format for file output
        console: Rich console for the console handler (stderr by default)

    Returns:
        The ccmusic logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    # Clear existing handlers
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(logging.INFO)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)

        if jsonl:
            file_handler.setFormatter(JsonFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(threadName)s | %(message)s"
            ))

        logger.addHandler(file_handler)

    return logger


def get_logger() -> logging.Logger:
    """Return the ccmusic logger without touching its handlers."""
    return logging.getLogger(LOGGER_NAME)
