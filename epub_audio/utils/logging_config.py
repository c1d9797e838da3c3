
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Iterator, Optional, Union

# Default log format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PACKAGE_LOGGER = "epub_audio"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class ProcessingLogFormatter(logging.Formatter):
    """Formats records as `[2024-01-01T12:00:00.000Z] INFO: message`."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        stamp = timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        level = "WARN" if record.levelno == logging.WARNING else record.levelname
        return f"[{stamp}] {level}: {record.getMessage()}"


# Path of the processing log owned by the current task, if any
_active_processing_log: ContextVar[Optional[str]] = ContextVar("active_processing_log", default=None)


class _CurrentRunFilter(logging.Filter):
    """Passes only records emitted inside the run that opened the log."""

    def __init__(self, log_path: str):
        super().__init__()
        self.log_path = log_path

    def filter(self, record: logging.LogRecord) -> bool:
        return _active_processing_log.get() == self.log_path


def resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    return LEVELS.get(level.lower(), logging.INFO)


def configure_logging(level=logging.INFO, log_file="logs/epub_audio.log"):
    """
    Configure the root logger with console and file handlers.
    """
    resolved = resolve_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    # processing_log may lower the package level; handlers keep the chosen one
    console_handler.setLevel(resolved)
    root_logger.addHandler(console_handler)

    log_path = os.path.abspath(log_file)
    os.makedirs(os.path.dirname(log_path), exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10*1024*1024, # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(resolved)
    root_logger.addHandler(file_handler)

    logging.info(f"Logging configured. Writing to {log_path}")


# Open processing logs and the package level saved by the first one
_open_runs = 0
_saved_level = logging.NOTSET


def _raise_package_level(package_logger: logging.Logger) -> None:
    global _open_runs, _saved_level
    if _open_runs == 0:
        _saved_level = package_logger.level
        if package_logger.getEffectiveLevel() > logging.INFO:
            package_logger.setLevel(logging.INFO)
    _open_runs += 1


def _restore_package_level(package_logger: logging.Logger) -> None:
    global _open_runs
    _open_runs -= 1
    if _open_runs == 0:
        package_logger.setLevel(_saved_level)


@contextmanager
def processing_log(log_path: str) -> Iterator[logging.Handler]:
    """
    Append every epub_audio record to `log_path` for the duration of a run.

    The file is opened in append mode; lines use ProcessingLogFormatter.
    Only records logged from the current task (or code it awaits) are
    written, so concurrent runs keep separate logs.
    """
    log_path = os.path.abspath(log_path)
    os.makedirs(os.path.dirname(log_path), exist_ok=True)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(ProcessingLogFormatter())
    handler.setLevel(logging.DEBUG)
    handler.addFilter(_CurrentRunFilter(log_path))
    token = _active_processing_log.set(log_path)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    _raise_package_level(package_logger)
    package_logger.addHandler(handler)
    try:
        yield handler
    finally:
        package_logger.removeHandler(handler)
        _restore_package_level(package_logger)
        _active_processing_log.reset(token)
        handler.close()


def get_logger(name):
    """Get a logger instance for a module."""
    return logging.getLogger(name)
