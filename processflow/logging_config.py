"""Logging setup for processflow.

The library is silent until a handler is attached with one of the helpers
below. Every record that passes through a handler installed here carries a
``sim_time`` attribute holding the simulated time (in seconds) of the event
being processed, so a trace of a run reads in model time rather than wall time.

Example:
    import processflow

    processflow.enable_console_logging(level="DEBUG")
    processflow.enable_file_logging("logs/run.log", max_bytes=5_000_000)
    processflow.configure_from_env()

Environment variables read by ``configure_from_env``:
    PF_LOGGING: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    PF_LOG_FILE: Path to a log file (enables rotating file logging)
    PF_LOG_JSON: "1" switches the output to one JSON object per line
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Literal

__all__ = [
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_file_logging",
    "enable_json_logging",
    "enable_timed_file_logging",
    "set_level",
    "set_module_level",
]

DEFAULT_FORMAT = "%(asctime)s - [t=%(sim_time)s] %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

LOGGER_NAME = "processflow"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Set by Simulation.run() so records can be stamped with model time.
_sim_time_source: Callable[[], float] | None = None


def set_sim_time_source(source: Callable[[], float] | None) -> None:
    """Install (or clear) the callable that reports the current simulated time."""
    global _sim_time_source
    _sim_time_source = source


class SimTimeFilter(logging.Filter):
    """Adds ``record.sim_time`` (seconds, or "-" outside a run)."""

    def filter(self, record: logging.LogRecord) -> bool:
        source = _sim_time_source
        record.sim_time = f"{source():.6f}" if source is not None else "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including the simulated time."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "sim_time": getattr(record, "sim_time", "-"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def _get_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def _clear_handlers() -> None:
    """Remove and close every non-null handler on the processflow logger."""
    logger = _get_logger()
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


def _install(handler: logging.Handler, level: LogLevel | int, formatter: logging.Formatter):
    level_no = _get_level(level)
    logger = _get_logger()
    logger.setLevel(level_no)
    handler.setLevel(level_no)
    handler.setFormatter(formatter)
    handler.addFilter(SimTimeFilter())
    logger.addHandler(handler)
    return handler


def _prepare_path(path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Log to stderr.

    Args:
        level: Log level name or number.
        format: Format string; ``%(sim_time)s`` is available.
        date_format: Format for ``%(asctime)s``.

    Returns:
        The installed StreamHandler.
    """
    return _install(logging.StreamHandler(), level, logging.Formatter(format, date_format))


def enable_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> RotatingFileHandler:
    """Log to a size-rotated file. Parent directories are created.

    Args:
        path: Log file location.
        level: Log level name or number.
        max_bytes: Size at which the file is rotated.
        backup_count: Number of rotated files kept.
        format: Format string; ``%(sim_time)s`` is available.
        date_format: Format for ``%(asctime)s``.

    Returns:
        The installed RotatingFileHandler.
    """
    handler = RotatingFileHandler(
        _prepare_path(path), maxBytes=max_bytes, backupCount=backup_count
    )
    return _install(handler, level, logging.Formatter(format, date_format))


def enable_timed_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    when: str = "midnight",
    interval: int = 1,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> TimedRotatingFileHandler:
    """Log to a file rotated on a wall-clock schedule (see TimedRotatingFileHandler)."""
    handler = TimedRotatingFileHandler(
        _prepare_path(path), when=when, interval=interval, backupCount=backup_count
    )
    return _install(handler, level, logging.Formatter(format, date_format))


def enable_json_logging(level: LogLevel | int = "INFO") -> logging.StreamHandler:
    """Log JSON lines to stderr."""
    return _install(logging.StreamHandler(), level, JsonFormatter())


def enable_json_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> RotatingFileHandler:
    """Log JSON lines to a size-rotated file."""
    handler = RotatingFileHandler(
        _prepare_path(path), maxBytes=max_bytes, backupCount=backup_count
    )
    return _install(handler, level, JsonFormatter())


def configure_from_env() -> None:
    """Configure logging from the PF_LOGGING / PF_LOG_FILE / PF_LOG_JSON variables.

    Does nothing when neither a level nor a file is given.
    """
    level = os.environ.get("PF_LOGGING", "").upper()
    log_file = os.environ.get("PF_LOG_FILE", "")
    use_json = os.environ.get("PF_LOG_JSON", "") == "1"

    if not level and not log_file:
        return

    level = level or "INFO"
    if use_json:
        if log_file:
            enable_json_file_logging(log_file, level=level)
        else:
            enable_json_logging(level=level)
    elif log_file:
        enable_file_logging(log_file, level=level)
    else:
        enable_console_logging(level=level)


def set_level(level: LogLevel | int) -> None:
    """Set the level of the processflow root logger."""
    _get_logger().setLevel(_get_level(level))


def set_module_level(module: str, level: LogLevel | int) -> None:
    """Set the level of one submodule, e.g. ``set_module_level("components.downtime", "DEBUG")``."""
    logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(_get_level(level))


def disable_logging() -> None:
    """Silence processflow completely."""
    logger = _get_logger()
    _clear_handlers()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
