"""Opt-in logging for fanoutsim.

The package logger carries only a NullHandler until one of these helpers
is called. Every helper installs its handler on the ``fanoutsim`` logger,
so module loggers (``fanoutsim.simulation``,
``fanoutsim.components.load_balancer.aperture``, ...) all flow into it.

Example:
    import fanoutsim

    fanoutsim.enable_console_logging("DEBUG")
    sim = fanoutsim.Simulation(config)
    fanoutsim.stamp_sim_time(sim)   # prefix lines with virtual time

    fanoutsim.enable_file_logging("logs/run.jsonl", json_format=True)
    fanoutsim.set_module_level("components.load_balancer", "DEBUG")

configure_from_env() reads:
    FS_LOGGING   level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    FS_LOG_FILE  path of a rotating log file
    FS_LOG_JSON  "1" to emit JSON lines
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from fanoutsim.simulation import Simulation

__all__ = [
    "JsonFormatter",
    "SimTimeFilter",
    "TextFormatter",
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
    "stamp_sim_time",
]

LOGGER_NAME = "fanoutsim"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class SimTimeFilter(logging.Filter):
    """Sets ``record.sim_time_ms`` from a simulation clock. Never drops records."""

    def __init__(self, now_ms: Callable[[], float]):
        super().__init__()
        self.now_ms = now_ms

    def filter(self, record: logging.LogRecord) -> bool:
        record.sim_time_ms = self.now_ms()
        return True


class TextFormatter(logging.Formatter):
    """Plain-text lines, prefixed with ``[t=...ms]`` when the record carries sim time."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        sim_time_ms = getattr(record, "sim_time_ms", None)
        if sim_time_ms is None:
            return line
        return f"[t={sim_time_ms:.1f}ms] {line}"


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: timestamp, level, logger, message, and ``sim_time_ms`` or
    ``exception`` when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        sim_time_ms = getattr(record, "sim_time_ms", None)
        if sim_time_ms is not None:
            entry["sim_time_ms"] = sim_time_ms
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _get_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def _install(handler: logging.Handler, level: LogLevel | int, formatter: logging.Formatter) -> None:
    numeric = _get_level(level)
    handler.setLevel(numeric)
    handler.setFormatter(formatter)
    logger = _get_logger()
    logger.setLevel(numeric)
    logger.addHandler(handler)


def _clear_handlers() -> None:
    """Close and detach every real handler, keeping NullHandlers."""
    logger = _get_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            continue
        logger.removeHandler(handler)
        handler.close()


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Send package logs to stderr as text and return the handler."""
    handler = logging.StreamHandler()
    _install(handler, level, TextFormatter(format, date_format))
    return handler


def enable_json_logging(level: LogLevel | int = "INFO") -> logging.StreamHandler:
    """Send package logs to stderr as JSON lines and return the handler."""
    handler = logging.StreamHandler()
    _install(handler, level, JsonFormatter())
    return handler


def enable_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    *,
    json_format: bool = False,
) -> RotatingFileHandler:
    """Write package logs to ``path``, rotating at ``max_bytes``.

    Missing parent directories are created. ``backup_count`` rotated
    files are kept next to the live one.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    formatter = JsonFormatter() if json_format else TextFormatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT)
    _install(handler, level, formatter)
    return handler


def stamp_sim_time(sim: Simulation) -> SimTimeFilter:
    """Tag records passing through the installed handlers with ``sim``'s virtual time.

    Handlers installed later are not covered; call this after the
    ``enable_*`` helpers.
    """
    time_filter = SimTimeFilter(lambda: sim.now_ms)
    for handler in _get_logger().handlers:
        if not isinstance(handler, logging.NullHandler):
            handler.addFilter(time_filter)
    return time_filter


def configure_from_env() -> None:
    """Install a handler described by FS_LOGGING, FS_LOG_FILE and FS_LOG_JSON.

    A no-op unless FS_LOGGING or FS_LOG_FILE is set. A file wins over the
    console; the level defaults to INFO.
    """
    level = os.environ.get("FS_LOGGING", "").upper()
    log_file = os.environ.get("FS_LOG_FILE", "")
    as_json = os.environ.get("FS_LOG_JSON", "") == "1"
    if not (level or log_file):
        return

    level = level or "INFO"
    if log_file:
        enable_file_logging(log_file, level=level, json_format=as_json)
    elif as_json:
        enable_json_logging(level=level)
    else:
        enable_console_logging(level=level)


def set_level(level: LogLevel | int) -> None:
    _get_logger().setLevel(_get_level(level))


def set_module_level(module: str, level: LogLevel | int) -> None:
    """Set one submodule's level, e.g. ``set_module_level("simulation", "DEBUG")``."""
    logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(_get_level(level))


def disable_logging() -> None:
    """Detach all handlers and raise the threshold above CRITICAL."""
    _clear_handlers()
    logger = _get_logger()
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
