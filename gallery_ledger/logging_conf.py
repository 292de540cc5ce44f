"""Logging configuration: structlog events rendered as JSON by stdlib handlers."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

import structlog

from .config import ConfigLocator

ROOT_LOGGER = "gallery_ledger"
APP_LOG = "app.log"
ERROR_LOG = "error.log"

_LOGGING_INITIALISED = False


def log_paths(log_dir: Path) -> dict[str, Path]:
    return {"app": log_dir / APP_LOG, "error": log_dir / ERROR_LOG}


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def _dict_config(level: str, paths: dict[str, Path]) -> dict[str, Any]:
    handlers = {
        "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
        "app_file": _file_handler(paths["app"], "INFO"),
        "error_file": _file_handler(paths["error"], "ERROR"),
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": handlers,
        "loggers": {
            ROOT_LOGGER: {"handlers": list(handlers), "level": level, "propagate": False},
        },
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Route structlog events into the JSON handlers under ``log_dir``.

    ``log_dir`` defaults to the locator's ``logs`` directory. Only the first
    call configures anything; later calls just return the root logger.
    """

    global _LOGGING_INITIALISED
    if _LOGGING_INITIALISED:
        return structlog.get_logger(ROOT_LOGGER)

    log_dir = log_dir or ConfigLocator().logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    paths = log_paths(log_dir)
    for path in paths.values():
        path.touch(exist_ok=True)

    logging.config.dictConfig(_dict_config("DEBUG" if verbose else "INFO", paths))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            # The event dict becomes the record message; JsonFormatter merges it.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def component_logger(component: str) -> structlog.BoundLogger:
    return structlog.get_logger(f"{ROOT_LOGGER}.{component}").bind(component=component)


def tail_log(path: Path, line_count: int = 50) -> list[str]:
    """Return the last ``line_count`` lines of a log file, or nothing if it is missing."""

    if line_count <= 0 or not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="replace") as stream:
        lines = stream.read().splitlines()
    return lines[-line_count:]


__all__ = ["component_logger", "configure_logging", "log_paths", "tail_log"]
