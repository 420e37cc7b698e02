"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
import re
from pathlib import Path
from typing import Any, Iterable

import structlog

LOGGER_NAME = "brandguard"
APP_LOG_NAME = "brandguard.log"
ERROR_LOG_NAME = "error.log"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_LOGGING_INITIALISED = False


def log_dir() -> Path:
    env_root = os.environ.get("BRANDGUARD_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def _slug(name: str) -> str:
    return re.sub(r"[^0-9A-Za-z_-]+", "_", name.strip()).strip("_") or "project"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def _dict_config(directory: Path, verbose: bool) -> dict[str, Any]:
    level = "DEBUG" if verbose else "INFO"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT}
        },
        "handlers": {
            # the console only shows problems unless --verbose is given
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG" if verbose else "WARNING",
                "formatter": "json",
            },
            "app_file": _file_handler(directory / APP_LOG_NAME, "INFO"),
            "error_file": _file_handler(directory / ERROR_LOG_NAME, "ERROR"),
        },
        "loggers": {
            LOGGER_NAME: {
                "handlers": ["console", "app_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Route structlog events through stdlib handlers writing JSON lines.

    Only the first call installs handlers; later calls return the
    application logger unchanged.
    """

    global _LOGGING_INITIALISED
    directory = log_dir()
    (directory / "projects").mkdir(parents=True, exist_ok=True)

    if not _LOGGING_INITIALISED:
        logging.config.dictConfig(_dict_config(directory, verbose))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(LOGGER_NAME)


def project_log_path(project_name: str) -> Path:
    return log_dir() / "projects" / f"{_slug(project_name)}.log"


def _attach_project_file(py_logger: logging.Logger, path: Path) -> None:
    for handler in py_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path):
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    app_handlers = logging.getLogger(LOGGER_NAME).handlers
    if app_handlers:
        handler.setFormatter(app_handlers[0].formatter)
    handler.setLevel(logging.INFO)
    py_logger.addHandler(handler)


def project_logger(project_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``project``; events also land in the project's own file.

    Project loggers are children of the application logger, so every event
    reaches ``brandguard.log`` as well.
    """

    configure_logging(verbose)
    path = project_log_path(project_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    name = f"{LOGGER_NAME}.project.{_slug(project_name)}"
    _attach_project_file(logging.getLogger(name), path)
    return structlog.get_logger(name).bind(project=project_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return stream.readlines()[-line_count:]


def app_log_path() -> Path:
    return log_dir() / APP_LOG_NAME


def available_project_logs() -> Iterable[Path]:
    projects = log_dir() / "projects"
    if not projects.exists():
        return []
    return sorted(projects.glob("*.log"))


__all__ = [
    "app_log_path",
    "available_project_logs",
    "configure_logging",
    "log_dir",
    "project_log_path",
    "project_logger",
    "tail_log",
]
