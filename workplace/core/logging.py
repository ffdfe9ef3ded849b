"""Centralized logging helpers for the workplace registry backend."""
from __future__ import annotations

import logging
from typing import Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
SERVICE_NAME = "workplace-registry"

# Chatty libraries that drown mutation logs at DEBUG.
QUIET_LOGGERS = ("sqlalchemy.engine", "apscheduler", "httpx")


def build_formatter(app_env: str | None = None) -> jsonlogger.JsonFormatter:
    """JSON formatter stamping every record with the service and environment."""

    static_fields = {"service": SERVICE_NAME}
    if app_env:
        static_fields["env"] = app_env
    return jsonlogger.JsonFormatter(
        LOG_FORMAT,
        rename_fields={"levelname": "level", "asctime": "timestamp"},
        static_fields=static_fields,
    )


def setup_logging(level: str = "INFO", app_env: str | None = None) -> None:
    """Configure root logging with a JSON formatter."""

    root_logger = logging.getLogger()
    # Remove existing handlers to avoid duplicate logs when reloading.
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level.upper())

    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(app_env))
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Return a logger configured with the shared root settings."""

    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level.upper())
    return logger


__all__ = ["build_formatter", "get_logger", "setup_logging"]
