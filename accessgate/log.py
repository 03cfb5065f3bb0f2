"""Logging helpers for mini-accessgate."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

from .config import LoggingConfig

DENIAL_LOGGER = "accessgate.middleware.access"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _handler_config(config: LoggingConfig, level: int) -> Dict[str, Any]:
    if config.file:
        return {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": config.file,
            "encoding": "utf-8",
            "level": level,
            "formatter": "standard",
        }
    return {"class": "logging.StreamHandler", "level": level, "formatter": "standard"}


def configure_logging(config: LoggingConfig) -> None:
    """Configure global logging from the ``logging`` section of daemon.json.

    Rejected peers are logged at INFO by the access middleware; with
    ``log_denials`` disabled that logger only passes warnings and above."""

    level = getattr(logging, config.level.upper(), logging.INFO)
    denial_level = logging.NOTSET if config.log_denials else logging.WARNING

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": LOG_FORMAT}},
            "handlers": {"default": _handler_config(config, level)},
            "loggers": {DENIAL_LOGGER: {"level": denial_level}},
            "root": {"handlers": ["default"], "level": level},
        }
    )

    logging.getLogger("uvicorn.access").disabled = not config.access_log


def describe_peer(raw_peer: str, address: str) -> str:
    """Render a peer for log lines, keeping the raw form when extraction failed."""
    if address:
        return address
    return f"<unparsable {raw_peer!r}>"


__all__ = ["DENIAL_LOGGER", "configure_logging", "describe_peer"]
