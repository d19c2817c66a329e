"""Logging configuration.

Module loggers come from ``get_logger(__name__)``. Security-relevant events
(logins, denied requests, record changes made through the API) also go to the
``clinic.audit`` logger, whose level is configured separately so it can stay
on when module logging is turned down.
"""

import logging
import os
import sys

from pydantic import BaseModel

AUDIT_LOGGER_NAME = "clinic.audit"


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    audit_level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger and the audit channel."""
    if config is None:
        config = LogConfig()

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )
    get_audit_logger().setLevel(config.audit_level.upper())

    # Request lines duplicate the audit trail
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Optional level overriding the LOG_LEVEL environment variable

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger


def get_audit_logger() -> logging.Logger:
    """Logger for who-did-what events; its level is set by ``setup_logging``."""
    return logging.getLogger(AUDIT_LOGGER_NAME)


def audit(actor: str, event: str, target: str | None = None, **details: object) -> None:
    """Record one audit event as ``actor=<id> event=<name> target=<id> key=value ...``."""
    parts = [f"actor={actor}", f"event={event}"]
    if target is not None:
        parts.append(f"target={target}")
    parts.extend(f"{key}={value}" for key, value in details.items())
    get_audit_logger().info(" ".join(parts))
