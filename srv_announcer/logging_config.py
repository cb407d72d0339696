"""Logging configuration setup."""

from __future__ import annotations

import logging
import logging.config

from .errors import ConfigError

# logrus-style names accepted by --log-level.
LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "panic": logging.CRITICAL,
}

QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore", "uvicorn.access")


def parse_log_level(name: str) -> int:
    try:
        return LOG_LEVELS[name.strip().lower()]
    except KeyError:
        raise ConfigError(
            f"Unable to parse log level {name!r}, expected one of: {', '.join(sorted(LOG_LEVELS))}"
        ) from None


def configure_logging(level: str = "info") -> int:
    """Send all srv_announcer logs to stdout in a plain text format.

    Returns the numeric level that was applied.
    """
    numeric = parse_log_level(level)
    quiet = max(numeric, logging.WARNING)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {
                    "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "text",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["stdout"], "level": numeric},
            "loggers": {name: {"level": quiet} for name in QUIET_LOGGERS},
        }
    )
    return numeric
