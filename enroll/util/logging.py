"""Logging configuration for the engine."""

import logging
import sys
from typing import TextIO

from enroll.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(invite_code)s] %(message)s"

# Polling libraries log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore")


class InviteCodeFilter(logging.Filter):
    """Guarantees every record carries an `invite_code` attribute."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "invite_code"):
            record.invite_code = "-"
        return True


def log_level(settings: Settings) -> int:
    """Pick the root log level for an environment."""
    if settings.debug:
        return logging.DEBUG
    if settings.environment in ("production", "test"):
        return logging.WARNING
    return logging.INFO


def setup_logging(settings: Settings, stream: TextIO | None = None) -> None:
    """Configure engine logging.

    Logs go to stderr by default so that command line output on stdout stays
    readable.

    Args:
        settings: Application settings
        stream: Stream to write log records to
    """
    level = log_level(settings)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(InviteCodeFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("enroll").setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured: environment=%s, level=%s",
        settings.environment,
        logging.getLevelName(level),
    )


def get_logger(name: str, code: str | None = None) -> logging.LoggerAdapter:
    """Get a logger, optionally bound to one invitation code.

    Args:
        name: Logger name (typically __name__)
        code: Invitation code to tag every record with

    Returns:
        Logger adapter
    """
    return logging.LoggerAdapter(logging.getLogger(name), {"invite_code": code or "-"})
