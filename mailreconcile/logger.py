#!/usr/bin/env python3
"""
logger.py

Centralized logging for mailreconcile.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler, RotatingFileHandler
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from mailreconcile.config import Settings

_LOGGER: Optional[logging.Logger] = None
STATUS_LEVEL = 25


def _install_status_level() -> None:
    """Register the STATUS level and Logger.status() once per process."""
    if hasattr(logging.Logger, "status"):
        return

    logging.addLevelName(STATUS_LEVEL, "STATUS")

    def status(self, message, *args, **kwargs):
        if self.isEnabledFor(STATUS_LEVEL):
            self._log(STATUS_LEVEL, message, args, **kwargs)

    logging.Logger.status = status  # type: ignore[attr-defined]


# Registered at import so early loggers can call .status() too
_install_status_level()


def setup_logger(settings: "Settings") -> logging.Logger:
    """Initialize global logger once."""
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    log = logging.getLogger("mailreconcile")
    log.setLevel(settings.log_level)
    log.propagate = False

    # Clear any default handlers
    for h in log.handlers[:]:
        log.removeHandler(h)

    settings.log_path.parent.mkdir(parents=True, exist_ok=True)

    # --- Rotating File Handler ---
    if settings.rotate_by_time:
        file_handler = TimedRotatingFileHandler(
            settings.log_path, when="midnight", interval=1, backupCount=settings.max_log_files, encoding="utf-8"
        )
    else:
        file_handler = RotatingFileHandler(
            settings.log_path, maxBytes=settings.max_log_size, backupCount=settings.max_log_files, encoding="utf-8"
        )

    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
    )
    file_handler.setFormatter(file_formatter)
    log.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    console_handler.setFormatter(console_formatter)
    log.addHandler(console_handler)

    _LOGGER = log
    return log


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Retrieve a logger. If setup_logger() hasn't been called yet,
    return a temporary stderr-based logger.
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER.getChild(name) if name else _LOGGER

    # Fallback: minimal stderr logger (safe for early imports)
    temp = logging.getLogger("mailreconcile.temp")
    if not temp.handlers:
        h = logging.StreamHandler(sys.stderr)
        h.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        temp.addHandler(h)
        temp.setLevel(logging.INFO)
    return temp.getChild(name) if name else temp
