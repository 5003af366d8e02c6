# torus_monitor/logging.py

from __future__ import annotations

import logging
import sys
from typing import Iterable


APP_LOGGER = "torus"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Transport libraries that flood DEBUG with per-request connection lines.
CHATTY_LOGGERS = ("urllib3", "charset_normalizer")


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


class ConsoleLog:
    """
    Stdout logging for the polling job.

    The root logger stays at DEBUG and the single console handler carries the
    configured threshold, so `debug_modules` can open up individual loggers
    (for example `torus_monitor.services.portal_client`) without touching
    the rest. `quiet` leaves the root logger without handlers.
    """

    def __init__(self, level: str = "INFO", quiet: bool = False, debug_modules: Iterable[str] | None = None):
        self.level = _resolve_level(level)
        self.quiet = quiet
        self.debug_modules = tuple(debug_modules or ())

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self.level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        return handler

    def setup(self) -> logging.Logger:
        root = logging.getLogger()
        for existing in list(root.handlers):
            root.removeHandler(existing)
        root.setLevel(logging.DEBUG)

        if not self.quiet:
            root.addHandler(self._console_handler())

        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)
        for name in self.debug_modules:
            logging.getLogger(name).setLevel(logging.DEBUG)

        return logging.getLogger(APP_LOGGER)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
