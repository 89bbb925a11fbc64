"""Stderr logging for the qbulktest command line."""
from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "qbulktest"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
_HANDLER_NAME = "qbulktest-console"


class _ConsoleHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is when a record is emitted."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, _value) -> None:
        pass


def setup_console_logging(level: int = logging.WARNING) -> logging.Logger:
    """Send qbulktest log records to stderr at ``level`` and return the package logger.

    Reports go to stdout, so progress diagnostics never interleave with them.
    Calling this again only changes the level.
    """

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    if any(handler.get_name() == _HANDLER_NAME for handler in package_logger.handlers):
        return package_logger

    handler = _ConsoleHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    package_logger.addHandler(handler)
    return package_logger
