"""
Logging helpers for running the request builders outside the Processing Engine.

Inside the engine every function receives the ``influxdb3_local`` API object,
which exposes ``info``, ``warn`` and ``error``. Library and CLI callers have no
such object, so ``LoggerReporter`` provides the same three methods on top of a
standard ``logging`` logger.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("influx_request_builder")


class LoggerReporter:
    def __init__(self, target: Optional[logging.Logger] = None):
        self._logger = target or logger

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warn(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)


def get_reporter(influxdb3_local=None):
    """Return the engine API object if given, else a logging-backed reporter."""
    if influxdb3_local is not None:
        return influxdb3_local
    return LoggerReporter()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
