"""
Logging configuration for the liquidation monitor.

Every component logs through a child of the ``liquidation_bot`` logger
(``liquidation_bot.monitor``, ``liquidation_bot.trigger``, ...). Handlers are
attached once, to the parent, so a line's origin is carried by ``%(name)s``.
"""

import logging
import os
import traceback
from pathlib import Path
from typing import Any, Optional

LOGGER_NAME = "liquidation_bot"
LOGS_PATH = os.environ.get("LOGS_PATH", "logs/liquidation_monitor.log")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class DetailedExceptionFormatter(logging.Formatter):
    """
    Formatter that tags ERROR and above with the source location.
    Tracebacks are appended by the base class when the record carries exc_info.
    """

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT)
        self._detailed = logging.Formatter(LOG_FORMAT + " [%(module)s:%(lineno)d]")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            return self._detailed.format(record)
        return super().format(record)


def setup_logger(component: Optional[str] = None) -> logging.Logger:
    """
    Set up the liquidation monitor logger and return it, or one of its children.

    Args:
        component: Child logger suffix, e.g. ``"monitor"`` for ``liquidation_bot.monitor``.

    Returns:
        Logger whose records reach the console and file handlers of the parent.
    """
    logger = logging.getLogger(LOGGER_NAME)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler()
        Path(LOGS_PATH).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOGS_PATH, mode="a")

        formatter = DetailedExceptionFormatter()
        console_handler.setFormatter(formatter)
        file_handler.setFormatter(formatter)

        logger.addHandler(console_handler)
        logger.addHandler(file_handler)

    return logger.getChild(component) if component else logger


def global_exception_handler(exctype: type, value: BaseException, tb: Any) -> None:
    """Log uncaught exceptions, with their traceback, before the interpreter exits."""
    logger = logging.getLogger(LOGGER_NAME)
    trace_str = "".join(traceback.format_exception(exctype, value, tb))
    logger.critical("Uncaught exception:\n %s", trace_str)
