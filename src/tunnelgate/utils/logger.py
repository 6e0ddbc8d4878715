"""
Logging setup for tunnelgate.

All modules log through loguru. Call ``configure_logging`` once at startup,
then obtain module loggers with ``get_logger(__name__)``.
"""

import logging
import sys
import traceback

from loguru import logger as _logger

from tunnelgate.models.enums import LogLevel

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

# loguru level names for each LogLevel
_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_logger.configure(extra={"name": "tunnelgate"})


class InterceptHandler(logging.Handler):
    """Route stdlib ``logging`` records (asyncio, etc.) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        _logger.bind(name=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(level: LogLevel = LogLevel.INFO, log_file: str = "") -> None:
    """
    Configure loguru sinks.

    Args:
        level: Verbosity level.
        log_file: Optional path of an additional rotating log file.
    """
    loguru_level = _LEVEL_MAP.get(level, "INFO")
    backtrace = level == LogLevel.FULL

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=loguru_level,
        format=LOG_FORMAT,
        backtrace=backtrace,
        diagnose=backtrace,
    )
    if log_file:
        _logger.add(
            log_file,
            level=loguru_level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def get_logger(name: str):
    """Get a logger bound to a module name."""
    return _logger.bind(name=name)


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
