"""
Logger Setup
-----------
Centralized logging configuration using loguru.

Every record carries the service name and version from settings. Records
emitted through the standard ``logging`` module (uvicorn, SQLAlchemy, httpx)
are forwarded into the same loguru sinks, with noisy libraries held at a
higher level.
"""

import inspect
import logging
import sys
from typing import Dict

from loguru import logger
from app.core.config_manager import settings

# Stdlib loggers that drop their own handlers and propagate to the root handler
ROUTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sqlalchemy.engine",
)

# Library loggers that only report above their own level
QUIET_LOGGERS: Dict[str, str] = {
    "httpx": "ERROR",
    "httpcore": "ERROR",
    "asyncio": "ERROR",
    "asyncpg": "WARNING",
    "aiosqlite": "WARNING",
    "sqlalchemy.engine": "WARNING",
}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[service]} {extra[version]} | "
    "{name}:{function}:{line} | {message}"
)


class StdlibInterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def route_stdlib_logging(level: str) -> None:
    """Install the intercept handler on the root logger and tune library loggers."""
    root = logging.getLogger()
    root.handlers = [
        handler for handler in root.handlers if not isinstance(handler, StdlibInterceptHandler)
    ]
    root.addHandler(StdlibInterceptHandler())
    root.setLevel(level)

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = []
        routed.propagate = True

    for name, quiet_level in QUIET_LOGGERS.items():
        # A DEBUG service still shows SQL and client traffic
        logging.getLogger(name).setLevel("DEBUG" if level == "DEBUG" else quiet_level)


def configure_logger() -> None:
    """
    Replace the default loguru handler with the service sinks.

    - stdout, coloured, always
    - ``logs/proveloce_<date>.log`` outside debug mode
    """
    logger.remove()
    logger.configure(
        extra={"service": settings.app_name, "version": settings.app_version}
    )

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=settings.log_level,
        colorize=True,
        backtrace=True,
        diagnose=settings.debug,
    )

    if not settings.debug:
        logger.add(
            "logs/proveloce_{time:YYYY-MM-DD}.log",
            rotation="500 MB",
            retention="10 days",
            level=settings.log_level,
            format=FILE_FORMAT,
            backtrace=True,
            diagnose=False,
        )

    route_stdlib_logging(settings.log_level)

    logger.info(
        f"Logger configured with level: {settings.log_level} "
        f"({settings.app_name} v{settings.app_version})"
    )


# Configure logger on import
configure_logger()
