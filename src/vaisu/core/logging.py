"""
Logging configuration.

Built on loguru:
- colored console output
- rotating, compressed file output
- standard library records (uvicorn, httpx, sqlalchemy) routed into loguru
- context binding through `LogContext`
"""

import inspect
import logging
import sys
from pathlib import Path
from typing import Any

from loguru import logger

if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8")


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)

PLAIN_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{message} | "
    "{extra}"
)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class LogConfig:
    """
    Logger configuration.

    Holds the sink options and installs them with `setup()`.
    """

    def __init__(
        self,
        level: str = "INFO",
        log_to_console: bool = True,
        log_to_file: bool = False,
        log_file_path: str = "logs/app.log",
        rotation: str = "100 MB",
        retention: str = "30 days",
        colorize_file: bool = True,
    ):
        """
        Args:
            level: log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_to_console: write to stdout
            log_to_file: write to `log_file_path`
            log_file_path: log file location
            rotation: rotation condition, e.g. "100 MB" or "1 day"
            retention: how long rotated files are kept, e.g. "30 days"
            colorize_file: keep ANSI color markup in file output
        """
        self.level = level.upper()
        self.log_to_console = log_to_console
        self.log_to_file = log_to_file
        self.log_file_path = Path(log_file_path)
        self.rotation = rotation
        self.retention = retention
        self.colorize_file = colorize_file
        self.file_format = CONSOLE_FORMAT if colorize_file else PLAIN_FORMAT

    def setup(self, intercept_stdlib: bool = True) -> None:
        """
        Replace the default loguru sink with the configured ones.

        Args:
            intercept_stdlib: also route standard `logging` records to loguru
        """
        logger.remove()

        if self.log_to_console:
            logger.add(
                sys.stdout,
                format=CONSOLE_FORMAT,
                level=self.level,
                colorize=True,
                backtrace=True,
                diagnose=True,
            )

        if self.log_to_file:
            self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
            logger.add(
                str(self.log_file_path),
                format=self.file_format,
                level=self.level,
                colorize=self.colorize_file,
                backtrace=True,
                diagnose=True,
                rotation=self.rotation,
                retention=self.retention,
                compression="zip",
                enqueue=True,
            )

        if intercept_stdlib:
            logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

        logger.info(
            f"Logger initialized - Console: {self.log_to_console}, "
            f"File: {self.log_to_file}, Level: {self.level}"
        )


def get_logger() -> Any:
    """
    Return the shared loguru logger.

    Returns:
        Any: logger instance
    """
    return logger


class LogContext:
    """
    Bind context fields to log records inside a `with` block.

    Example:
        with LogContext(user_id="123", document_id="abc") as log:
            log.info("Analyzing document")
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs
        self.logger = None

    def __enter__(self):
        self.logger = logger.bind(**self.context)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False
