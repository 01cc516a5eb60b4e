"""
Logging for mpracount runs.

Messages of a stage are prefixed with the dataset, condition/replicate or
condition they concern, so interleaved output from several units stays
readable. The log file in the output directory always records DEBUG detail;
the console follows the requested level.
"""

import functools
import logging
import sys
import time
from pathlib import Path
from typing import Callable, Optional

PACKAGE_LOGGER = "mpracount"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)-7s %(message)s"


class PerformanceLogger:
    """Context manager timing one pipeline stage for one key.

    The elapsed time is kept in `duration` after the block exits, so callers
    can report it alongside their stage statistics.
    """

    def __init__(self, logger: logging.Logger, stage: str, key: Optional[str] = None):
        self.logger = logger
        self.stage = stage
        self.key = key
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    @property
    def label(self) -> str:
        return f"{self.key}: {self.stage}" if self.key else self.stage

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.label} started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time
        if exc_type is None:
            self.logger.info(f"{self.label} finished in {self.duration:.3f}s")
        else:
            self.logger.error(f"{self.label} failed after {self.duration:.3f}s: {exc_val}")
        return False


def time_it(stage: str = None):
    """Decorator timing a whole pipeline step with `PerformanceLogger`."""
    def decorator(func: Callable) -> Callable:
        name = stage or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceLogger(logging.getLogger(func.__module__), name):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console_output: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file; it receives DEBUG and above
        console_output: Whether to log to stdout

    Returns:
        The configured package logger
    """
    console_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if log_file else console_level)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    # Handlers live on the package logger only
    logger.propagate = False

    return logger
