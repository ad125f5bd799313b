"""
Structured Logging Framework
=============================

JSON logging shared by every package in the retrieval engine:
- One JSON object per record
- Timing of chunking, graph-build and search calls
- Error tracking with tracebacks
"""

import inspect
import logging
import logging.handlers
import json
import time
import os
from typing import Optional, Set, Union
from functools import wraps
from datetime import datetime, timezone
import sys


DEFAULT_LEVEL_ENV = "NEXUS_LOG_LEVEL"

# Names of loggers configured by setup_logger
_configured: Set[str] = set()


class StructuredFormatter(logging.Formatter):
    """Format logs as structured JSON for better parsing"""

    EXTRA_FIELDS = ("correlation_id", "duration_ms", "component", "node_count", "strategy")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field_name in self.EXTRA_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_data[field_name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def resolve_level(default: int = logging.INFO) -> int:
    """Read the log level from the environment, falling back to *default*."""
    name = os.getenv(DEFAULT_LEVEL_ENV, "").upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_logger(
    name: str,
    level: Optional[int] = None,
    log_file: Optional[str] = None,
    use_structured: bool = True,
) -> logging.Logger:
    """
    Set up a logger with console and optional file handlers

    Args:
        name: Logger name
        level: Logging level (defaults to NEXUS_LOG_LEVEL or INFO)
        log_file: Optional file path for logging
        use_structured: Whether to use structured JSON format

    Returns:
        Configured logger instance
    """
    level = level if level is not None else resolve_level()
    logger = logging.getLogger(name)
    logger.setLevel(level)
    _configured.add(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if use_structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10485760, backupCount=5  # 10MB per file
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def set_log_level(level: Union[int, str]):
    """
    Apply *level* to every logger built by ``setup_logger``.

    Args:
        level: Numeric level or a name such as ``"DEBUG"``

    Raises:
        ValueError: unknown level name
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    for name in _configured:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def log_performance(func):
    """Decorator to log execution time of sync and async callables"""

    def _done(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{func.__name__} failed: {e}",
                    extra={"duration_ms": _done(start_time)},
                    exc_info=True,
                )
                raise
            logger.debug(
                f"{func.__name__} completed successfully",
                extra={"duration_ms": _done(start_time)},
            )
            return result

        return async_wrapper

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(
                f"{func.__name__} failed: {e}",
                extra={"duration_ms": _done(start_time)},
                exc_info=True,
            )
            raise
        logger.debug(
            f"{func.__name__} completed successfully",
            extra={"duration_ms": _done(start_time)},
        )
        return result

    return wrapper


class Logger:
    """Convenience wrapper for logger instances"""

    def __init__(self, name: str, level: Optional[int] = None):
        self.logger = setup_logger(name, level)
        self.name = name

    def info(self, message: str, **kwargs):
        self.logger.info(message, extra=kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, extra=kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        self.logger.error(message, extra=kwargs, exc_info=exc_info)

    def performance(self, duration_ms: float, operation: str, **kwargs):
        """Log performance metric"""
        self.logger.info(
            f"Performance: {operation}",
            extra={"duration_ms": duration_ms, **kwargs},
        )
