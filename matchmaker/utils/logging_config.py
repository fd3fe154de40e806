"""
Logging setup for the Matchmaker service

Every logger lives under the "matchmaker." namespace so the whole service can
be tuned from one place. Matchmaking runs are long and mostly unattended, so
file output keeps a separate errors-only log next to the main one.
"""
import functools
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

LOG_FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-34s | %(funcName)-20s:%(lineno)-4d | %(message)s",
}

# ENVIRONMENT -> (level, file output, format); None level means LOG_LEVEL
ENVIRONMENT_PROFILES = {
    "production": (None, True, "detailed"),
    "development": ("DEBUG", True, "detailed"),
    "testing": ("WARNING", False, "simple"),
}

_MAX_LOG_BYTES = 10 * 1024 * 1024


def _rotating_file(filename: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(filename),
        "maxBytes": _MAX_LOG_BYTES,
        "backupCount": 5,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed",
) -> None:
    """
    Install the dictConfig for the service.

    Args:
        level: Root logging level
        enable_console: Log to stdout
        enable_file: Log to LOG_DIR (default ``logs/``), one file per day
        format_style: Console format, ``simple`` or ``detailed``
    """
    handlers: Dict[str, Any] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": format_style if format_style in LOG_FORMATS else "detailed",
            "stream": "ext://sys.stdout",
        }

    log_file = None
    if enable_file:
        log_dir = Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        day = datetime.now().strftime("%Y%m%d")
        log_file = log_dir / f"matchmaker_{day}.log"
        handlers["file"] = _rotating_file(log_file, level)
        handlers["error_file"] = _rotating_file(log_dir / f"matchmaker_errors_{day}.log", "ERROR")

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for name, fmt in LOG_FORMATS.items()
        },
        "handlers": handlers,
        "loggers": {
            "": {"level": level, "handlers": list(handlers), "propagate": False},
            "uvicorn": {"level": "INFO", "handlers": [h for h in handlers if h != "error_file"], "propagate": False},
            # heartbeats and server selection at DEBUG
            "pymongo": {"level": "WARNING", "propagate": True},
        },
    })

    logger = logging.getLogger("matchmaker.logging")
    logger.info(f"Logging configured - Level: {level}, Console: {enable_console}, File: {log_file or 'off'}")


def configure_for_environment():
    """Pick a logging profile from ENVIRONMENT (development by default)"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    env_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level, enable_file, format_style = ENVIRONMENT_PROFILES.get(environment, (None, True, "detailed"))
    setup_logging(level=level or env_level, enable_file=enable_file, format_style=format_style)


def get_logger(name: str) -> logging.Logger:
    """Logger under the "matchmaker." namespace (usually called with __name__)"""
    if name.startswith("matchmaker."):
        return logging.getLogger(name)
    return logging.getLogger(f"matchmaker.{name}")


def log_function_call(func):
    """Debug-log entry and timing of a coroutine; errors are logged and re-raised"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.time()
        logger.debug(f"Entering {func.__name__} with kwargs={list(kwargs.keys())}")
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__name__} after {time.time() - start_time:.3f}s: {e}")
            raise
        logger.debug(f"Completed {func.__name__} in {time.time() - start_time:.3f}s")
        return result

    return wrapper


class PerformanceMonitor:
    """Times a block; slow blocks log a warning, failures an error"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.start_time = None
        self.elapsed_ms = 0.0

    def __enter__(self):
        self.start_time = time.time()
        self.logger.debug(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.time() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation_name} took {self.elapsed_ms:.2f}ms (threshold {self.threshold_ms}ms)"
            )
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
