"""
Centralized Logging Configuration with File Persistence

Features:
- Unified log format across all modules
- Supports LOG_LEVEL environment variable (DEBUG/INFO/WARNING/ERROR)
- Integrates Trace ID for request tracing
- Outputs to stdout for container log collection
- File persistence with daily rotation (30 days retention)

Usage:
    from tradezone.core.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# Context variable for request trace ID (safe across concurrent async requests)
trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


class TraceIDFilter(logging.Filter):
    """
    Logging filter that injects trace_id into log records.

    Startup logs and background code have no request, so they get "-".
    """
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = trace_id_var.get() or "-"
        return True


def setup_logging(log_level: str = "INFO", log_dir: Optional[Union[str, Path]] = None) -> None:
    """
    Initialize logging for the entire application.
    Should be called once at startup before any other app imports.

    Args:
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_dir: Directory for the rotating log file; None disables file output

    Note:
    - This function configures the root logger
    - All child loggers (created via get_logger) inherit this config
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Format: [timestamp] [LEVEL] [trace_id] [module:lineno] - message
    log_format = (
        "[%(asctime)s] [%(levelname)s] [%(trace_id)s] "
        "[%(name)s:%(lineno)d] - %(message)s"
    )
    date_format = "%Y-%m-%d %H:%M:%S"

    formatter = logging.Formatter(log_format, datefmt=date_format)

    # === Console Handler ===
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(TraceIDFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates on reload
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # === File Handler with Daily Rotation ===
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            filename=log_path / "backend.log",
            when="midnight",           # Rotate at midnight
            interval=1,                # Every 1 day
            backupCount=30,            # Keep 30 days of logs
            encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(TraceIDFilter())
        file_handler.suffix = "%Y-%m-%d"  # backend.log.2026-01-29
        root_logger.addHandler(file_handler)

    # === Suppress Noisy Third-Party Loggers ===
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized: level={log_level}, log_dir={log_dir}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given module.

    Args:
        name: Usually __name__ to get module-specific logger

    Returns:
        Configured logger instance

    Usage:
        logger = get_logger(__name__)
        logger.info("Deposit created", extra={"user_id": "u-1"})
        logger.exception("Unexpected error")  # Includes stack trace
    """
    return logging.getLogger(name)
