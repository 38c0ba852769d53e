"""Error types and logging setup for cluster debug port management."""

import logging
from enum import Enum
from typing import Any, Optional, Union

from pythonjsonlogger import jsonlogger


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    CONFIG = "CONFIG"
    PORT = "PORT"
    FORK = "FORK"
    EXIT = "EXIT"
    GENERAL = "GEN"


class ClusterDebugError(Exception):
    """Base class for all cluster debug errors."""


class ConfigurationError(ClusterDebugError):
    """Environment configuration is present but invalid."""


class PortExhaustedError(ClusterDebugError):
    """No free debug port is left below the scan limit."""

    def __init__(self, base_port: int, max_port: int):
        self.base_port = base_port
        self.max_port = max_port
        super().__init__(
            f"No free debug port in range {base_port}-{max_port}"
        )


class LeaseConflictError(ClusterDebugError):
    """A lease would give one port to two workers or two ports to one worker."""


class WorkerSpawnError(ClusterDebugError):
    """The cluster could not start a worker process."""


def setup_logger(
    name: str = "cluster_debug",
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Set up and configure the logger with optional JSON file logging.

    Args:
        name: Logger name
        level: Console log level
        log_file: Path of the structured error log (skipped if None)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setLevel(logging.ERROR)
            json_formatter = jsonlogger.JsonFormatter(
                "%(asctime)s %(name)s %(levelname)s %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
            file_handler.setFormatter(json_formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            # If we can't write to the log file, just use console
            logger.warning(f"Cannot open log file {log_file}: {e}")

    return logger


def log_and_format_error(
    function_name: str,
    error: Exception,
    category: Optional[Union[ErrorCategory, str]] = None,
    user_message: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    **context: Any,
) -> str:
    """Centralized error reporting.

    Logs the error with full context and returns a short message carrying
    a stable error code.

    Args:
        function_name: Name of the function where error occurred
        error: The exception that was raised
        category: Error category for the error code
        user_message: Optional custom message
        logger: Logger to report through (package logger if None)
        **context: Additional context to log (e.g., worker_id=3)

    Returns:
        Message with error code
    """
    if category is None:
        prefix_str = ErrorCategory.GENERAL.value
    elif isinstance(category, ErrorCategory):
        prefix_str = category.value
    else:
        prefix_str = str(category)

    # Stable across runs, unlike hash() of a str
    code_num = sum(ord(c) for c in function_name) % 1000
    error_code = f"{prefix_str}-ERR-{code_num:03d}"

    context_str = ", ".join(f"{k}={v}" for k, v in context.items())

    log_message = f"Error in {function_name}"
    if context_str:
        log_message += f" ({context_str})"
    log_message += f" - Code: {error_code}: {error}"

    (logger or logging.getLogger("cluster_debug")).error(
        log_message, exc_info=error
    )

    if user_message:
        return f"{user_message} (code: {error_code})"

    return f"An error occurred (code: {error_code}). Check logs for details."
