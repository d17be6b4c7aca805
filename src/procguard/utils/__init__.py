"""Shared utility functions."""

from .error_handling import log_and_ignore
from .rich_logging import ExecutionContextLogger, ExecutionLogFormatter, setup_logging

__all__ = [
    # Error handling
    "log_and_ignore",
    # Logging
    "ExecutionContextLogger",
    "ExecutionLogFormatter",
    "setup_logging",
]
