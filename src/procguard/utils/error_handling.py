"""Helpers for best-effort paths whose failures must not abort an execution."""

import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


def log_and_ignore(
    error: BaseException,
    message: str,
    *,
    logger_instance: Optional[LoggerLike] = None,
    level: int = logging.WARNING,
) -> None:
    """
    Record ``error`` under ``message`` and carry on.

    The traceback is attached only when the logger is at DEBUG, so routine
    failures (a child closing its stdin early) stay one line long.

    Args:
        error: The exception that was caught
        message: What was being attempted
        logger_instance: Logger or adapter to use, defaults to this module's logger
        level: Log level (default: WARNING)
    """
    log = logger_instance or logger
    log.log(level, f"{message}: {error}", exc_info=error if log.isEnabledFor(logging.DEBUG) else None)
