"""Console logging that tags each record with the supervised program and pid."""

import logging
import sys
import time
from typing import Optional

_PACKAGE_LOGGER = "procguard"

_RESET = "\033[0m"


class ExecutionLogFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [program:pid] message`` with optional ANSI level colors."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors

    @staticmethod
    def _context(record: logging.LogRecord) -> str:
        program = getattr(record, "program", None)
        if not program:
            return ""
        child_pid = getattr(record, "child_pid", None)
        return f"[{program}:{child_pid}] " if child_pid is not None else f"[{program}] "

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8s}"
        if self.use_colors and record.levelno in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelno]}{level}{_RESET}"

        line = f"{self.formatTime(record, self.datefmt)} {level} {self._context(record)}{record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        return time.strftime(datefmt or "%H:%M:%S", time.localtime(record.created))


class ExecutionContextLogger(logging.LoggerAdapter):
    """Adapter bound to one execution.

    The pid is unknown until the child has been spawned; call
    :meth:`bind_pid` once it is.
    """

    def __init__(self, logger: logging.Logger, program: str, child_pid: Optional[int] = None):
        super().__init__(logger, {"program": program})
        self.program = program
        self.child_pid = child_pid

    def bind_pid(self, child_pid: int) -> None:
        self.child_pid = child_pid

    def process(self, msg, kwargs):
        context = {"program": self.program}
        if self.child_pid is not None:
            context["child_pid"] = self.child_pid
        kwargs["extra"] = {**kwargs.get("extra", {}), **context}
        return msg, kwargs


def setup_logging(log_level: str = "INFO", use_colors: Optional[bool] = None) -> logging.Logger:
    """
    Route ``procguard`` logs to stderr through :class:`ExecutionLogFormatter`.

    Safe to call repeatedly: previously installed handlers are closed and
    replaced, never stacked.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Force colors on/off; defaults to whether stderr is a TTY

    Returns:
        The package logger
    """
    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(log_level.upper())

    while logger.handlers:
        stale = logger.handlers[0]
        logger.removeHandler(stale)
        stale.close()

    if use_colors is None:
        isatty = getattr(sys.stderr, "isatty", None)
        use_colors = bool(isatty and isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ExecutionLogFormatter(use_colors=use_colors))
    logger.addHandler(handler)
    return logger
