"""Error types and user-facing error translation."""

from .exceptions import ExecutionIOError, ProcGuardError
from .translator import ErrorTranslator, UserFriendlyError

__all__ = ["ExecutionIOError", "ProcGuardError", "ErrorTranslator", "UserFriendlyError"]
