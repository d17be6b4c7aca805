"""Exceptions raised by the supervision engine."""

from typing import Optional


class ProcGuardError(Exception):
    """Base class for procguard errors."""


class ExecutionIOError(ProcGuardError):
    """Spawning, reading from or waiting on a child failed.

    Deadline expiry is never reported through this exception; it is a
    regular result with no exit code.
    """

    def __init__(self, program: str, stage: str, cause: Optional[BaseException] = None):
        self.program = program
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{stage} failed for '{program}'{detail}")

    @property
    def errno(self) -> Optional[int]:
        return getattr(self.cause, "errno", None)
