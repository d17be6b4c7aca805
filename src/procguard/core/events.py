"""Events exchanged between execution tasks and their consumer."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class ExecutionState(str, Enum):
    """Control loop state."""
    RUNNING = "running"
    FINISHED = "finished"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass(frozen=True)
class Finished:
    """Child exited on its own."""
    code: int


@dataclass(frozen=True)
class Terminated:
    """Deadline expired; the supervisor is killing the tree."""


@dataclass(frozen=True)
class StdoutLine:
    text: str


@dataclass(frozen=True)
class StderrLine:
    text: str


@dataclass(frozen=True)
class IOFailure:
    """A spawn, read or wait error inside one of the execution tasks."""
    error: BaseException
    stage: str = "read"


ExecutionEvent = Union[Finished, Terminated, StdoutLine, StderrLine, IOFailure]


class OutputKind(str, Enum):
    """Frame kinds produced by a streaming execution."""
    STDOUT = "stdout"
    STDERR = "stderr"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class OutputEvent:
    """One frame of a streaming execution."""
    kind: OutputKind
    line: Optional[str] = None
    code: Optional[int] = None  # Set only on the TERMINATED frame

    @classmethod
    def stdout(cls, line: str) -> "OutputEvent":
        return cls(kind=OutputKind.STDOUT, line=line)

    @classmethod
    def stderr(cls, line: str) -> "OutputEvent":
        return cls(kind=OutputKind.STDERR, line=line)

    @classmethod
    def terminated(cls, code: int) -> "OutputEvent":
        return cls(kind=OutputKind.TERMINATED, code=code)


def decode_line(raw: bytes, encoding: str = "utf-8") -> str:
    """Decode one line read from a pipe, dropping its line terminator."""
    text = raw.decode(encoding, errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
        if text.endswith("\r"):
            text = text[:-1]
    return text
