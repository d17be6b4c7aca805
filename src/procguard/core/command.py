"""Command descriptors and execution results."""

import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ExecutionOptions:
    """Optional knobs for a single execution."""
    env: Mapping[str, str] = field(default_factory=dict)  # Merged onto the inherited environment
    input_data: Optional[bytes] = None  # Written to stdin, then stdin is closed
    grace_period: Optional[float] = None  # None = force-kill without a graceful phase

    def with_env(self, name: str, value: str) -> "ExecutionOptions":
        merged = dict(self.env)
        merged[name] = value
        return replace(self, env=merged)

    def with_input(self, data: bytes) -> "ExecutionOptions":
        return replace(self, input_data=bytes(data))

    def with_grace_period(self, seconds: Optional[float]) -> "ExecutionOptions":
        return replace(self, grace_period=seconds)


@dataclass(frozen=True)
class CommandDescriptor:
    """Immutable description of a command to execute."""
    program: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    input_data: Optional[bytes] = None
    timeout: float = 60.0
    grace_period: Optional[float] = None

    @classmethod
    def build(
        cls,
        program: str,
        args: Iterable[str] = (),
        timeout: float = 60.0,
        options: Optional[ExecutionOptions] = None,
    ) -> "CommandDescriptor":
        """Build a descriptor from caller-facing arguments."""
        options = options or ExecutionOptions()
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if options.grace_period is not None and options.grace_period < 0:
            raise ValueError(f"grace_period must be >= 0, got {options.grace_period}")
        return cls(
            program=os.fspath(program),
            args=tuple(str(a) for a in args),
            env=MappingProxyType(dict(options.env)),
            input_data=options.input_data,
            timeout=float(timeout),
            grace_period=options.grace_period,
        )

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    def build_env(self) -> Optional[Dict[str, str]]:
        """Environment for the child, or None to inherit unchanged."""
        if not self.env:
            return None
        env = os.environ.copy()
        env.update(self.env)
        return env


@dataclass
class ExecutionResult:
    """Outcome of a supervised execution.

    ``exit_code`` is None only when the supervisor terminated the process.
    """
    exit_code: Optional[int] = None
    stdout: List[str] = field(default_factory=list)
    stderr: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def terminated(self) -> bool:
        return self.exit_code is None
