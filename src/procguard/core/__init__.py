"""Core data model and configuration."""

from .command import CommandDescriptor, ExecutionOptions, ExecutionResult
from .config import SupervisorConfig, clear_config_cache, load_config
from .events import (
    ExecutionEvent,
    ExecutionState,
    Finished,
    IOFailure,
    OutputEvent,
    OutputKind,
    StderrLine,
    StdoutLine,
    Terminated,
)

__all__ = [
    "CommandDescriptor",
    "ExecutionOptions",
    "ExecutionResult",
    "SupervisorConfig",
    "clear_config_cache",
    "load_config",
    "ExecutionEvent",
    "ExecutionState",
    "Finished",
    "IOFailure",
    "OutputEvent",
    "OutputKind",
    "StderrLine",
    "StdoutLine",
    "Terminated",
]
