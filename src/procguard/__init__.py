"""procguard - supervised subprocess execution with deadlines and tree termination."""

__version__ = "0.1.0"

from .core import (
    CommandDescriptor,
    ExecutionOptions,
    ExecutionResult,
    OutputEvent,
    OutputKind,
    SupervisorConfig,
    load_config,
)
from .errors import ExecutionIOError, ProcGuardError
from .process import (
    OutputStream,
    ProcessSupervisor,
    descendants,
    execute,
    schedule_self_termination,
    signal_tree,
    spawn_streaming,
    terminate_tree,
    terminate_tree_sync,
)

__all__ = [
    "CommandDescriptor",
    "ExecutionOptions",
    "ExecutionResult",
    "OutputEvent",
    "OutputKind",
    "SupervisorConfig",
    "load_config",
    "ExecutionIOError",
    "ProcGuardError",
    "OutputStream",
    "ProcessSupervisor",
    "descendants",
    "execute",
    "schedule_self_termination",
    "signal_tree",
    "spawn_streaming",
    "terminate_tree",
    "terminate_tree_sync",
]
