"""Process supervision: spawning, output capture, deadlines and tree termination."""

from .channel import EventChannel, EventSender
from .escalation import SLEEP_STEP, signal_tree, terminate_tree, terminate_tree_sync
from .guard import TimeoutGuard
from .multiplexer import OutputMultiplexer
from .self_termination import schedule_self_termination
from .signals import (
    PosixSignalBackend,
    SignalBackend,
    WindowsSignalBackend,
    get_signal_backend,
)
from .streaming import OutputStream, spawn_streaming
from .supervisor import ProcessSupervisor, execute
from .tree import ProcessTreeSnapshot, descendants, snapshot_tree

__all__ = [
    "EventChannel",
    "EventSender",
    "SLEEP_STEP",
    "signal_tree",
    "terminate_tree",
    "terminate_tree_sync",
    "TimeoutGuard",
    "OutputMultiplexer",
    "schedule_self_termination",
    "PosixSignalBackend",
    "SignalBackend",
    "WindowsSignalBackend",
    "get_signal_backend",
    "OutputStream",
    "spawn_streaming",
    "ProcessSupervisor",
    "execute",
    "ProcessTreeSnapshot",
    "descendants",
    "snapshot_tree",
]
