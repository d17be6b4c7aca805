"""Platform signal capabilities used to terminate processes."""

import logging
import os
import signal
from abc import ABC, abstractmethod
from typing import Any, Optional, Set

import psutil

from . import tree

logger = logging.getLogger(__name__)


class SignalBackend(ABC):
    """Graceful/forced termination and descendant enumeration for one platform.

    Handles returned by :meth:`attach` stay bound to the process they were
    created for, so a pid recycled by the OS is never signalled by mistake.
    """

    supports_graceful: bool = False

    def enumerate_descendants(self, root_pid: int) -> Set[int]:
        return tree.descendants(root_pid)

    def attach(self, pid: int) -> Optional[Any]:
        """Return a handle for ``pid``, or None if it no longer exists."""
        try:
            return psutil.Process(pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None

    def is_alive(self, handle: Any) -> bool:
        try:
            return handle.is_running() and handle.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return True

    @abstractmethod
    def graceful_terminate(self, handle: Any) -> bool:
        """Ask the process to exit. Returns False if it could not be delivered."""

    @abstractmethod
    def force_terminate(self, handle: Any) -> bool:
        """Kill the process unconditionally. Returns False if it could not be delivered."""

    def kill_process_group(self, pgid: int) -> bool:
        """Kill every member of process group ``pgid``. False where groups are unsupported."""
        return False


class PosixSignalBackend(SignalBackend):
    """SIGTERM for graceful termination, SIGKILL for forced."""

    supports_graceful = True

    def send_signal(self, handle: Any, sig: int) -> bool:
        try:
            handle.send_signal(sig)
            return True
        except psutil.NoSuchProcess:
            logger.debug(f"pid {handle.pid} already gone, signal {sig} not delivered")
            return False
        except psutil.AccessDenied:
            logger.debug(f"Not permitted to signal pid {handle.pid}")
            return False

    def graceful_terminate(self, handle: Any) -> bool:
        return self.send_signal(handle, signal.SIGTERM)

    def force_terminate(self, handle: Any) -> bool:
        return self.send_signal(handle, signal.SIGKILL)

    def kill_process_group(self, pgid: int) -> bool:
        try:
            os.killpg(pgid, signal.SIGKILL)
            return True
        except (ProcessLookupError, PermissionError) as e:
            logger.debug(f"Process group {pgid} not killed: {e}")
            return False


class WindowsSignalBackend(SignalBackend):
    """TerminateProcess only; there is no interceptable termination request."""

    supports_graceful = False

    def graceful_terminate(self, handle: Any) -> bool:
        return self.force_terminate(handle)

    def force_terminate(self, handle: Any) -> bool:
        try:
            handle.kill()
            return True
        except psutil.NoSuchProcess:
            logger.debug(f"pid {handle.pid} already gone")
            return False
        except psutil.AccessDenied:
            logger.debug(f"Not permitted to terminate pid {handle.pid}")
            return False


_backend: Optional[SignalBackend] = None


def get_signal_backend() -> SignalBackend:
    """Return the backend for the running platform (created once)."""
    global _backend
    if _backend is None:
        _backend = WindowsSignalBackend() if os.name == "nt" else PosixSignalBackend()
    return _backend
