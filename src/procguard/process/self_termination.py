"""Forced termination of the current process after a delay."""

import logging
import os
import threading
from typing import Optional

from rich.console import Console

from .signals import SignalBackend, get_signal_backend

logger = logging.getLogger(__name__)

_console = Console(stderr=True)


def _terminate_self(backend: SignalBackend) -> None:
    handle = backend.attach(os.getpid())
    if handle is not None:
        backend.force_terminate(handle)


def schedule_self_termination(
    delay: float,
    warn: bool = False,
    *,
    backend: Optional[SignalBackend] = None,
) -> threading.Timer:
    """Force-kill the calling process after ``delay`` seconds.

    Runs on a daemon timer thread, independent of any event loop. The
    returned timer can be cancelled before it fires.
    """
    if warn:
        _console.print(f"[bold red]Killing process in {delay}s[/]")
    backend = backend or get_signal_backend()
    timer = threading.Timer(delay, _terminate_self, args=(backend,))
    timer.daemon = True
    timer.name = "procguard-self-termination"
    timer.start()
    logger.debug(f"Self-termination of pid {os.getpid()} scheduled in {delay}s")
    return timer
