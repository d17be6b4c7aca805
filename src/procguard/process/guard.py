"""Deadline guard for a supervised child."""

import asyncio
import logging
from typing import Optional

from ..core.events import Terminated
from .channel import EventSender
from .escalation import SLEEP_STEP, terminate_tree
from .signals import SignalBackend

logger = logging.getLogger(__name__)


class TimeoutGuard:
    """Cancellable delayed action that kills a process tree on expiry.

    When the deadline passes before :meth:`cancel` is called, the guard
    announces ``Terminated`` on the channel and then runs the kill sequence
    against the child and its descendants.
    """

    def __init__(
        self,
        pid: int,
        timeout: float,
        sender: EventSender,
        grace_period: Optional[float] = None,
        backend: Optional[SignalBackend] = None,
        poll_interval: float = SLEEP_STEP,
    ):
        self.pid = pid
        self.timeout = timeout
        self.grace_period = grace_period
        self._sender = sender
        self._backend = backend
        self._poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"guard-{self.pid}")
        return self._task

    def cancel(self) -> None:
        """Abort the guard, including a kill sequence it may have started."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the guard (including any kill sequence) to finish."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.timeout)
            self._fired = True
            logger.warning(f"pid {self.pid} exceeded its {self.timeout}s deadline, terminating")
            await self._sender.send(Terminated())
        finally:
            self._sender.close()
        await terminate_tree(
            self.pid,
            self.grace_period,
            include_root=True,
            backend=self._backend,
            poll_interval=self._poll_interval,
        )
