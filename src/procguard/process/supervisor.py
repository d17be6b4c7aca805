"""Supervised execution of a single child process."""

import asyncio
import logging
import os
from typing import Iterable, List, Optional

from ..core.command import CommandDescriptor, ExecutionOptions, ExecutionResult
from ..core.config import SupervisorConfig
from ..core.events import (
    ExecutionState,
    Finished,
    IOFailure,
    StderrLine,
    StdoutLine,
    Terminated,
)
from ..errors import ExecutionIOError
from ..utils.error_handling import log_and_ignore
from ..utils.rich_logging import ExecutionContextLogger
from .channel import EventChannel, EventSender
from .escalation import terminate_tree, terminate_tree_sync
from .guard import TimeoutGuard
from .multiplexer import OutputMultiplexer, write_input
from .signals import SignalBackend, get_signal_backend

logger = logging.getLogger(__name__)

# Strong references to fire-and-forget cleanup tasks
_background_tasks: set = set()


async def spawn_child(
    descriptor: CommandDescriptor,
    limit: int = 64 * 1024,
) -> asyncio.subprocess.Process:
    """Start the child in a new session with piped output (and stdin when there is input)."""
    stdin = asyncio.subprocess.PIPE if descriptor.input_data is not None else asyncio.subprocess.DEVNULL
    try:
        return await asyncio.create_subprocess_exec(
            descriptor.program,
            *descriptor.args,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=descriptor.build_env(),
            limit=limit,
            # Own process group, so the group id outlives a reaped root
            start_new_session=os.name != "nt",
        )
    except (OSError, ValueError) as e:
        raise ExecutionIOError(descriptor.program, "spawn", e) from e


async def _wait_for_exit(process: asyncio.subprocess.Process, sender: EventSender) -> None:
    try:
        try:
            code = await process.wait()
        except OSError as e:
            await sender.send(IOFailure(e, stage="wait"))
            return
        await sender.send(Finished(code))
    finally:
        sender.close()


def _kill_in_background(pid: int, grace_period: Optional[float], backend: Optional[SignalBackend]) -> None:
    """Start a kill sequence without waiting for it; its errors are only logged."""
    task = asyncio.ensure_future(terminate_tree(pid, grace_period, include_root=True, backend=backend))
    _background_tasks.add(task)

    def _done(t: asyncio.Task) -> None:
        _background_tasks.discard(t)
        if not t.cancelled() and t.exception() is not None:
            log_and_ignore(
                t.exception(),
                f"Background kill of pid {pid} failed",
                logger_instance=logger,
                level=logging.DEBUG,
            )

    task.add_done_callback(_done)


class ProcessSupervisor:
    """
    Runs one command to completion, deadline expiry or IO failure.

    All per-execution tasks (exit waiter, stdout/stderr readers, deadline
    guard, optional stdin writer) report through one bounded channel. The
    control loop in :meth:`run` is its only consumer and the only place
    that decides the outcome.
    """

    def __init__(
        self,
        config: Optional[SupervisorConfig] = None,
        backend: Optional[SignalBackend] = None,
    ):
        self.config = config or SupervisorConfig()
        self.backend = backend

    async def run(self, descriptor: CommandDescriptor) -> ExecutionResult:
        log = ExecutionContextLogger(logger, program=descriptor.program)
        process = await spawn_child(descriptor, limit=self.config.stream_limit)
        log.bind_pid(process.pid)
        log.debug(f"Spawned with timeout={descriptor.timeout}s grace={descriptor.grace_period}")

        loop = asyncio.get_running_loop()
        started = loop.time()
        channel: EventChannel = EventChannel(self.config.event_channel_capacity)

        multiplexer = OutputMultiplexer(channel, encoding=self.config.encoding)
        multiplexer.start(process)
        waiter = asyncio.create_task(
            _wait_for_exit(process, channel.sender()), name=f"wait-{process.pid}"
        )
        guard = TimeoutGuard(
            process.pid,
            descriptor.timeout,
            channel.sender(),
            grace_period=descriptor.grace_period,
            backend=self.backend,
            poll_interval=self.config.poll_interval,
        )
        guard.start()
        writer: Optional[asyncio.Task] = None
        if descriptor.input_data is not None:
            writer = asyncio.create_task(
                write_input(process.stdin, descriptor.input_data), name=f"stdin-{process.pid}"
            )

        others: List[asyncio.Task] = [waiter, *multiplexer.tasks]
        if writer is not None:
            others.append(writer)

        result = ExecutionResult()
        state = ExecutionState.RUNNING
        settled = False
        try:
            while state is ExecutionState.RUNNING:
                event = await channel.recv()
                if event is None:
                    # Every producer ended without a terminal event
                    break
                if isinstance(event, StdoutLine):
                    result.stdout.append(event.text)
                elif isinstance(event, StderrLine):
                    result.stderr.append(event.text)
                elif isinstance(event, Finished):
                    state = ExecutionState.FINISHED
                    guard.cancel()
                    result.exit_code = event.code
                    if writer is not None:
                        writer.cancel()
                    remaining = descriptor.timeout - (loop.time() - started)
                    await self._drain(channel, result, max(remaining, self.config.min_drain_timeout), log)
                    settled = True
                    log.debug(f"Finished with exit code {event.code}")
                elif isinstance(event, Terminated):
                    state = ExecutionState.TERMINATED
                    _cancel(others)
                    await guard.wait()
                    await self._reap(process)
                    settled = True
                    log.info(f"Terminated after {descriptor.timeout}s deadline")
                elif isinstance(event, IOFailure):
                    state = ExecutionState.FAILED
                    guard.cancel()
                    _cancel(others)
                    _kill_in_background(process.pid, descriptor.grace_period, self.backend)
                    settled = True
                    log.warning(f"{event.stage} failure: {event.error}")
                    raise ExecutionIOError(descriptor.program, event.stage, event.error) from event.error
            settled = True
            return result
        finally:
            guard.cancel()
            _cancel(others)
            if not settled:
                # Caller abandoned the execution; nothing may outlive it
                self._kill_abandoned(process, state, log)

    def _kill_abandoned(
        self,
        process: asyncio.subprocess.Process,
        state: ExecutionState,
        log: ExecutionContextLogger,
    ) -> None:
        if process.returncode is None:
            log.warning(f"Execution cancelled while {state.value}, killing process tree")
            terminate_tree_sync(process.pid, include_root=True, backend=self.backend)
            return
        # The root is already reaped and its orphans are no longer its descendants
        backend = self.backend or get_signal_backend()
        if backend.kill_process_group(process.pid):
            log.warning(f"Execution cancelled while {state.value} after exit, killed its process group")

    async def _drain(
        self,
        channel: EventChannel,
        result: ExecutionResult,
        timeout: float,
        log: ExecutionContextLogger,
    ) -> None:
        """Collect lines still in flight until every reader has hit end of input."""

        async def _collect() -> None:
            while True:
                event = await channel.recv()
                if event is None:
                    return
                if isinstance(event, StdoutLine):
                    result.stdout.append(event.text)
                elif isinstance(event, StderrLine):
                    result.stderr.append(event.text)

        try:
            await asyncio.wait_for(_collect(), timeout=timeout)
        except asyncio.TimeoutError:
            # A surviving grandchild still holds the pipes open
            log.warning(f"Output still open {timeout:.1f}s after exit, abandoning readers")

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.reap_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"pid {process.pid} not reaped within {self.config.reap_timeout}s")


def _cancel(tasks: Iterable[asyncio.Task]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()


async def execute(
    program: str,
    args: Iterable[str] = (),
    timeout: Optional[float] = None,
    options: Optional[ExecutionOptions] = None,
    *,
    config: Optional[SupervisorConfig] = None,
    backend: Optional[SignalBackend] = None,
) -> ExecutionResult:
    """
    Run ``program`` with ``args`` under a wall-clock deadline.

    Args:
        program: Executable name or path
        args: Arguments passed to the program
        timeout: Deadline in seconds (defaults to ``config.default_timeout``)
        options: Environment overrides, stdin payload and grace period
        config: Supervisor tunables
        backend: Signal capabilities (defaults to the platform backend)

    Returns:
        ExecutionResult with the exit code (None if the deadline killed the
        process) and the captured stdout/stderr lines.

    Raises:
        ExecutionIOError: If spawning, reading or waiting fails
    """
    config = config or SupervisorConfig()
    if options is None:
        options = ExecutionOptions(grace_period=config.default_grace_period)
    descriptor = CommandDescriptor.build(
        program,
        args,
        timeout if timeout is not None else config.default_timeout,
        options,
    )
    return await ProcessSupervisor(config, backend).run(descriptor)
