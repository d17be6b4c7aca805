"""Live, unaggregated output from a long-running child."""

import asyncio
import logging
from typing import Iterable, Optional

from ..core.command import CommandDescriptor, ExecutionOptions
from ..core.config import SupervisorConfig
from ..core.events import OutputEvent
from .channel import EventChannel, EventSender
from .escalation import terminate_tree
from .multiplexer import pump_lines, write_input
from .signals import SignalBackend
from .supervisor import spawn_child

logger = logging.getLogger(__name__)


async def _pump_process(
    process: asyncio.subprocess.Process,
    channel: EventChannel,
    sender: EventSender,
    writer: Optional[asyncio.Task],
    encoding: str,
) -> None:
    """Forward output until exit, then emit the terminal frame last.

    ``sender`` is registered by the caller so the channel never looks
    closed before this task gets to run.
    """
    stdout_sender = channel.sender()
    stderr_sender = channel.sender()
    try:
        readers = [
            asyncio.create_task(
                pump_lines(process.stdout, stdout_sender, OutputEvent.stdout, encoding, report_failure=False)
            ),
            asyncio.create_task(
                pump_lines(process.stderr, stderr_sender, OutputEvent.stderr, encoding, report_failure=False)
            ),
        ]
        try:
            code = await process.wait()
            if writer is not None and not writer.done():
                writer.cancel()
            await asyncio.gather(*readers)
        finally:
            for reader in readers:
                reader.cancel()
        await sender.send(OutputEvent.terminated(code))
    finally:
        sender.close()


class OutputStream:
    """Async iterator over the frames of one streaming execution.

    The last frame is always ``OutputKind.TERMINATED`` carrying the exit
    code, unless the stream is closed early. Closing the stream while the
    child still runs terminates the child's process tree.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        channel: EventChannel,
        pump: asyncio.Task,
        grace_period: Optional[float] = None,
        backend: Optional[SignalBackend] = None,
    ):
        self._process = process
        self._channel = channel
        self._pump = pump
        self._grace_period = grace_period
        self._backend = backend
        self._closed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def __aiter__(self) -> "OutputStream":
        return self

    async def __anext__(self) -> OutputEvent:
        if self._closed:
            raise StopAsyncIteration
        event = await self._channel.recv()
        if event is None:
            raise StopAsyncIteration
        return event

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._process.returncode is None:
            logger.info(f"Output stream closed while pid {self.pid} still runs, terminating")
            await terminate_tree(self.pid, self._grace_period, include_root=True, backend=self._backend)
        self._pump.cancel()
        try:
            await self._pump
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "OutputStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


async def spawn_streaming(
    program: str,
    args: Iterable[str] = (),
    options: Optional[ExecutionOptions] = None,
    *,
    config: Optional[SupervisorConfig] = None,
    backend: Optional[SignalBackend] = None,
) -> OutputStream:
    """
    Spawn ``program`` and return a live stream of its output frames.

    There is no deadline; close the stream to stop the child early. Each
    call spawns a new process.

    Raises:
        ExecutionIOError: If the program cannot be spawned
    """
    config = config or SupervisorConfig()
    options = options or ExecutionOptions(grace_period=config.default_grace_period)
    descriptor = CommandDescriptor.build(program, args, config.default_timeout, options)

    process = await spawn_child(descriptor, limit=config.stream_limit)
    logger.debug(f"Streaming {descriptor.program} (pid {process.pid})")

    channel: EventChannel = EventChannel(config.stream_channel_capacity)
    writer: Optional[asyncio.Task] = None
    if descriptor.input_data is not None:
        writer = asyncio.create_task(write_input(process.stdin, descriptor.input_data))
    pump = asyncio.create_task(
        _pump_process(process, channel, channel.sender(), writer, config.encoding),
        name=f"stream-{process.pid}",
    )
    return OutputStream(process, channel, pump, grace_period=descriptor.grace_period, backend=backend)
