"""Line readers that fan a child's stdout/stderr into one event channel."""

import asyncio
import logging
from typing import Callable, Optional, Tuple

from ..core.events import IOFailure, StderrLine, StdoutLine, decode_line
from ..utils.error_handling import log_and_ignore
from .channel import EventChannel, EventSender

logger = logging.getLogger(__name__)


async def pump_lines(
    stream: asyncio.StreamReader,
    sender: EventSender,
    make_event: Callable[[str], object],
    encoding: str = "utf-8",
    report_failure: bool = True,
) -> None:
    """Forward every line of ``stream`` to ``sender`` until end of input.

    A read failure is sent as ``IOFailure`` (or only logged when
    ``report_failure`` is False) and ends this reader.
    """
    try:
        while True:
            try:
                raw = await stream.readline()
            except (OSError, ValueError) as e:
                if report_failure:
                    await sender.send(IOFailure(e, stage="read"))
                else:
                    log_and_ignore(e, "Output stream read failed", logger_instance=logger)
                return
            if not raw:
                return
            await sender.send(make_event(decode_line(raw, encoding)))
    finally:
        sender.close()


async def write_input(stdin: asyncio.StreamWriter, data: bytes) -> None:
    """Write ``data`` to the child's stdin and close it.

    The child may exit before it consumes everything; that is logged and
    otherwise ignored.
    """
    try:
        stdin.write(data)
        await stdin.drain()
        stdin.close()
        await stdin.wait_closed()
    except (BrokenPipeError, ConnectionResetError) as e:
        log_and_ignore(e, "Unable to write to stdin", logger_instance=logger)
    except OSError as e:
        log_and_ignore(e, "Unable to flush stdin", logger_instance=logger)


class OutputMultiplexer:
    """Starts one reader task per output stream of a child process."""

    def __init__(self, channel: EventChannel, encoding: str = "utf-8"):
        self.channel = channel
        self.encoding = encoding
        self.stdout_task: Optional[asyncio.Task] = None
        self.stderr_task: Optional[asyncio.Task] = None

    def start(self, process: asyncio.subprocess.Process) -> Tuple[asyncio.Task, asyncio.Task]:
        self.stdout_task = asyncio.create_task(
            pump_lines(process.stdout, self.channel.sender(), StdoutLine, self.encoding),
            name=f"stdout-{process.pid}",
        )
        self.stderr_task = asyncio.create_task(
            pump_lines(process.stderr, self.channel.sender(), StderrLine, self.encoding),
            name=f"stderr-{process.pid}",
        )
        return self.stdout_task, self.stderr_task

    @property
    def tasks(self) -> Tuple[asyncio.Task, ...]:
        return tuple(t for t in (self.stdout_task, self.stderr_task) if t is not None)
