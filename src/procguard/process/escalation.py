"""Graceful-then-forceful termination of whole process trees."""

import asyncio
import logging
from typing import Any, Dict, Optional

from .signals import PosixSignalBackend, SignalBackend, get_signal_backend

logger = logging.getLogger(__name__)

SLEEP_STEP = 0.1


def _attach_tree(backend: SignalBackend, pid: int, include_root: bool) -> Dict[int, Any]:
    """Resolve a fresh snapshot of the tree and bind a handle to each member."""
    pids = backend.enumerate_descendants(pid)
    if include_root:
        pids.add(pid)
    handles: Dict[int, Any] = {}
    for member in pids:
        handle = backend.attach(member)
        if handle is not None:
            handles[member] = handle
    return handles


def _force_all(backend: SignalBackend, handles: Dict[int, Any]) -> int:
    delivered = 0
    for handle in handles.values():
        if backend.force_terminate(handle):
            delivered += 1
    return delivered


async def terminate_tree(
    pid: int,
    grace_period: Optional[float] = None,
    include_root: bool = True,
    *,
    backend: Optional[SignalBackend] = None,
    poll_interval: float = SLEEP_STEP,
) -> None:
    """
    Terminate ``pid``'s descendants (and ``pid`` itself if ``include_root``).

    With a grace period, every member first gets a graceful signal; the wait
    ends when the period elapses or as soon as the root has exited, and then
    a fresh snapshot plus the first one's survivors are force-killed. Without
    one, members are force-killed straight away. Processes that vanish along
    the way are ignored.

    Args:
        pid: Root of the tree
        grace_period: Seconds between graceful and forced termination
        include_root: Also terminate the root process
        backend: Signal capabilities (defaults to the platform backend)
        poll_interval: Liveness poll step during the grace period
    """
    backend = backend or get_signal_backend()
    targets = _attach_tree(backend, pid, include_root)

    if grace_period is None or not backend.supports_graceful:
        delivered = _force_all(backend, targets)
        logger.debug(f"Force-terminated {delivered}/{len(targets)} process(es) in tree of {pid}")
        return

    for handle in targets.values():
        backend.graceful_terminate(handle)
    if not targets:
        return

    logger.debug(
        f"Sent graceful termination to {len(targets)} process(es) in tree of {pid}, "
        f"waiting up to {grace_period}s"
    )
    # The root keeps spawning while it lives, so only its exit ends the wait early
    root = targets.get(pid) or backend.attach(pid)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + grace_period
    while root is not None and loop.time() < deadline:
        await asyncio.sleep(min(poll_interval, max(deadline - loop.time(), 0)))
        if not backend.is_alive(root):
            break

    # Children of an exited root get reparented, so keep the first snapshot too
    survivors = {p: h for p, h in targets.items() if backend.is_alive(h)}
    survivors.update(_attach_tree(backend, pid, include_root))
    if survivors:
        logger.warning(
            f"{len(survivors)} process(es) in tree of {pid} survived the grace period, force-killing"
        )
        _force_all(backend, survivors)


def terminate_tree_sync(
    pid: int,
    include_root: bool = True,
    *,
    backend: Optional[SignalBackend] = None,
) -> None:
    """Force-kill a process tree in a single pass, without waiting."""
    backend = backend or get_signal_backend()
    _force_all(backend, _attach_tree(backend, pid, include_root))


def signal_tree(
    pid: int,
    sig: int,
    include_root: bool = True,
    *,
    backend: Optional[PosixSignalBackend] = None,
) -> int:
    """Deliver ``sig`` to every member of a process tree (POSIX only).

    Returns the number of processes the signal was delivered to.
    """
    backend = backend or get_signal_backend()
    if not isinstance(backend, PosixSignalBackend):
        raise NotImplementedError("Arbitrary signals are only supported on POSIX platforms")
    delivered = 0
    for handle in _attach_tree(backend, pid, include_root).values():
        if backend.send_signal(handle, sig):
            delivered += 1
    return delivered
