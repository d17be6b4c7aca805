"""Process-tree discovery over the live process table."""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Set

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessTreeSnapshot:
    """Descendants of ``root_pid`` as observed at ``taken_at``.

    Snapshots are never refreshed; take a new one for every kill attempt.
    """
    root_pid: int
    pids: FrozenSet[int] = field(default_factory=frozenset)
    taken_at: float = 0.0

    def __len__(self) -> int:
        return len(self.pids)

    def __contains__(self, pid: object) -> bool:
        return pid in self.pids


def _children_by_parent() -> Dict[int, List[int]]:
    """Read (pid, ppid) pairs for every visible process."""
    children: Dict[int, List[int]] = defaultdict(list)
    # process_iter skips processes that vanish mid-iteration
    for proc in psutil.process_iter(["pid", "ppid"]):
        info = proc.info
        ppid = info.get("ppid")
        if ppid is None:
            continue
        children[ppid].append(info["pid"])
    return children


def descendants(root_pid: int) -> Set[int]:
    """Return the pids of every transitive child of ``root_pid``.

    The root itself is not included. Processes that exit or appear while the
    table is being read are simply missing from (or present in) the result.
    """
    children = _children_by_parent()
    found: Set[int] = set()
    worklist = [root_pid]
    while worklist:
        current = worklist.pop()
        for child in children.get(current, ()):
            # pid 0 reports itself as its own parent on some platforms
            if child == root_pid or child in found:
                continue
            found.add(child)
            worklist.append(child)
    logger.debug(f"Resolved {len(found)} descendant(s) of pid {root_pid}")
    return found


def snapshot_tree(root_pid: int) -> ProcessTreeSnapshot:
    """Take a timestamped descendant snapshot of ``root_pid``."""
    return ProcessTreeSnapshot(
        root_pid=root_pid,
        pids=frozenset(descendants(root_pid)),
        taken_at=time.time(),
    )
