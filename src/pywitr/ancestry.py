"""Ancestry walking: from a PID up to the root of the process tree."""

import logging

from pywitr.errors import NotFound
from pywitr.models import AncestryChain, Process
from pywitr.platforms import Platform

logger = logging.getLogger(__name__)


def walk(pid: int, platform: Platform) -> AncestryChain:
    """
    Follow parent links from `pid` to the root.

    Returns the chain outermost ancestor first, target last. If a process
    vanishes between hops the partial chain is returned; if the target
    itself cannot be read the chain is empty.
    """
    chain: list[Process] = []
    visited: set[int] = set()
    current = pid

    while current > 0:
        try:
            proc = platform.read_process(current)
        except NotFound:
            logger.debug("ancestry walk stopped at pid %d: process gone", current)
            break
        chain.append(proc)
        visited.add(current)
        if not proc.has_parent:
            break
        if proc.ppid in visited:
            logger.debug("ancestry walk found a cycle at pid %d", proc.ppid)
            break
        current = proc.ppid

    chain.reverse()
    return tuple(chain)


def format_chain(chain: AncestryChain, arrow: str = " → ") -> str:
    """One-line rendering: 'systemd (pid 1) → sshd (pid 812) → bash (pid 9001)'."""
    return arrow.join(f"{proc.command} (pid {proc.pid})" for proc in chain)
