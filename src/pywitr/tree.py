"""Descendant tree building over a process snapshot."""

from collections import defaultdict
from collections.abc import Iterable

from pywitr.errors import InvalidTarget
from pywitr.models import Process, ProcessTree
from pywitr.platforms import Platform


def index_by_parent(processes: Iterable[Process]) -> dict[int, list[Process]]:
    """Map each PPID to its direct children, sorted by ascending PID."""
    index: dict[int, list[Process]] = defaultdict(list)
    for proc in processes:
        index[proc.ppid].append(proc)
    for children in index.values():
        children.sort(key=lambda p: p.pid)
    return dict(index)


def children_of(pid: int, processes: Iterable[Process]) -> list[Process]:
    """Direct children of `pid`, by ascending PID."""
    return sorted((p for p in processes if p.ppid == pid and p.pid != pid), key=lambda p: p.pid)


def build_tree(root: Process, processes: Iterable[Process]) -> ProcessTree:
    """
    Build the descendant tree of `root`.

    A PID seen twice during expansion (cyclic parent data) is emitted as a
    childless leaf the second time.
    """
    index = index_by_parent(processes)
    visited: set[int] = set()

    def expand(proc: Process) -> ProcessTree:
        if proc.pid in visited:
            return ProcessTree(process=proc)
        visited.add(proc.pid)
        children = tuple(expand(child) for child in index.get(proc.pid, ()))
        return ProcessTree(process=proc, children=children)

    return expand(root)


def resolve_children(pid: int, platform: Platform) -> list[Process]:
    """Direct children of a live process."""
    if pid <= 0:
        raise InvalidTarget(f"invalid pid: {pid}")
    return children_of(pid, platform.snapshot())


def resolve_descendants(root: Process, platform: Platform) -> ProcessTree:
    """Full descendant tree of a live process."""
    if root.pid <= 0:
        raise InvalidTarget(f"invalid pid: {root.pid}")
    return build_tree(root, platform.snapshot())
