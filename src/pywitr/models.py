"""Data models for pywitr."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType


class TargetType(Enum):
    """How the user identified the process."""

    PID = "pid"
    PORT = "port"
    NAME = "name"


@dataclass(slots=True, frozen=True)
class Target:
    """User-supplied identifier, resolved to PIDs by the TargetResolver."""

    type: TargetType
    value: str


@dataclass(slots=True, frozen=True)
class Process:
    """Immutable point-in-time snapshot of one OS process."""

    pid: int
    ppid: int = 0
    command: str = ""
    cmdline: str = ""
    exe: str = ""
    started_at: datetime | None = None
    user: str = ""
    working_dir: str = ""
    listening_ports: tuple[int, ...] = ()
    bind_addresses: tuple[str, ...] = ()  # parallel to listening_ports
    env: tuple[str, ...] | None = None  # None means unavailable, not empty
    service: str = ""
    container: str = ""
    git_repo: str = ""
    git_branch: str = ""
    exe_deleted: bool = False
    cgroup: str = ""

    @property
    def has_parent(self) -> bool:
        """PPID of 0, or equal to the PID itself, means no parent."""
        return self.ppid > 0 and self.ppid != self.pid


# Outermost ancestor first, target last.
AncestryChain = tuple[Process, ...]


class SourceType(Enum):
    """Launch mechanism responsible for a process."""

    CONTAINER = "container"
    SUPERVISOR = "supervisor"
    SYSTEMD = "systemd"
    LAUNCHD = "launchd"
    CRON = "cron"
    SHELL = "shell"
    WINDOWS_SERVICE = "windows_service"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class Source:
    """Classification verdict for an ancestry chain."""

    type: SourceType
    name: str = ""
    description: str = ""
    unit_file: str = ""
    confidence: float = 0.0
    details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only copy of the caller's evidence
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))


@dataclass(slots=True, frozen=True)
class ProcessTree:
    """A process and its descendants, children ordered by ascending PID."""

    process: Process
    children: tuple["ProcessTree", ...] = ()

    def walk(self):
        """Yield (depth, process) pairs in depth-first order."""
        stack = [(0, self)]
        while stack:
            depth, node = stack.pop()
            yield depth, node.process
            for child in reversed(node.children):
                stack.append((depth + 1, child))
