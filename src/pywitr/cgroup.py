"""Control-group parsing for Linux processes."""

import re
from dataclasses import dataclass
from pathlib import Path

UNIT_SUFFIXES = (".service", ".scope")

_CONTAINER_PATTERNS = (
    ("docker", re.compile(r"docker-([0-9a-f]{64})\.scope")),
    ("docker", re.compile(r"/docker/([0-9a-f]{64})")),
    ("podman", re.compile(r"libpod-([0-9a-f]{64})")),
    ("kubernetes", re.compile(r"cri-containerd-([0-9a-f]{64})")),
    ("kubernetes", re.compile(r"crio-([0-9a-f]{64})")),
    ("kubernetes", re.compile(r"kubepods.*?/([0-9a-f]{64})")),
    ("containerd", re.compile(r"containerd-([0-9a-f]{64})")),
)

_LXC_PATTERN = re.compile(r"/lxc(?:\.payload)?[./]([^/]+)")


@dataclass(slots=True, frozen=True)
class ContainerRef:
    """Container identity found in a cgroup path."""

    runtime: str
    id: str

    @property
    def short_id(self) -> str:
        """First 12 characters of the container ID."""
        return self.id[:12]


def read_cgroup(pid: int, proc_root: str = "/proc") -> str:
    """Return the raw contents of /proc/<pid>/cgroup, or '' if unreadable."""
    try:
        return Path(proc_root, str(pid), "cgroup").read_text()
    except OSError:
        return ""


def managed_path(cgroup_text: str) -> str:
    """
    Pick the path of the unified or systemd-named hierarchy.

    Each record line is "hierarchy-id:controllers:path"; the line whose
    controller field is empty or mentions systemd is the one systemd manages.
    """
    for line in cgroup_text.splitlines():
        parts = line.split(":", 2)
        if len(parts) < 3:
            continue
        controllers, path = parts[1], parts[2].strip()
        if controllers == "" or "systemd" in controllers:
            return path
    return ""


def unit_name(cgroup_text: str) -> str:
    """Extract the innermost systemd unit name (service or scope) from a cgroup record."""
    for line in cgroup_text.splitlines():
        parts = line.split(":", 2)
        if len(parts) < 3:
            continue
        controllers, path = parts[1], parts[2].strip()
        if controllers != "" and "systemd" not in controllers:
            continue
        for segment in reversed(path.split("/")):
            if segment.endswith(UNIT_SUFFIXES):
                return segment
    return ""


def container_ref(path: str) -> ContainerRef | None:
    """Find a container identifier in a cgroup path."""
    if not path:
        return None
    for runtime, pattern in _CONTAINER_PATTERNS:
        match = pattern.search(path)
        if match:
            return ContainerRef(runtime=runtime, id=match.group(1))
    match = _LXC_PATTERN.search(path)
    if match:
        return ContainerRef(runtime="lxc", id=match.group(1))
    if "kubepods" in path:
        return ContainerRef(runtime="kubernetes", id="")
    return None
