"""
Origin classification: which launch mechanism explains a process.

Each detector is a function taking the ancestry chain (outermost first,
target last) and returning a Source or None. Detectors run in a
per-platform priority order and the first verdict wins.
"""

import logging
import re
from collections.abc import Callable, Sequence

from pywitr import containers
from pywitr.cgroup import ContainerRef, container_ref
from pywitr.models import AncestryChain, Process, Source, SourceType
from pywitr.platforms import host_family
from pywitr.systemd import SystemdUnits

logger = logging.getLogger(__name__)

Detector = Callable[[AncestryChain], Source | None]

UNKNOWN_CONFIDENCE = 0.2

CONTAINER_ENGINES = frozenset(
    {"containerd", "dockerd", "docker", "conmon", "podman", "runc", "crun", "lxc-start"}
)
SUPERVISORS = frozenset(
    {"supervisord", "pm2", "s6-supervise", "runsv", "runsvdir", "circusd", "monit", "forever", "supervise"}
)
CRON_DAEMONS = frozenset({"cron", "crond", "anacron", "atd", "fcron", "taskeng", "taskhostw"})
SHELLS = frozenset(
    {"sh", "bash", "zsh", "fish", "dash", "ksh", "tcsh", "csh", "nu", "cmd", "powershell", "pwsh"}
)
INIT_NAMES = frozenset({"systemd", "init"})

SERVICE_CONTROL_MANAGER = "services.exe"
SERVICES_REGISTRY = "HKLM\\SYSTEM\\CurrentControlSet\\Services\\"

_SHIM_NAMESPACES = {"moby": "docker", "k8s.io": "kubernetes"}
_HEX_ID = re.compile(r"^[0-9a-f]{64}$")


def _base_name(command: str) -> str:
    """Lowercase command name without a Windows .exe suffix or leading login dash."""
    return command.lower().removesuffix(".exe").lstrip("-")


def _ancestors(ancestry: AncestryChain) -> AncestryChain:
    """Everything but the target, nearest ancestor first."""
    return tuple(reversed(ancestry[:-1]))


def _first_ancestor(ancestry: AncestryChain, names: frozenset[str]) -> Process | None:
    """Nearest ancestor whose base name is in `names`."""
    for proc in _ancestors(ancestry):
        if _base_name(proc.command) in names:
            return proc
    return None


# -- container ---------------------------------------------------------------


def _shim_ref(proc: Process) -> ContainerRef | None:
    """Container ID from a containerd-shim command line (-namespace NS -id ID)."""
    args = proc.cmdline.split()
    values = {}
    for flag, value in zip(args, args[1:]):
        if flag in ("-id", "-namespace"):
            values[flag] = value
    container_id = values.get("-id", "")
    if not _HEX_ID.match(container_id):
        return None
    runtime = _SHIM_NAMESPACES.get(values.get("-namespace", ""), "containerd")
    return ContainerRef(runtime=runtime, id=container_id)


def _container_source(name: str, confidence: float, details: dict[str, str]) -> Source:
    """Container verdict with the given evidence."""
    return Source(
        type=SourceType.CONTAINER,
        name=name,
        description="process runs inside a container",
        confidence=confidence,
        details=details,
    )


def detect_container(
    ancestry: AncestryChain,
    label: Callable[[ContainerRef], str] = containers.label,
) -> Source | None:
    """Container runtime in the ancestry, or a container ID in a cgroup path."""
    for proc in reversed(ancestry):
        ref = container_ref(proc.cgroup)
        if ref is not None:
            return _container_source(label(ref), 0.9, {"runtime": ref.runtime, "id": ref.id})
        if proc.container:
            return _container_source(proc.container, 0.9, {})

    for proc in _ancestors(ancestry):
        name = _base_name(proc.command)
        if name.startswith("containerd-shim"):
            ref = _shim_ref(proc)
            if ref is not None:
                return _container_source(label(ref), 0.9, {"runtime": ref.runtime, "id": ref.id})
            return _container_source("containerd", 0.9, {"runtime": "containerd"})
        if name in CONTAINER_ENGINES:
            return _container_source(name, 0.9, {"runtime": name})
    return None


# -- supervisor / cron / shell ------------------------------------------------


def detect_supervisor(ancestry: AncestryChain) -> Source | None:
    """A process-supervision daemon among the ancestors."""
    for proc in _ancestors(ancestry):
        name = _base_name(proc.command)
        # pm2 renames its daemon to "PM2 vX.Y.Z: God Daemon"
        if name in SUPERVISORS or name.startswith("pm2"):
            return Source(
                type=SourceType.SUPERVISOR,
                name=proc.command,
                description=f"supervised by {proc.command} (pid {proc.pid})",
                confidence=0.7,
                details={"supervisor_pid": str(proc.pid)},
            )
    return None


def detect_cron(ancestry: AncestryChain) -> Source | None:
    """A scheduled-task daemon among the ancestors."""
    proc = _first_ancestor(ancestry, CRON_DAEMONS)
    if proc is None:
        return None
    return Source(
        type=SourceType.CRON,
        name=proc.command,
        description="started by a scheduled job",
        confidence=0.6,
        details={"scheduler_pid": str(proc.pid)},
    )


def detect_shell(ancestry: AncestryChain) -> Source | None:
    """An interactive shell among the ancestors."""
    proc = _first_ancestor(ancestry, SHELLS)
    if proc is None:
        return None
    details = {"shell_pid": str(proc.pid)}
    if proc.user:
        details["user"] = proc.user
    return Source(
        type=SourceType.SHELL,
        name=proc.command,
        description="started from an interactive shell",
        confidence=0.5,
        details=details,
    )


# -- init systems -------------------------------------------------------------


def detect_systemd(ancestry: AncestryChain, units: SystemdUnits | None = None) -> Source | None:
    """PID 1 is systemd; look up the unit managing the target."""
    if not any(proc.pid == 1 and proc.command in INIT_NAMES for proc in ancestry):
        return None

    target = ancestry[-1]
    info = (units or SystemdUnits()).unit_for(target.pid)
    details = {"unit": info.name} if info.name else {}
    return Source(
        type=SourceType.SYSTEMD,
        name="systemd",
        description=info.description,
        unit_file=info.unit_file,
        confidence=0.8,
        details=details,
    )


def detect_launchd(ancestry: AncestryChain) -> Source | None:
    """PID 1 is launchd."""
    if not any(proc.pid == 1 and proc.command == "launchd" for proc in ancestry):
        return None
    return Source(type=SourceType.LAUNCHD, name="launchd", confidence=0.8)


# -- windows --------------------------------------------------------------------


def detect_windows_service(ancestry: AncestryChain) -> Source | None:
    """Service Control Manager ancestry: a named service, then services.exe anywhere in the chain."""
    for proc in reversed(ancestry):
        if proc.service:
            return Source(
                type=SourceType.WINDOWS_SERVICE,
                name=proc.service,
                unit_file=SERVICES_REGISTRY + proc.service,
                confidence=0.9,
                details={"manager": SERVICE_CONTROL_MANAGER, "service": proc.service},
            )

    for proc in ancestry:
        if proc.command.lower() == SERVICE_CONTROL_MANAGER:
            return Source(
                type=SourceType.WINDOWS_SERVICE,
                name="Service Control Manager",
                confidence=0.7,
                details={"manager": SERVICE_CONTROL_MANAGER},
            )

    # Direct child of services.exe with no resolved name: derive one from the executable
    if len(ancestry) >= 2 and ancestry[-2].command.lower() == SERVICE_CONTROL_MANAGER:
        target = ancestry[-1]
        name = target.command[:-4] if target.command.lower().endswith(".exe") else target.command
        return Source(
            type=SourceType.WINDOWS_SERVICE,
            name=name,
            unit_file=SERVICES_REGISTRY + name,
            confidence=0.6,
            details={"manager": SERVICE_CONTROL_MANAGER},
        )
    return None


# -- chains -------------------------------------------------------------------

LINUX_DETECTORS: tuple[Detector, ...] = (
    detect_container,
    detect_supervisor,
    detect_systemd,
    detect_cron,
    detect_shell,
)
DARWIN_DETECTORS: tuple[Detector, ...] = (
    detect_supervisor,
    detect_launchd,
    detect_cron,
    detect_shell,
)
WINDOWS_DETECTORS: tuple[Detector, ...] = (
    detect_windows_service,
    detect_supervisor,
    detect_cron,
    detect_shell,
)
GENERIC_DETECTORS: tuple[Detector, ...] = (
    detect_supervisor,
    detect_cron,
    detect_shell,
)

_BY_FAMILY = {
    "linux": LINUX_DETECTORS,
    "darwin": DARWIN_DETECTORS,
    "windows": WINDOWS_DETECTORS,
}


def detectors_for(family: str) -> tuple[Detector, ...]:
    """Priority-ordered detectors for an OS family."""
    return _BY_FAMILY.get(family, GENERIC_DETECTORS)


def unknown() -> Source:
    """The fallback verdict when no detector matches."""
    return Source(type=SourceType.UNKNOWN, confidence=UNKNOWN_CONFIDENCE)


def classify(ancestry: AncestryChain, detectors: Sequence[Detector] | None = None) -> Source:
    """
    Return the first detector verdict for the chain.

    Never raises: an empty chain, or one no detector recognizes, yields the
    unknown verdict.
    """
    if not ancestry:
        return unknown()
    if detectors is None:
        detectors = detectors_for(host_family())

    for detector in detectors:
        source = detector(ancestry)
        if source is not None:
            logger.debug("%s matched pid %d", getattr(detector, "__name__", detector), ancestry[-1].pid)
            return source
    return unknown()
