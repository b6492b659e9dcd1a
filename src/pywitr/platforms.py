"""Per-platform process snapshot providers built on psutil."""

import logging
import os
import re
import sys
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import TypeVar

import psutil

from pywitr import cgroup, commands, containers, systemd
from pywitr.errors import NotFound
from pywitr.git import detect_git
from pywitr.models import Process

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lightweight attributes for full-system listings
SNAPSHOT_ATTRS = ["pid", "ppid", "name", "cmdline", "exe", "create_time", "username"]

# Service names safe to embed in a quoted WQL filter
_SERVICE_NAME = re.compile(r"[A-Za-z0-9_.\- ]+")


def _safe(getter: Callable[[], T], default: T) -> T:
    """Call a psutil getter, returning default when access is denied."""
    try:
        return getter()
    except (psutil.AccessDenied, psutil.ZombieProcess):
        return default


def _join_cmdline(cmdline: list[str] | None, fallback: str) -> str:
    return " ".join(cmdline) if cmdline else fallback


def _timestamp(value: float | None) -> datetime | None:
    return datetime.fromtimestamp(value) if value else None


class Platform:
    """
    Process snapshot provider.

    The base implementation relies on psutil alone; subclasses add what the
    platform's service manager and socket tooling can tell us.
    """

    family = "generic"

    # -- snapshot provider contract -------------------------------------

    def read_process(self, pid: int) -> Process:
        """
        Read one process's attributes.

        Raises NotFound if the process does not exist. Attributes the caller
        may not read are left empty.
        """
        if pid <= 0:
            raise NotFound(f"process {pid} not found")
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                ppid = proc.ppid()
                name = proc.name()
                cmdline = _join_cmdline(_safe(proc.cmdline, []), name)
                exe = _safe(proc.exe, "")
                started_at = _timestamp(_safe(proc.create_time, None))
                user = _safe(proc.username, "")
                cwd = _safe(proc.cwd, "")
                environ = _safe(proc.environ, None)
            ports, addrs = self._listening(proc)
        except psutil.NoSuchProcess as exc:
            raise NotFound(f"process {pid} not found") from exc

        repo, branch = detect_git(cwd)
        env = None
        if environ is not None:
            env = tuple(f"{key}={value}" for key, value in environ.items())

        extras = self._extras(pid, cmdline)
        return Process(
            pid=pid,
            ppid=ppid,
            command=name,
            cmdline=cmdline,
            exe=exe,
            started_at=started_at,
            user=user,
            working_dir=cwd,
            listening_ports=ports,
            bind_addresses=addrs,
            env=env,
            git_repo=repo,
            git_branch=branch,
            exe_deleted=self._exe_deleted(pid, exe),
            **extras,
        )

    def list_pids(self) -> list[int]:
        """PIDs of every live process."""
        return psutil.pids()

    def boot_time(self) -> datetime:
        """System boot time."""
        return datetime.fromtimestamp(psutil.boot_time())

    def snapshot(self) -> list[Process]:
        """
        Collect a lightweight snapshot of every live process.

        Processes that exit or deny access mid-scan are skipped.
        """
        processes: list[Process] = []
        for proc in psutil.process_iter(attrs=SNAPSHOT_ATTRS):
            try:
                info = proc.info
                name = info.get("name") or ""
                processes.append(
                    Process(
                        pid=info["pid"],
                        ppid=info.get("ppid") or 0,
                        command=name,
                        cmdline=_join_cmdline(info.get("cmdline"), name),
                        exe=info.get("exe") or "",
                        started_at=_timestamp(info.get("create_time")),
                        user=info.get("username") or "",
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return processes

    # -- resolution helpers -----------------------------------------------

    def process_names(self) -> Iterator[tuple[int, str, str]]:
        """Yield (pid, command, cmdline) for every live process."""
        for proc in psutil.process_iter(attrs=["pid", "name", "cmdline"]):
            info = proc.info
            name = info.get("name") or ""
            yield info["pid"], name, _join_cmdline(info.get("cmdline"), "")

    def listening_pids(self, port: int) -> list[int | None]:
        """
        Owners of listening sockets on `port`, IPv4 and IPv6.

        None marks a socket whose owning process could not be identified.
        """
        try:
            conns = psutil.net_connections(kind="inet")
        except psutil.AccessDenied:
            logger.debug("socket table not readable")
            return []
        return [
            conn.pid
            for conn in conns
            if conn.status == psutil.CONN_LISTEN and conn.laddr and conn.laddr.port == port
        ]

    def service_pid(self, name: str) -> int | None:
        """PID of a running service called `name`, if the service manager knows one."""
        return None

    # -- hooks --------------------------------------------------------------

    def _listening(self, proc: psutil.Process) -> tuple[tuple[int, ...], tuple[str, ...]]:
        """Listening ports and their bind addresses, deduplicated."""
        conns = _safe(lambda: proc.net_connections(kind="inet"), [])
        seen: set[tuple[str, int]] = set()
        ports: list[int] = []
        addrs: list[str] = []
        for conn in conns:
            if conn.status != psutil.CONN_LISTEN or not conn.laddr:
                continue
            key = (conn.laddr.ip, conn.laddr.port)
            if key in seen:
                continue
            seen.add(key)
            ports.append(conn.laddr.port)
            addrs.append(conn.laddr.ip)
        return tuple(ports), tuple(addrs)

    def _extras(self, pid: int, cmdline: str) -> dict[str, str]:
        """Platform-specific fields: service, container, cgroup."""
        return {}

    def _exe_deleted(self, pid: int, exe: str) -> bool:
        """Whether the executable no longer exists on disk."""
        return bool(exe) and not os.path.exists(exe)


class LinuxPlatform(Platform):
    """Linux: /proc, systemd and cgroups."""

    family = "linux"

    def __init__(self, proc_root: str = "/proc") -> None:
        """Initialize LinuxPlatform, reading /proc under `proc_root`."""
        self._proc_root = proc_root

    def service_pid(self, name: str) -> int | None:
        """Main PID of the systemd service called `name`."""
        if not commands.available("systemctl"):
            return None
        return systemd.service_main_pid(name)

    def _extras(self, pid: int, cmdline: str) -> dict[str, str]:
        """Owning systemd service and cgroup path from /proc."""
        text = cgroup.read_cgroup(pid, self._proc_root)
        unit = cgroup.unit_name(text)
        return {
            "service": unit if unit.endswith(".service") else "",
            "cgroup": cgroup.managed_path(text),
        }

    def _exe_deleted(self, pid: int, exe: str) -> bool:
        """Check the /proc exe link for the deleted marker."""
        try:
            link = os.readlink(Path(self._proc_root, str(pid), "exe"))
        except OSError:
            return super()._exe_deleted(pid, exe)
        return link.endswith(" (deleted)")


class DarwinPlatform(Platform):
    """macOS: launchd and lsof."""

    family = "darwin"

    def listening_pids(self, port: int) -> list[int | None]:
        """Owners of LISTEN sockets on `port`, from lsof."""
        out = commands.run("lsof", "-nP", f"-iTCP:{port}", "-sTCP:LISTEN", "-t")
        if out is None:
            return []
        pids: list[int | None] = []
        for line in out.splitlines():
            try:
                pids.append(int(line.strip()))
            except ValueError:
                continue
        return pids

    def service_pid(self, name: str) -> int | None:
        """First running launchd job whose label contains `name`."""
        out = commands.run("launchctl", "list")
        if out is None:
            return None
        lower = name.lower()
        for line in out.splitlines():
            fields = line.split()
            if len(fields) < 3 or lower not in fields[2].lower():
                continue
            try:
                pid = int(fields[0])
            except ValueError:
                continue
            if pid > 0:
                return pid
        return None

    def _listening(self, proc: psutil.Process) -> tuple[tuple[int, ...], tuple[str, ...]]:
        """Listening sockets of `proc` from lsof."""
        out = commands.run("lsof", "-a", "-p", str(proc.pid), "-i", "-P", "-n")
        if out is None:
            return (), ()
        seen: set[tuple[str, int]] = set()
        ports: list[int] = []
        addrs: list[str] = []
        for line in out.splitlines():
            if "LISTEN" not in line:
                continue
            for field in line.split():
                if ":" not in field or field.startswith("("):
                    continue
                addr, _, port_text = field.rpartition(":")
                try:
                    port = int(port_text)
                except ValueError:
                    continue
                if addr == "*":
                    addr = "0.0.0.0"
                if (addr, port) in seen:
                    continue
                seen.add((addr, port))
                ports.append(port)
                addrs.append(addr)
        return tuple(ports), tuple(addrs)


class WindowsPlatform(Platform):
    """Windows: Service Control Manager via PowerShell."""

    family = "windows"

    def service_pid(self, name: str) -> int | None:
        """
        PID of the running service called `name`.

        Names with quotes, `$` or other characters PowerShell or WQL would
        interpret are never sent to the query.
        """
        if not _SERVICE_NAME.fullmatch(name):
            logger.debug("refusing service lookup for %r", name)
            return None
        out = self._powershell(
            f"Get-CimInstance -ClassName Win32_Service -Filter \"Name='{name}'\" "
            "| Select-Object -ExpandProperty ProcessId"
        )
        try:
            pid = int(out.strip()) if out else 0
        except ValueError:
            return None
        return pid if pid > 0 else None

    def _extras(self, pid: int, cmdline: str) -> dict[str, str]:
        """Owning service from the SCM, container from the command line."""
        out = self._powershell(
            f'Get-CimInstance -ClassName Win32_Service -Filter "ProcessId={pid}" '
            "| Select-Object -ExpandProperty Name"
        )
        service = out.strip().splitlines()[0] if out and out.strip() else ""
        return {"service": service, "container": containers.from_cmdline(cmdline)}

    @staticmethod
    def _powershell(script: str) -> str | None:
        """Run a PowerShell script without profile or prompts."""
        return commands.run("powershell", "-NoProfile", "-NonInteractive", script)


def host_family() -> str:
    """Name the running OS family: linux, darwin, windows or generic."""
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform == "win32":
        return "windows"
    return "generic"


def current_platform() -> Platform:
    """Select the provider for the running OS."""
    providers = {
        "linux": LinuxPlatform,
        "darwin": DarwinPlatform,
        "windows": WindowsPlatform,
    }
    return providers.get(host_family(), Platform)()
