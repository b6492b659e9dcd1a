"""Shared fixtures: an in-memory platform fed with synthetic processes."""

from datetime import datetime

import pytest

from pywitr.errors import NotFound
from pywitr.models import Process
from pywitr.platforms import Platform


class FakePlatform(Platform):
    """Platform backed by a dict of Process values instead of the live OS."""

    def __init__(
        self,
        processes: list[Process] | None = None,
        family: str = "linux",
        sockets: dict[int, list[int | None]] | None = None,
        services: dict[str, int] | None = None,
    ) -> None:
        self.family = family
        self.processes = {p.pid: p for p in processes or []}
        self.sockets = sockets or {}
        self.services = services or {}
        self.reads: list[int] = []

    def read_process(self, pid: int) -> Process:
        self.reads.append(pid)
        try:
            return self.processes[pid]
        except KeyError:
            raise NotFound(f"process {pid} not found") from None

    def list_pids(self) -> list[int]:
        return sorted(self.processes)

    def boot_time(self) -> datetime:
        return datetime(2025, 1, 1)

    def snapshot(self) -> list[Process]:
        return list(self.processes.values())

    def process_names(self):
        for proc in self.processes.values():
            yield proc.pid, proc.command, proc.cmdline

    def listening_pids(self, port: int) -> list[int | None]:
        return list(self.sockets.get(port, []))

    def service_pid(self, name: str) -> int | None:
        return self.services.get(name)


def proc(pid: int, ppid: int, command: str, cmdline: str = "", **kwargs) -> Process:
    """Shorthand for a synthetic Process."""
    return Process(pid=pid, ppid=ppid, command=command, cmdline=cmdline or command, **kwargs)


@pytest.fixture
def linux_tree() -> FakePlatform:
    """systemd -> sshd -> sshd -> bash -> python3."""
    return FakePlatform(
        [
            proc(1, 0, "systemd", "/sbin/init splash"),
            proc(812, 1, "sshd", "sshd: /usr/sbin/sshd -D"),
            proc(9000, 812, "sshd", "sshd: alice@pts/0"),
            proc(9001, 9000, "bash", "-bash", user="alice"),
            proc(9100, 9001, "python3", "python3 server.py"),
        ]
    )
