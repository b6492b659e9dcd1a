"""Tests for the origin classifier."""

from functools import partial

import pytest

from conftest import proc
from pywitr import classifier, commands
from pywitr.classifier import (
    DARWIN_DETECTORS,
    LINUX_DETECTORS,
    WINDOWS_DETECTORS,
    classify,
    detect_container,
    detect_cron,
    detect_launchd,
    detect_shell,
    detect_supervisor,
    detect_systemd,
    detect_windows_service,
    detectors_for,
)
from pywitr.models import SourceType
from pywitr.systemd import UnitInfo

DOCKER_ID = "4f1c" + "a" * 60


class FakeUnits:
    """Stands in for SystemdUnits."""

    def __init__(self, info: UnitInfo) -> None:
        self.info = info
        self.asked: list[int] = []

    def unit_for(self, pid: int) -> UnitInfo:
        self.asked.append(pid)
        return self.info


@pytest.fixture(autouse=True)
def no_commands(monkeypatch):
    """External commands report no evidence."""
    monkeypatch.setattr(commands, "run", lambda *args: None)
    monkeypatch.setattr(commands, "available", lambda program: False)


def linux_detectors(units: FakeUnits | None = None):
    units = units or FakeUnits(UnitInfo())
    return tuple(
        partial(detect_systemd, units=units) if d is detect_systemd else d for d in LINUX_DETECTORS
    )


class TestContainer:
    """Tests for detect_container."""

    def test_engine_ancestor(self):
        """Test a container engine among the ancestors."""
        chain = (proc(1, 0, "systemd"), proc(50, 1, "conmon"), proc(60, 50, "nginx"))

        source = detect_container(chain)

        assert source.type is SourceType.CONTAINER
        assert source.name == "conmon"
        assert source.confidence == 0.9

    def test_cgroup_id_resolved_by_lookup(self):
        """Test a cgroup container ID is turned into a name by the lookup."""
        chain = (
            proc(1, 0, "systemd"),
            proc(70, 1, "node", cgroup=f"/system.slice/docker-{DOCKER_ID}.scope"),
        )

        source = detect_container(chain, label=lambda ref: f"{ref.runtime}: web")

        assert source.name == "docker: web"
        assert source.details == {"runtime": "docker", "id": DOCKER_ID}

    def test_cgroup_id_truncated_when_unresolved(self):
        """Test an unresolved container ID falls back to its first 12 characters."""
        chain = (proc(70, 0, "node", cgroup=f"/docker/{DOCKER_ID}"),)

        source = detect_container(chain)

        assert source.name == f"docker ({DOCKER_ID[:12]})"

    def test_shim_command_line(self):
        """Test a containerd shim ancestor carrying the container ID."""
        chain = (
            proc(1, 0, "systemd"),
            proc(
                40,
                1,
                "containerd-shim",
                f"/usr/bin/containerd-shim-runc-v2 -namespace moby -id {DOCKER_ID} -address /run/containerd.sock",
            ),
            proc(41, 40, "redis-server"),
        )

        source = detect_container(chain)

        assert source.type is SourceType.CONTAINER
        assert source.details["runtime"] == "docker"
        assert source.name == f"docker ({DOCKER_ID[:12]})"

    def test_container_field(self):
        """Test a process already tagged with a container identity."""
        chain = (proc(4, 0, "System"), proc(900, 4, "app.exe", container="docker: api"))
        assert detect_container(chain).name == "docker: api"

    def test_plain_process(self, linux_tree):
        """Test no container evidence yields None."""
        chain = tuple(linux_tree.processes[pid] for pid in (1, 812, 9000, 9001, 9100))
        assert detect_container(chain) is None


class TestSupervisorCronShell:
    """Tests for the shared ancestor detectors."""

    def test_supervisor(self):
        """Test supervisord as an ancestor."""
        chain = (proc(1, 0, "systemd"), proc(30, 1, "supervisord"), proc(31, 30, "celery"))
        source = detect_supervisor(chain)
        assert source.type is SourceType.SUPERVISOR
        assert source.name == "supervisord"
        assert source.confidence == 0.7

    def test_pm2_god_daemon(self):
        """Test pm2's renamed daemon is recognized."""
        chain = (proc(1, 0, "launchd"), proc(30, 1, "PM2 v5.3.0: God"), proc(31, 30, "node"))
        assert detect_supervisor(chain).type is SourceType.SUPERVISOR

    def test_target_itself_is_not_its_own_supervisor(self):
        """Test only ancestors count, not the target."""
        chain = (proc(1, 0, "systemd"), proc(30, 1, "supervisord"))
        assert detect_supervisor(chain) is None

    def test_cron(self):
        """Test a cron daemon ancestor."""
        chain = (proc(1, 0, "systemd"), proc(600, 1, "cron"), proc(601, 600, "sh"), proc(602, 601, "backup"))
        source = detect_cron(chain)
        assert source.type is SourceType.CRON
        assert source.confidence == 0.6

    def test_shell(self):
        """Test an interactive shell ancestor, including login shells."""
        chain = (proc(1, 0, "launchd"), proc(500, 1, "-zsh", user="bob"), proc(501, 500, "vim"))
        source = detect_shell(chain)
        assert source.type is SourceType.SHELL
        assert source.name == "-zsh"
        assert source.details["user"] == "bob"

    def test_windows_shell(self):
        """Test .exe shells are recognized."""
        chain = (proc(800, 0, "explorer.exe"), proc(801, 800, "powershell.exe"), proc(802, 801, "app.exe"))
        assert detect_shell(chain).type is SourceType.SHELL


class TestInitSystems:
    """Tests for systemd and launchd detectors."""

    def test_systemd_resolves_target_unit(self):
        """Test the unit is looked up for the target, not PID 1."""
        units = FakeUnits(
            UnitInfo(name="nginx.service", unit_file="/lib/systemd/system/nginx.service", description="web server")
        )
        chain = (proc(1, 0, "systemd"), proc(300, 1, "nginx"))

        source = detect_systemd(chain, units=units)

        assert units.asked == [300]
        assert source.type is SourceType.SYSTEMD
        assert source.unit_file == "/lib/systemd/system/nginx.service"
        assert source.description == "web server"
        assert source.details == {"unit": "nginx.service"}
        assert source.confidence == 0.8

    def test_systemd_accepts_init(self):
        """Test PID 1 named init counts as systemd."""
        chain = (proc(1, 0, "init"), proc(2, 1, "app"))
        assert detect_systemd(chain, units=FakeUnits(UnitInfo())).type is SourceType.SYSTEMD

    def test_systemd_requires_pid_1(self):
        """Test a chain that does not reach PID 1 is not systemd."""
        chain = (proc(200, 150, "parent"), proc(300, 200, "worker"))
        assert detect_systemd(chain, units=FakeUnits(UnitInfo())) is None

    def test_launchd(self):
        """Test launchd as PID 1."""
        chain = (proc(1, 0, "launchd"), proc(400, 1, "Finder"))
        source = detect_launchd(chain)
        assert source.type is SourceType.LAUNCHD
        assert source.confidence == 0.8


class TestWindowsService:
    """Tests for detect_windows_service."""

    def test_named_service(self):
        """Test an ancestor tagged with a service name references its registry key."""
        chain = (proc(4, 0, "System"), proc(700, 4, "services.exe"), proc(900, 700, "sqlservr.exe", service="MSSQLSERVER"))

        source = detect_windows_service(chain)

        assert source.name == "MSSQLSERVER"
        assert source.unit_file == "HKLM\\SYSTEM\\CurrentControlSet\\Services\\MSSQLSERVER"
        assert source.details == {"manager": "services.exe", "service": "MSSQLSERVER"}

    def test_direct_child_without_name_is_generic(self):
        """Test a direct child of services.exe without a name gets the generic verdict."""
        chain = (proc(4, 0, "System"), proc(600, 4, "services.exe"), proc(1200, 600, "svchost.exe"))

        source = detect_windows_service(chain)

        assert source.name == "Service Control Manager"
        assert source.confidence == 0.7
        assert source.unit_file == ""

    def test_deeper_descendant_generic(self):
        """Test services.exe further up yields the generic verdict."""
        chain = (
            proc(700, 4, "services.exe"),
            proc(900, 700, "svchost.exe"),
            proc(950, 900, "worker.exe"),
        )

        source = detect_windows_service(chain)

        assert source.name == "Service Control Manager"
        assert source.unit_file == ""
        assert source.details == {"manager": "services.exe"}

    def test_no_scm(self):
        """Test no service evidence yields None."""
        chain = (proc(800, 0, "explorer.exe"), proc(801, 800, "notepad.exe"))
        assert detect_windows_service(chain) is None


class TestClassify:
    """Tests for classify() and the per-platform chains."""

    def test_priority_container_before_systemd(self):
        """Test a containerized process under systemd classifies as container."""
        chain = (proc(1, 0, "systemd"), proc(50, 1, "containerd-shim"), proc(60, 50, "nginx"))
        assert classify(chain, linux_detectors()).type is SourceType.CONTAINER

    def test_priority_supervisor_before_systemd(self):
        """Test a supervised process is not reported as systemd."""
        chain = (proc(1, 0, "systemd"), proc(30, 1, "supervisord"), proc(31, 30, "celery"))
        assert classify(chain, linux_detectors()).type is SourceType.SUPERVISOR

    def test_systemd_before_shell(self, linux_tree):
        """Test an SSH login shell chain under systemd classifies as systemd."""
        chain = tuple(linux_tree.processes[pid] for pid in (1, 812, 9000, 9001, 9100))
        assert classify(chain, linux_detectors()).type is SourceType.SYSTEMD

    def test_shell_when_root_missing(self):
        """Test a partial chain with a shell classifies as shell."""
        chain = (proc(500, 400, "bash"), proc(501, 500, "make"))
        assert classify(chain, linux_detectors()).type is SourceType.SHELL

    def test_unknown_fallback(self):
        """Test no match yields unknown with confidence 0.2."""
        chain = (proc(200, 150, "parent"), proc(300, 200, "worker"))
        source = classify(chain, linux_detectors())
        assert source.type is SourceType.UNKNOWN
        assert source.confidence == 0.2

    def test_empty_chain(self):
        """Test an empty chain classifies as unknown."""
        assert classify((), linux_detectors()).type is SourceType.UNKNOWN

    def test_deterministic(self, linux_tree):
        """Test repeated classification gives the same verdict."""
        chain = tuple(linux_tree.processes[pid] for pid in (1, 812, 9000, 9001, 9100))
        detectors = linux_detectors()
        assert {classify(chain, detectors).type for _ in range(5)} == {SourceType.SYSTEMD}

    def test_confidence_in_range(self):
        """Test every verdict has confidence within [0, 1]."""
        chains = [
            (proc(1, 0, "systemd"), proc(2, 1, "a")),
            (proc(1, 0, "launchd"), proc(2, 1, "a")),
            (proc(700, 4, "services.exe"), proc(2, 700, "a.exe")),
            (proc(9, 8, "x"),),
        ]
        for family in ("linux", "darwin", "windows", "generic"):
            for chain in chains:
                detectors = linux_detectors() if family == "linux" else detectors_for(family)
                assert 0.0 <= classify(chain, detectors).confidence <= 1.0

    def test_darwin_skips_containers(self):
        """Test macOS never reports containers, even with an engine ancestor."""
        chain = (proc(1, 0, "launchd"), proc(50, 1, "docker"), proc(60, 50, "app"))
        assert classify(chain, DARWIN_DETECTORS).type is SourceType.LAUNCHD

    def test_windows_order(self):
        """Test the service chain is tried before the shared detectors."""
        chain = (proc(700, 4, "services.exe"), proc(701, 700, "cmd.exe"), proc(702, 701, "job.exe"))
        assert classify(chain, WINDOWS_DETECTORS).type is SourceType.WINDOWS_SERVICE

    def test_detectors_for(self):
        """Test per-family detector selection."""
        assert detectors_for("linux") is LINUX_DETECTORS
        assert detectors_for("darwin") is DARWIN_DETECTORS
        assert detectors_for("windows") is WINDOWS_DETECTORS
        assert detectors_for("freebsd") is classifier.GENERIC_DETECTORS
        assert detect_container not in DARWIN_DETECTORS
