"""Target resolution: PID, port or name to concrete PIDs."""

import logging
import os

from pywitr.errors import Ambiguous, Candidate, InvalidTarget, NotFound
from pywitr.models import Target, TargetType
from pywitr.platforms import Platform

logger = logging.getLogger(__name__)

TOOL_NAME = "witr"

# Command lines containing these never match a name search
_SEARCH_NOISE = ("grep",)


class TargetResolver:
    """
    Turns a user target into PIDs.

    The resolver's own PID and its parent's PID are excluded from name
    matches; both default to the running interpreter's values.
    """

    def __init__(
        self,
        platform: Platform,
        self_pid: int | None = None,
        parent_pid: int | None = None,
        tool_name: str = TOOL_NAME,
    ) -> None:
        """Initialize the TargetResolver."""
        self._platform = platform
        self._self_pid = self_pid if self_pid is not None else os.getpid()
        self._parent_pid = parent_pid if parent_pid is not None else os.getppid()
        self._tool_name = tool_name.lower()

    def resolve(self, target: Target) -> list[int]:
        """
        Resolve a target.

        Raises:
            InvalidTarget: the value is malformed.
            NotFound: nothing matches.
            Ambiguous: a name matches more than one distinct PID.
        """
        if target.type is TargetType.PID:
            return [self._parse_pid(target.value)]
        if target.type is TargetType.PORT:
            return [self.resolve_port(self._parse_port(target.value))]
        if target.type is TargetType.NAME:
            return self.resolve_name(target.value)
        raise InvalidTarget(f"unknown target type: {target.type!r}")

    @staticmethod
    def _parse_pid(value: str) -> int:
        """Parse a positive PID."""
        try:
            pid = int(value.strip())
        except ValueError:
            raise InvalidTarget(f"invalid pid: {value!r}") from None
        if pid <= 0:
            raise InvalidTarget(f"invalid pid: {value!r}")
        return pid

    @staticmethod
    def _parse_port(value: str) -> int:
        """Parse a port number in 1..65535."""
        try:
            port = int(value.strip())
        except ValueError:
            raise InvalidTarget(f"invalid port: {value!r}") from None
        if not 0 < port < 65536:
            raise InvalidTarget(f"invalid port: {value!r}")
        return port

    def resolve_port(self, port: int) -> int:
        """
        Find the process listening on `port`.

        Several owners (a forking server and its workers) resolve to the
        smallest PID, normally the parent listener.
        """
        owners = self._platform.listening_pids(port)
        if not owners:
            raise NotFound(f"no process listening on port {port}")
        pids = [pid for pid in owners if pid]
        if not pids:
            raise NotFound(f"socket on port {port} found but owning process not detected")
        return min(pids)

    def resolve_name(self, name: str) -> list[int]:
        """Find processes or services matching `name`."""
        needle = name.lower()
        scanned = self._scan_processes(needle)
        service_pid = self._platform.service_pid(name)
        if service_pid is not None:
            logger.debug("service manager resolved %r to pid %d", name, service_pid)

        candidates: list[Candidate] = []
        if service_pid is not None:
            candidates.append(Candidate(pid=service_pid, via_service=True))
        seen = {service_pid}
        for pid in scanned:
            if pid in seen:
                continue
            seen.add(pid)
            candidates.append(Candidate(pid=pid))

        if len(candidates) > 1:
            raise Ambiguous(name, candidates)
        if not candidates:
            raise NotFound(f"no running process or service named {name!r}")
        return [candidates[0].pid]

    def _scan_processes(self, needle: str) -> list[int]:
        """Case-insensitive substring match on command name, then command line."""
        matches: list[int] = []
        for pid, command, cmdline in self._platform.process_names():
            if pid in (self._self_pid, self._parent_pid) or needle == str(pid):
                continue
            lower_cmdline = cmdline.lower()
            if self._is_search_noise(command.lower(), lower_cmdline):
                continue
            if needle in command.lower() or needle in lower_cmdline:
                matches.append(pid)
        return matches

    def _is_search_noise(self, command: str, cmdline: str) -> bool:
        """Whether a command line belongs to a search tool or to pywitr itself."""
        if any(noise in command or noise in cmdline for noise in _SEARCH_NOISE):
            return True
        return bool(self._tool_name) and self._tool_name in cmdline
