"""systemd unit lookups through systemctl."""

import logging
from dataclasses import dataclass

from pywitr import cgroup, commands

logger = logging.getLogger(__name__)


def query_property(prop: str, unit: str) -> str:
    """Return `systemctl show -p PROP --value UNIT`, or '' when unset or failing."""
    out = commands.run("systemctl", "show", "-p", prop, "--value", unit)
    if out is None:
        return ""
    value = out.strip()
    if not value or "not set" in value:
        return ""
    return value


def service_main_pid(name: str) -> int | None:
    """Main PID of a running service named `name` (".service" is appended if missing)."""
    unit = name if name.endswith(".service") else f"{name}.service"
    value = query_property("MainPID", unit)
    try:
        pid = int(value)
    except ValueError:
        return None
    if pid <= 0:
        logger.debug("service %s is not running", unit)
        return None
    return pid


@dataclass(slots=True, frozen=True)
class UnitInfo:
    """Where a unit is defined and what it says about itself."""

    name: str = ""
    unit_file: str = ""
    description: str = ""


class SystemdUnits:
    """
    Resolves the unit managing a PID.

    The unit name comes from the process's cgroup record. When querying by
    name yields nothing, the raw PID is used as the query key, which
    systemctl maps to the unit containing that process.
    """

    def __init__(self, proc_root: str = "/proc") -> None:
        """Initialize SystemdUnits, reading cgroups under `proc_root`."""
        self._proc_root = proc_root

    def unit_for(self, pid: int) -> UnitInfo:
        """Unit name, unit file and description for `pid`."""
        if not commands.available("systemctl"):
            return UnitInfo()

        name = cgroup.unit_name(cgroup.read_cgroup(pid, self._proc_root))
        keys = [name, str(pid)] if name else [str(pid)]

        unit_file = self._first(keys, ("FragmentPath", "SourcePath"))
        description = self._first(keys, ("Description",))
        return UnitInfo(name=name, unit_file=unit_file, description=description)

    @staticmethod
    def _first(keys: list[str], props: tuple[str, ...]) -> str:
        """First non-empty value of `props` across the query keys."""
        for key in keys:
            for prop in props:
                value = query_property(prop, key)
                if value:
                    return value
        return ""
