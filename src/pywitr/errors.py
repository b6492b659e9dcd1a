"""Errors raised while resolving a target."""

from dataclasses import dataclass


class WitrError(Exception):
    """Base class for all pywitr errors."""


class InvalidTarget(WitrError):
    """The identifier is malformed (e.g. a non-numeric PID)."""


class NotFound(WitrError):
    """No process, listener or service matches the target."""


@dataclass(slots=True, frozen=True)
class Candidate:
    """One PID matching an ambiguous name."""

    pid: int
    via_service: bool = False

    @property
    def label(self) -> str:
        """How the candidate was found: 'service' or 'manual'."""
        return "service" if self.via_service else "manual"


class Ambiguous(WitrError):
    """
    A name matched several distinct PIDs.

    Carries the full candidate list so the caller can ask the user to
    pick one by explicit PID.
    """

    def __init__(self, name: str, candidates: list[Candidate] | tuple[Candidate, ...]) -> None:
        """Initialize Ambiguous with the name searched and its matches."""
        self.name = name
        self.candidates = tuple(candidates)
        super().__init__(f"ambiguous target {name!r}: {len(self.candidates)} matches")

    @property
    def pids(self) -> list[int]:
        """Candidate PIDs in menu order."""
        return [c.pid for c in self.candidates]

    def format(self, tool_name: str = "pywitr") -> str:
        """Render the disambiguation menu shown before exiting."""
        lines = [
            f'Ambiguous target: "{self.name}"',
            "",
            "The name matches multiple entities:",
            "",
        ]
        for index, candidate in enumerate(self.candidates, start=1):
            role = "master process" if candidate.via_service else "process"
            lines.append(
                f"[{index}] PID {candidate.pid}   {self.name}: {role}   ({candidate.label})"
            )
        lines.extend(
            [
                "",
                f"{tool_name} cannot determine intent safely.",
                "Please re-run with an explicit PID:",
                f"  {tool_name} --pid <pid>",
            ]
        )
        return "\n".join(lines)
