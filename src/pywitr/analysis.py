"""One query: walk a resolved PID's ancestry and classify it."""

from dataclasses import dataclass

from pywitr.ancestry import walk
from pywitr.classifier import classify, detectors_for
from pywitr.errors import NotFound
from pywitr.models import AncestryChain, Process, Source
from pywitr.platforms import Platform


@dataclass(slots=True, frozen=True)
class Analysis:
    """Everything known about why a process is running."""

    ancestry: AncestryChain
    source: Source

    @property
    def process(self) -> Process:
        """The target process, last in the chain."""
        return self.ancestry[-1]


def analyze(pid: int, platform: Platform) -> Analysis:
    """Walk and classify `pid`; raises NotFound if the process cannot be read."""
    ancestry = walk(pid, platform)
    if not ancestry:
        raise NotFound(f"process {pid} not found")
    source = classify(ancestry, detectors_for(platform.family))
    return Analysis(ancestry=ancestry, source=source)
