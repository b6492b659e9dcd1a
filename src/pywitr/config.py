"""Runtime settings gathered from CLI flags and the environment."""

import logging
import os
from dataclasses import dataclass


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(slots=True, frozen=True)
class Settings:
    """Presentation and diagnostics settings for one invocation."""

    color: bool = True
    verbose: bool = False

    @classmethod
    def from_env(cls, color: bool = True, verbose: bool = False) -> "Settings":
        """
        Combine flag values with the environment.

        NO_COLOR (any value) disables color; PYWITR_DEBUG enables verbose logging.
        """
        return cls(
            color=color and "NO_COLOR" not in os.environ,
            verbose=verbose or _truthy(os.environ.get("PYWITR_DEBUG")),
        )

    @property
    def log_level(self) -> int:
        """Logging level for these settings."""
        return logging.DEBUG if self.verbose else logging.WARNING


def configure_logging(settings: Settings) -> None:
    """Send log records to stderr at the configured level."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
