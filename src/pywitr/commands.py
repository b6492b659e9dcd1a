"""Blocking invocation of OS utilities (systemctl, launchctl, lsof, powershell, ...)."""

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)


def available(program: str) -> bool:
    """Check whether an executable is on PATH."""
    return shutil.which(program) is not None


def run(*args: str) -> str | None:
    """
    Run a command and return its stdout.

    Returns None when the program is missing, exits non-zero or cannot be
    started. Callers treat None as "no evidence".
    """
    try:
        completed = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError as exc:
        logger.debug("could not run %s: %s", args[0], exc)
        return None

    if completed.returncode != 0:
        logger.debug(
            "%s exited with %d: %s",
            " ".join(args),
            completed.returncode,
            completed.stderr.strip(),
        )
        return None
    return completed.stdout
