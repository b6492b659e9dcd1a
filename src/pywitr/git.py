"""Git repository detection from a working directory."""

from pathlib import Path


def detect_git(cwd: str) -> tuple[str, str]:
    """
    Walk up from cwd looking for a .git directory.

    Returns (repo name, branch); both empty when no repository is found.
    The branch is empty for a detached HEAD.
    """
    if not cwd or cwd == "unknown":
        return "", ""

    search = Path(cwd)
    for directory in (search, *search.parents):
        git_dir = directory / ".git"
        if not git_dir.is_dir():
            continue
        branch = ""
        try:
            head = (git_dir / "HEAD").read_text().strip()
        except OSError:
            head = ""
        if head.startswith("ref: "):
            branch = head[len("ref: ") :].removeprefix("refs/heads/")
        return directory.name, branch
    return "", ""
