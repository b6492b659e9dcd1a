"""Plain-text rendering of analyses, ancestry chains and descendant trees."""

import json
from datetime import datetime

from pywitr.analysis import Analysis
from pywitr.ancestry import format_chain
from pywitr.models import AncestryChain, Process, ProcessTree, SourceType

RESET = "\033[0m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"
BOLD = "\033[1m"

_SOURCE_LABELS = {
    SourceType.CONTAINER: "container",
    SourceType.SUPERVISOR: "process supervisor",
    SourceType.SYSTEMD: "systemd service",
    SourceType.LAUNCHD: "launchd",
    SourceType.CRON: "cron",
    SourceType.SHELL: "interactive shell",
    SourceType.WINDOWS_SERVICE: "Windows service",
    SourceType.UNKNOWN: "unknown",
}


def paint(text: str, code: str, color: bool) -> str:
    """Wrap `text` in an ANSI color code when color is enabled."""
    return f"{code}{text}{RESET}" if color else text


def format_age(started_at: datetime | None, now: datetime | None = None) -> str:
    """Relative age such as '3 min ago' or '2 days ago'."""
    if started_at is None:
        return "unknown"
    now = now or datetime.now()
    seconds = int((now - started_at).total_seconds())
    if seconds < 0:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("min", 60)):
        if seconds >= size:
            count = seconds // size
            plural = "s" if count != 1 and unit != "min" else ""
            return f"{count} {unit}{plural} ago"
    return f"{seconds} sec ago"


def render_ancestry(chain: AncestryChain, color: bool = True) -> str:
    """Indented chain, outermost ancestor at the top."""
    lines = []
    for depth, proc in enumerate(chain):
        prefix = "  " * depth
        if depth > 0:
            prefix += paint("└─ ", MAGENTA, color)
        lines.append(f"{prefix}{proc.command} (pid {proc.pid})")
    return "\n".join(lines)


def render_short(chain: AncestryChain) -> str:
    """One-line ancestry chain."""
    return format_chain(chain)


def render_tree(tree: ProcessTree, color: bool = True) -> str:
    """Descendant tree with box-drawing branches."""
    lines = [f"{tree.process.command} (pid {tree.process.pid})"]

    def add(node: ProcessTree, prefix: str) -> None:
        for i, child in enumerate(node.children):
            last = i == len(node.children) - 1
            branch = paint("└── " if last else "├── ", MAGENTA, color)
            lines.append(f"{prefix}{branch}{child.process.command} (pid {child.process.pid})")
            add(child, prefix + ("    " if last else "│   "))

    add(tree, "")
    return "\n".join(lines)


def render_children(parent: Process, children: list[Process], color: bool = True) -> str:
    """Render `parent` with its direct children beneath it."""
    return render_tree(ProcessTree(parent, tuple(ProcessTree(c) for c in children)), color)


def render_env(proc: Process, family: str, color: bool = True) -> str:
    """Command line followed by the environment, when the platform exposes it."""
    lines = [f"{paint('Command', GREEN, color)}     : {proc.cmdline}"]
    if proc.env:
        lines.append(f"{paint('Environment', BLUE, color)} :")
        lines.extend(f"  {entry}" for entry in proc.env)
    elif proc.env is None and family == "darwin":
        lines.append(paint("Environment variable extraction is not available on macOS.", YELLOW, color))
    elif proc.env is None:
        lines.append(paint("Environment variables could not be read.", YELLOW, color))
    else:
        lines.append(paint("No environment variables found.", RED, color))
    return "\n".join(lines)


def _field(label: str, value: str, color: bool) -> str:
    return f"{paint(f'{label:<12}', CYAN, color)}: {value}"


def render_card(analysis: Analysis, color: bool = True, now: datetime | None = None) -> str:
    """The full 'why is this running' report for one process."""
    proc = analysis.process
    source = analysis.source
    lines = [
        _field("Target", paint(proc.command, BOLD, color), color),
        "",
        _field("Process", f"{proc.command} (pid {proc.pid})", color),
    ]
    if proc.user:
        lines.append(_field("User", proc.user, color))
    if proc.cmdline:
        lines.append(_field("Command", proc.cmdline, color))
    if proc.started_at is not None:
        started = proc.started_at.strftime("%Y-%m-%d %H:%M:%S")
        lines.append(_field("Started", f"{format_age(proc.started_at, now)} ({started})", color))
    lines.extend(["", _field("Why It Exists", "", color), f"  {format_chain(analysis.ancestry)}", ""])

    label = _SOURCE_LABELS[source.type]
    if source.name and source.type is not SourceType.UNKNOWN:
        label = f"{source.name} ({label})"
    lines.append(_field("Source", f"{label}  [confidence {source.confidence:.0%}]", color))
    if source.description:
        lines.append(_field("Description", source.description, color))
    if source.unit_file:
        lines.append(_field("Unit File", source.unit_file, color))
    for key, value in sorted(source.details.items()):
        lines.append(f"  {key}: {value}")

    lines.append("")
    if proc.working_dir:
        lines.append(_field("Working Dir", proc.working_dir, color))
    if proc.git_repo:
        repo = proc.git_repo + (f" ({proc.git_branch})" if proc.git_branch else "")
        lines.append(_field("Git Repo", repo, color))
    if proc.container:
        lines.append(_field("Container", proc.container, color))
    if proc.service:
        lines.append(_field("Service", proc.service, color))
    if proc.listening_ports:
        sockets = ", ".join(
            f"{addr}:{port}" for addr, port in zip(proc.bind_addresses, proc.listening_ports)
        )
        lines.append(_field("Listening", sockets, color))
    if proc.exe_deleted:
        lines.append(paint("Warning: the executable was deleted from disk while running", RED, color))
    return "\n".join(lines).rstrip()


def _process_dict(proc: Process) -> dict:
    return {
        "pid": proc.pid,
        "ppid": proc.ppid,
        "command": proc.command,
        "cmdline": proc.cmdline,
        "exe": proc.exe,
        "started_at": proc.started_at.isoformat() if proc.started_at else None,
        "user": proc.user,
        "working_dir": proc.working_dir,
        "listening": [
            {"address": addr, "port": port}
            for addr, port in zip(proc.bind_addresses, proc.listening_ports)
        ],
        "service": proc.service,
        "container": proc.container,
        "git_repo": proc.git_repo,
        "git_branch": proc.git_branch,
        "exe_deleted": proc.exe_deleted,
    }


def _descendant_list(tree: ProcessTree) -> list[dict]:
    """Descendants below the root in depth-first order, each with its depth."""
    return [
        {"depth": depth, "pid": proc.pid, "ppid": proc.ppid, "command": proc.command}
        for depth, proc in tree.walk()
        if depth > 0
    ]


def to_json(analysis: Analysis, descendants: ProcessTree | None = None) -> str:
    """Serialize an analysis (and optionally its descendants) as JSON."""
    source = analysis.source
    payload = {
        "process": _process_dict(analysis.process),
        "ancestry": [_process_dict(proc) for proc in analysis.ancestry],
        "source": {
            "type": source.type.value,
            "name": source.name,
            "description": source.description,
            "unit_file": source.unit_file,
            "confidence": source.confidence,
            "details": dict(source.details),
        },
    }
    if descendants is not None:
        payload["descendants"] = _descendant_list(descendants)
    return json.dumps(payload, indent=2)
