"""Command-line entry point: resolve a target and explain why it is running."""

import argparse
import sys

from pywitr.analysis import analyze
from pywitr.config import Settings, configure_logging
from pywitr.errors import Ambiguous, WitrError
from pywitr.models import Target, TargetType
from pywitr.platforms import Platform, current_platform
from pywitr.render import (
    render_ancestry,
    render_card,
    render_children,
    render_env,
    render_short,
    render_tree,
    to_json,
)
from pywitr.resolver import TargetResolver
from pywitr.tree import resolve_children, resolve_descendants

PROG = "pywitr"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with target and view options."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Explain why a process is running: who started it and how.",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("name", nargs="?", help="process or service name")
    target.add_argument("-p", "--pid", help="process ID")
    target.add_argument("-o", "--port", help="listening port")

    view = parser.add_mutually_exclusive_group()
    view.add_argument("-s", "--short", action="store_true", help="one-line ancestry")
    view.add_argument("-t", "--tree", action="store_true", help="ancestry as a tree")
    view.add_argument("--children", action="store_true", help="direct children")
    view.add_argument("--descendants", action="store_true", help="full descendant tree")
    view.add_argument("--env", action="store_true", help="command and environment only")
    view.add_argument("--json", action="store_true", help="machine-readable output")
    view.add_argument("--tui", action="store_true", help="interactive viewer")

    parser.add_argument("--no-color", action="store_true", help="disable ANSI colors")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    return parser


def target_from_args(args: argparse.Namespace) -> Target | None:
    """Build the Target named on the command line, or None if none was given."""
    if args.pid is not None:
        return Target(TargetType.PID, args.pid)
    if args.port is not None:
        return Target(TargetType.PORT, args.port)
    if args.name:
        return Target(TargetType.NAME, args.name)
    return None


def report(pid: int, args: argparse.Namespace, settings: Settings, platform: Platform) -> str:
    """Render the requested view for one resolved PID."""
    color = settings.color
    if args.env:
        return render_env(platform.read_process(pid), platform.family, color)
    if args.children:
        parent = platform.read_process(pid)
        return render_children(parent, resolve_children(pid, platform), color)
    if args.descendants:
        return render_tree(resolve_descendants(platform.read_process(pid), platform), color)

    analysis = analyze(pid, platform)
    if args.short:
        return render_short(analysis.ancestry)
    if args.tree:
        return render_ancestry(analysis.ancestry, color)
    if args.json:
        return to_json(analysis, resolve_descendants(analysis.process, platform))
    return render_card(analysis, color)


def main(argv: list[str] | None = None) -> int:
    """Run pywitr; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env(color=not args.no_color, verbose=args.verbose)
    configure_logging(settings)

    target = target_from_args(args)
    if target is None:
        parser.error("a name, --pid or --port is required")

    platform = current_platform()
    resolver = TargetResolver(platform, tool_name="witr")
    try:
        pids = resolver.resolve(target)
    except Ambiguous as exc:
        print(exc.format(PROG))
        return 1
    except WitrError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.tui:
        from pywitr.app import WitrApp

        WitrApp(pids[0], platform=platform).run()
        return 0

    status = 0
    for index, pid in enumerate(pids):
        if index:
            print()
        try:
            print(report(pid, args, settings, platform))
        except WitrError as exc:
            print(f"error: {exc}", file=sys.stderr)
            status = 1
    return status
