"""pywitr - Interactive Textual viewer for one process."""

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static, Tree

from pywitr.analysis import Analysis, analyze
from pywitr.errors import NotFound
from pywitr.models import Process, ProcessTree, SourceType
from pywitr.platforms import Platform, current_platform
from pywitr.render import format_age
from pywitr.tree import resolve_descendants


def process_label(proc: Process) -> Text:
    """Tree label for a process."""
    return Text(f"{proc.command} (pid {proc.pid})")


class SourceBanner(Static):
    """Header widget showing the classification verdict."""

    DEFAULT_CSS = """
    SourceBanner {
        height: auto;
        min-height: 3;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SourceBanner."""
        super().__init__(*args, markup=False, **kwargs)
        self._text = "Loading..."

    @property
    def text(self) -> str:
        """Get the current banner text."""
        return self._text

    def show_analysis(self, analysis: Analysis) -> None:
        """Update the banner with a classification verdict."""
        source = analysis.source
        proc = analysis.process
        if source.type is SourceType.UNKNOWN:
            verdict = "origin unknown"
        else:
            verdict = f"started by {source.name or source.type.value} ({source.type.value})"
        self._text = (
            f"{proc.command} (pid {proc.pid}): {verdict}  "
            f"[confidence {source.confidence:.0%}]"
        )
        if source.unit_file:
            self._text += f"\n{source.unit_file}"
        self.update(self._text)

    def show_error(self, message: str) -> None:
        """Show an error in place of a verdict."""
        self._text = message
        self.update(message)


class AncestryPanel(Container):
    """Ancestry chain down to the target, then the target's descendants."""

    DEFAULT_CSS = """
    AncestryPanel {
        width: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the ancestry panel."""
        yield Tree(Text("ancestry"), id="ancestry-tree")

    def show(self, analysis: Analysis, descendants: ProcessTree | None) -> None:
        """Rebuild the tree from the analysis chain and the target's descendants."""
        tree = self.query_one("#ancestry-tree", Tree)
        chain = analysis.ancestry
        tree.reset(process_label(chain[0]))
        node = tree.root
        for proc in chain[1:]:
            node = node.add(process_label(proc), expand=True)
        if descendants is not None:
            self._add_children(node, descendants)
        tree.root.expand_all()

    def _add_children(self, node, subtree: ProcessTree) -> None:
        """Nest the descendants of `subtree` under `node`."""
        for child in subtree.children:
            if child.children:
                self._add_children(node.add(process_label(child.process)), child)
            else:
                node.add_leaf(process_label(child.process))


class ProcessCard(Container):
    """Field/value table for the target process."""

    DEFAULT_CSS = """
    ProcessCard {
        width: 2fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessCard."""
        super().__init__(*args, **kwargs)
        self._show_env = False
        self._process: Process | None = None

    @property
    def show_env(self) -> bool:
        """Whether environment rows are shown."""
        return self._show_env

    def toggle_env(self) -> bool:
        """Flip environment display and redraw; returns the new state."""
        self._show_env = not self._show_env
        if self._process is not None:
            self.show(self._process)
        return self._show_env

    def compose(self) -> ComposeResult:
        """Compose the process card."""
        yield DataTable(id="process-card")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-card", DataTable)
        table.cursor_type = "row"
        table.add_column("Field", key="field", width=14)
        table.add_column("Value", key="value")

    def rows(self, proc: Process) -> list[tuple[str, str]]:
        """Field/value pairs for `proc`, environment entries last when shown."""
        rows = [
            ("PID", str(proc.pid)),
            ("PPID", str(proc.ppid)),
            ("User", proc.user),
            ("Command", proc.cmdline),
            ("Executable", proc.exe + (" (deleted)" if proc.exe_deleted else "")),
            ("Started", format_age(proc.started_at)),
            ("Working Dir", proc.working_dir),
        ]
        if proc.git_repo:
            rows.append(("Git", f"{proc.git_repo} {proc.git_branch}".strip()))
        if proc.service:
            rows.append(("Service", proc.service))
        if proc.container:
            rows.append(("Container", proc.container))
        for addr, port in zip(proc.bind_addresses, proc.listening_ports):
            rows.append(("Listening", f"{addr}:{port}"))
        if self._show_env:
            if proc.env is None:
                rows.append(("Env", "unavailable"))
            for entry in proc.env or ():
                rows.append(("Env", entry))
        return rows

    def show(self, proc: Process) -> None:
        """Replace the table contents with the rows for `proc`."""
        self._process = proc
        table = self.query_one("#process-card", DataTable)
        table.clear()
        for field, value in self.rows(proc):
            table.add_row(Text(field), Text(value))


class WitrApp(App):
    """Interactive view of why one process is running."""

    TITLE = "pywitr"
    SUB_TITLE = "Why Is This Running"

    CSS = """
    Screen {
        layout: vertical;
    }

    #source-banner {
        dock: top;
    }

    Horizontal {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("e", "toggle_env", "Env"),
    ]

    def __init__(self, pid: int, platform: Platform | None = None) -> None:
        """Initialize the WitrApp for one PID."""
        super().__init__()
        self._pid = pid
        self._platform = platform or current_platform()
        self._analysis: Analysis | None = None

    @property
    def analysis(self) -> Analysis | None:
        """Most recent analysis, or None if the process could not be read."""
        return self._analysis

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield SourceBanner(id="source-banner")
        yield Horizontal(AncestryPanel(), ProcessCard())
        yield Footer()

    def on_mount(self) -> None:
        """Run the first analysis once the widgets are mounted."""
        # Widgets must be mounted before the first analysis fills them
        self.call_after_refresh(self.action_refresh)

    def action_refresh(self) -> None:
        """Re-walk and re-classify the process."""
        banner = self.query_one("#source-banner", SourceBanner)
        try:
            self._analysis = analyze(self._pid, self._platform)
        except NotFound as exc:
            self._analysis = None
            banner.show_error(str(exc))
            return

        descendants = resolve_descendants(self._analysis.process, self._platform)

        banner.show_analysis(self._analysis)
        self.query_one(AncestryPanel).show(self._analysis, descendants)
        self.query_one(ProcessCard).show(self._analysis.process)

    def action_toggle_env(self) -> None:
        """Show or hide environment rows on the process card."""
        shown = self.query_one(ProcessCard).toggle_env()
        self.notify("Environment: " + ("shown" if shown else "hidden"))

