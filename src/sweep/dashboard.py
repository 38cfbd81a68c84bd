"""TUI table viewer for large sweep reports."""

from __future__ import annotations

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Label, RichLog, Static

from .models import ReportBatch
from .report import cell, columns_for, rows_for


class ErrorPanel(Static):
    """A panel listing the hosts that produced no result."""

    def __init__(self, batch: ReportBatch, **kwargs) -> None:
        super().__init__(**kwargs)
        self.batch = batch

    def compose(self) -> ComposeResult:
        yield Label(f"[bold red]Failed hosts ({len(self.batch.errors)})[/bold red]")
        yield RichLog(id="error-log", highlight=False, markup=True, wrap=True)

    def on_mount(self) -> None:
        log = self.query_one("#error-log", RichLog)
        for item in self.batch.errors:
            log.write(f"[bold]{item.host.name}[/bold] [red]{item.error.kind.value}[/red] {item.error.message}")


class StatusBar(Static):
    """Bottom status bar showing the batch totals."""

    ok: reactive[int] = reactive(0)
    failed: reactive[int] = reactive(0)

    def render(self) -> str:
        return f"{self.ok} host(s) ok | {self.failed} failed | Press 'q' to quit"


class ReportViewer(App):
    """Scrollable, sortable table of a report batch."""

    CSS = """
    #results {
        height: 1fr;
    }

    ErrorPanel {
        border: solid $error;
        height: auto;
        max-height: 12;
    }

    ErrorPanel Label {
        padding: 0 1;
    }

    ErrorPanel RichLog {
        height: auto;
        max-height: 10;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
        ("s", "sort_by_host", "Sort by host"),
    ]

    def __init__(self, batch: ReportBatch, title: str = "sweep report", **kwargs) -> None:
        super().__init__(**kwargs)
        self.batch = batch
        self.report_title = title
        self.rows = rows_for(batch)
        self.columns = columns_for(self.rows)
        self._sort_reverse = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container():
            yield DataTable(id="results", zebra_stripes=True, cursor_type="row")
            if self.batch.errors:
                yield ErrorPanel(self.batch, id="errors")
        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Fill the table once the widgets exist."""
        self.title = self.report_title
        table = self.query_one("#results", DataTable)
        for column in self.columns:
            table.add_column(column, key=column)
        for row in self.rows:
            table.add_row(*(str(cell(row.get(column))) for column in self.columns))

        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.ok = len(self.batch.successes)
        status_bar.failed = len(self.batch.errors)

    def action_sort_by_host(self) -> None:
        table = self.query_one("#results", DataTable)
        table.sort(self.columns[0], reverse=self._sort_reverse)
        self._sort_reverse = not self._sort_reverse

    async def action_quit(self) -> None:
        """Quit the application."""
        self.exit()
