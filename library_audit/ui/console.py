"""Terminal output: progress status, warnings and report tables."""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models import CompletionMetric, IncompleteDLC, IncompleteUpdate

log = structlog.stdlib.get_logger()

UP_TO_DATE_MESSAGE = "All NSP's are up to date!"
ALL_DLC_MESSAGE = "You have all the DLCs!"


class ConsoleReporter:
    """Writes run progress and reports to the terminal.

    Each stage gets its own status spinner through :meth:`stage`; the spinner
    is stopped when the stage's block exits, whether it finishes or raises.
    """

    def __init__(self, console: Console | None = None, spinner: str = "dots") -> None:
        self.console = console or Console()
        self.spinner = spinner
        self._active_stage: str | None = None

    @property
    def active_stage(self) -> str | None:
        """Name of the stage whose spinner is currently running."""
        return self._active_stage

    @contextmanager
    def stage(self, message: str) -> Iterator[None]:
        """Show ``message`` with a spinner for the duration of the block."""
        self.console.print(f"\n{escape(message)}", highlight=False)
        self._active_stage = message
        try:
            with self.console.status(escape(message), spinner=self.spinner):
                yield
        finally:
            self._active_stage = None

    def info(self, message: str) -> None:
        self.console.print(escape(message), highlight=False)

    def warning(self, message: str) -> None:
        self.console.print(f"[bold yellow]!!NOTE!!:[/] {escape(message)}", highlight=False)

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]{escape(message)}[/]", highlight=False)

    def completion(self, metric: CompletionMetric) -> None:
        self.console.print(
            f"Local library completion status: {metric.percent:.2f}% "
            f"(have {metric.owned} titles, out of {metric.total} titles)",
            highlight=False,
        )
        unmatched = metric.local_titles - metric.owned
        if unmatched > 0:
            self.console.print(f"{unmatched} local titles were not found in the catalog", highlight=False)

    def missing_updates(self, records: list[IncompleteUpdate]) -> None:
        """Render the missing update table, or a single line when nothing is missing."""
        if not records:
            self.console.print(f"\n{UP_TO_DATE_MESSAGE}\n")
            return

        self.console.print("\nFound available updates:\n")
        table = Table(show_footer=True, header_style="bold cyan", footer_style="bold")
        table.add_column("#")
        table.add_column("Title")
        table.add_column("TitleId")
        table.add_column("Local version")
        table.add_column("Latest Version", footer="Total")
        table.add_column("Update Date", footer=str(len(records)))

        for index, record in enumerate(records):
            table.add_row(
                str(index),
                escape(record.name),
                record.title_id,
                str(record.local_version),
                str(record.latest_version),
                record.latest_release_date,
            )
        self.console.print(table)

    def missing_dlc(self, records: list[IncompleteDLC]) -> None:
        """Render the missing DLC table, or a single line when nothing is missing."""
        if not records:
            self.console.print(f"\n{ALL_DLC_MESSAGE}\n")
            return

        self.console.print("\nFound missing DLCS:\n")
        table = Table(show_footer=True, header_style="bold cyan", footer_style="bold")
        table.add_column("#")
        table.add_column("Title")
        table.add_column("TitleId", footer="Total")
        table.add_column("Missing DLCs (titleId - Name)", footer=str(len(records)))

        for index, record in enumerate(records):
            table.add_row(
                str(index),
                escape(record.name),
                record.title_id,
                "\n".join(escape(str(dlc)) for dlc in record.missing),
            )
        self.console.print(table)
