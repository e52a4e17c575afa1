"""Console reporter using Rich library for formatted CLI output.

Provides colorful, formatted output during suite execution including:
- Endpoint header
- A progress line per case with pass/fail indicator
- Final summary table
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from s3verify.models import CaseOutcome, ResultStatus
from s3verify.reporters.base import Reporter

STATUS_LABELS = {
    ResultStatus.PASS: "[green][PASS][/green]",
    ResultStatus.FAIL: "[red][FAIL][/red]",
    ResultStatus.ERROR: "[yellow][ERROR][/yellow]",
}

SUMMARY_SYMBOLS = {
    ResultStatus.PASS: "[green]OK[/green]",
    ResultStatus.FAIL: "[red]X[/red]",
    ResultStatus.ERROR: "[yellow]?[/yellow]",
}


def progress_prefix(index: int, total: int, name: str) -> str:
    """Progress prefix such as "[03/13] PutObject:"."""
    return f"[{index:02d}/{total}] {name}:"


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, suppress per-case output (only show summary)
        console: Optional Console to print to (defaults to stdout)
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet

    def on_suite_start(self, config, total: int) -> None:
        self.console.print()
        self.console.print(
            Rule(
                f"[bold cyan]Verifying: {config.endpoint_url} ({config.region})[/bold cyan]",
                style="cyan",
                characters="-",
            )
        )

    def on_case_start(self, index: int, total: int, case) -> None:
        """Currently a no-op for console reporter."""
        pass

    def on_case_complete(self, index: int, total: int, outcome: CaseOutcome) -> None:
        """Displays the progress line for a finished case."""
        if self.quiet:
            return

        prefix = progress_prefix(index, total, outcome.case_name)
        self.console.print(f"{prefix} {STATUS_LABELS[outcome.status]}", highlight=False)

        if outcome.error is not None:
            phase = outcome.phase.value if outcome.phase else "run"
            self.console.print(f"     [dim]{phase}: {escape(outcome.error_message)}[/dim]", highlight=False)
        if outcome.cleanup_error is not None:
            self.console.print(
                f"     [dim yellow]cleanup: {escape(outcome.cleanup_message)}[/dim yellow]",
                highlight=False,
            )

    def on_suite_complete(self, result) -> None:
        """Displays a summary table of every case."""
        if not result.outcomes:
            self.console.print("[yellow]No results to display.[/yellow]")
            return

        self.console.print()
        self.console.print(Rule("[bold]Compliance Summary[/bold]", style="magenta", characters="-"))

        table = Table(
            title="",
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
            box=box.ASCII,
        )
        table.add_column("Case", style="cyan", no_wrap=True)
        table.add_column("Result", justify="center", no_wrap=True)
        table.add_column("Phase", justify="center", no_wrap=True)
        table.add_column("Time", justify="right", no_wrap=True)

        for outcome in result.outcomes:
            table.add_row(
                outcome.case_name,
                SUMMARY_SYMBOLS[outcome.status],
                outcome.phase.value if outcome.phase else "-",
                f"{outcome.duration_seconds:.1f}s",
            )

        self.console.print(table)

        if result.setup_error is not None:
            self.console.print(f"[dim red]Shared fixture setup: {escape(str(result.setup_error))}[/dim red]")
        if result.cleanup_error is not None:
            self.console.print(f"[dim red]Shared fixture cleanup: {escape(str(result.cleanup_error))}[/dim red]")

        if result.all_passed:
            status = "[bold green]PASSED[/bold green]"
        else:
            status = "[bold red]FAILED[/bold red]"
        self.console.print(
            f"{status}: {result.passed} passed, {result.failed} failed, "
            f"{result.errors} errors in {result.total_duration:.1f}s"
        )
        self.console.print()
