"""Terminal output handling using the Rich library.

OutputHandler is the only place the CLI writes to the terminal: status
lines, spinners, progress bars and the pull/push summaries. It honours the
verbosity level and --no-color.
"""

from contextlib import contextmanager
from typing import Iterator, List

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.spinner import Spinner

from confluence_mirror.models import PushCandidate
from confluence_mirror.sync.pull_orchestrator import PullResult
from confluence_mirror.sync.push_orchestrator import PushBatchResult


class OutputHandler:
    """Handles all terminal output.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Pulled 3 page(s)")
        >>> with handler.spinner("Listing pages..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            force_terminal=not no_color,
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(escape(message))

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def print(self, message: str) -> None:
        """Display message without formatting."""
        self.console.print(escape(message))

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display a spinner while a single operation runs.

        Example:
            >>> with handler.spinner("Fetching space..."):
            ...     space = client.get_space()
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10):
            yield

    @contextmanager
    def progress_bar(self, description: str = "Processing") -> Iterator[Progress]:
        """Display a progress bar for per-page work.

        Yields:
            Progress instance; add a task and advance it per item
        """
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
            transient=True,
        )
        with progress:
            yield progress

    def print_dryrun_notice(self) -> None:
        self.console.print("[yellow]Dry run: no changes were made[/yellow]")

    def print_pull_summary(self, result: PullResult) -> None:
        """Display the change set of a pull and its outcome.

        In dry-run mode the pages that would change are listed individually.
        """
        changes = result.changes
        self.console.print("\n[bold]Pull Summary:[/bold]")

        if changes.is_empty():
            self.console.print("  [dim]─[/dim] Already up to date")
        else:
            if changes.added:
                self.console.print(f"  [green]+[/green] Added: {len(changes.added)} page(s)")
            if changes.modified:
                self.console.print(f"  [blue]↓[/blue] Modified: {len(changes.modified)} page(s)")
            if changes.deleted:
                self.console.print(f"  [red]-[/red] Deleted: {len(changes.deleted)} page(s)")

        if result.dry_run:
            for change in changes.added:
                self.console.print(f"    + {escape(change.title)}")
            for change in changes.modified:
                self.console.print(f"    ~ {escape(change.title)} ({escape(change.local_path or '')})")
            for change in changes.deleted:
                self.console.print(f"    - {escape(change.local_path or change.title)}")

        for warning in result.warnings:
            self.warning(warning)
        for error in result.errors:
            self.error(error)

        if result.dry_run:
            self.print_dryrun_notice()
        elif result.cancelled:
            self.console.print(
                f"\n[yellow]Pull cancelled after {result.applied} change(s)[/yellow]"
            )
        elif result.errors:
            self.console.print(
                f"\n[red]Pull completed with {len(result.errors)} error(s)[/red]"
            )

    def print_push_plan(self, candidates: List[PushCandidate], cycles: List[List[str]]) -> None:
        """Display the push order and any circular link chains.

        New files are marked [N] and modified files [M].
        """
        if not candidates:
            self.console.print("[dim]No local changes to push[/dim]")
            return

        self.console.print(f"\n[bold]Push order ({len(candidates)} file(s)):[/bold]")
        for index, candidate in enumerate(candidates, start=1):
            marker = "N" if candidate.is_new else "M"
            self.console.print(f"  {index}. \\[{marker}] {escape(candidate.path)}")

        if cycles:
            self.warning(f"Circular links detected ({len(cycles)}):")
            for cycle in cycles:
                self.console.print(f"    {escape(' -> '.join(cycle + cycle[:1]))}")

    def print_push_summary(self, result: PushBatchResult) -> None:
        self.console.print("\n[bold]Push Summary:[/bold]")
        self.console.print(f"  [green]↑[/green] Pushed: {result.pushed}")
        self.console.print(f"  [dim]─[/dim] Skipped: {result.skipped}")
        self.console.print(f"  [red]✗[/red] Failed: {result.failed}")

        for page in result.pushed_pages:
            action = "created" if page.created else "updated"
            self.info(f"  {page.path} -> {page.title} ({page.page_id}, v{page.version}, {action})")

        for path, message in result.failed_files:
            self.error(f"{path}: {message}")

        if result.cancelled:
            remaining = len(result.sorted) - result.pushed - result.failed
            self.console.print(
                f"\n[yellow]Push cancelled, {remaining} file(s) not pushed[/yellow]"
            )
