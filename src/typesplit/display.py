"""Rich terminal display for typesplit."""

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from typesplit.models import MigrationRequest, MigrationResult


console = Console()
error_console = Console(stderr=True)


def print_header(request: MigrationRequest) -> None:
    """Print what is about to happen."""
    console.print()
    console.print(
        f"[bold cyan]typesplit[/bold cyan] {request.mode.value} "
        f"{len(request.types)} type(s) -> [bold]{request.destination}[/bold] "
        f"([bold]{request.dest_branch}[/bold])"
    )


def print_step(message: str) -> None:
    """Print a progress step."""
    console.print(f"  {message}")


def create_progress() -> Progress:
    """Create a progress bar for the commit rewrite."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    )


def print_plan(request: MigrationRequest, filter_pattern: str) -> None:
    """Print the resolved plan for a dry run."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value")
    table.add_row("Source:", str(request.source))
    table.add_row("Types:", ", ".join(request.types))
    table.add_row("Filter:", filter_pattern)
    table.add_row("Destination:", f"{request.destination.resolve()} ({request.dest_branch})")
    if request.relocates:
        table.add_row("Relocate:", f"{request.source_path} -> {request.dest_path}")
    if request.mode.value == "move":
        table.add_row("Source branch:", f"{request.prune_branch} ({request.batch_policy.value})")

    console.print()
    console.print(Panel(
        table,
        title="[yellow]DRY RUN[/yellow] - No changes will be made",
        style="yellow",
    ))


def print_summary(result: MigrationResult) -> None:
    """Print the outcome of a migration."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label")
    table.add_column("Value")

    if result.rewrite:
        table.add_row(
            "Commits:",
            f"{result.rewrite.commits_kept} kept, {result.rewrite.commits_pruned} pruned "
            f"of {result.rewrite.commits_seen}",
        )
    if result.destination_url:
        table.add_row("Pushed to:", f"{result.destination_url} ({result.request.dest_branch})")
    if result.content_hash:
        table.add_row("Content hash:", result.content_hash)
    if result.prune:
        table.add_row(
            "Removed:",
            f"{len(result.prune.commits)} type(s) on {result.prune.branch}",
        )

    console.print()
    console.print("[bold green]Migration complete[/bold green]")
    console.print(Panel(table, width=80))


def print_error(message: str) -> None:
    """Print an error message."""
    error_console.print(f"error: {message}", markup=False, highlight=False, soft_wrap=True)


def print_warning(message: str) -> None:
    """Print a warning message."""
    error_console.print(f"warning: {message}", markup=False, highlight=False, soft_wrap=True)


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")
