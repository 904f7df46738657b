"""Rich terminal reporter — summary, failure table, verdict."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.table import Table

from hardsnap.run.models import RunResult, RunState


def human_size(num_bytes: int) -> str:
    """Format a byte count as ``512 B``, ``1.5 KiB``, ``3.2 GiB``..."""
    size = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if size < 1024 or unit == "TiB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"


def render(
    result: RunResult,
    *,
    show_summary: bool = True,
    show_failures: bool = True,
    console: Optional[Console] = None,
) -> None:
    """Print the run result to the terminal using Rich."""
    console = console or Console(stderr=True)

    if show_summary:
        _print_summary(console, result)

    if show_failures and result.failures:
        console.print()
        table = Table(
            title="Failed entries",
            show_lines=False,
            title_style="bold",
            border_style="dim",
        )
        table.add_column("Path", style="magenta")
        table.add_column("Error", style="cyan")
        table.add_column("Message")
        for failure in result.failures:
            table.add_row(failure.path, failure.error_kind, failure.message)
        console.print(table)

    console.print()
    if result.dry_run:
        console.print("[bold cyan]Dry run — nothing was written.[/bold cyan]")
    elif result.state is RunState.CANCELLED:
        console.print("[bold red]❌ Cancelled — no snapshot was published.[/bold red]")
    elif result.failed:
        console.print(
            f"[bold yellow]⚠️  Snapshot published with {result.failed} failed "
            f"entr{'y' if result.failed == 1 else 'ies'}.[/bold yellow]"
        )
    else:
        console.print("[bold green]✅ Snapshot complete.[/bold green]")


def _print_summary(console: Console, result: RunResult) -> None:
    console.print()
    if result.snapshot is not None:
        console.print(f"[dim]Snapshot:[/dim]      {result.snapshot}")
    console.print(f"[dim]Linked:[/dim]        {result.linked}")
    console.print(f"[dim]Copied:[/dim]        {result.copied}")
    console.print(f"[dim]Failed:[/dim]        {result.failed}")
    console.print(f"[dim]Bytes copied:[/dim]  {human_size(result.bytes_copied)}")
    console.print(f"[dim]Directories:[/dim]   {result.directories}")
    console.print(f"[dim]Symlinks:[/dim]      {result.symlinks}")
    if result.link_fallbacks:
        console.print(f"[dim]Link fallbacks:[/dim] {result.link_fallbacks}")
    console.print(f"[dim]Skipped:[/dim]       {len(result.skipped)}")
    console.print(f"[dim]Duration:[/dim]      {result.duration_ms:.0f}ms")
