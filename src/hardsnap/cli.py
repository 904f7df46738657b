"""hardsnap CLI — Typer application with backup and init commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hardsnap import __version__

app = typer.Typer(
    name="hardsnap",
    help="Incremental, hardlink-deduplicated directory snapshots.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


# ── backup ────────────────────────────────────────────────────────────────────


@app.command()
def backup(
    source: Path = typer.Argument(..., help="Directory to back up"),
    destination: Path = typer.Argument(..., help="Path of the new snapshot (must not exist)"),
    reference: Optional[Path] = typer.Option(None, "--ref", "-r", help="Previous snapshot to deduplicate against"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .hardsnap.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json | yaml"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write report to file"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Number of parallel workers"),
    deadline: Optional[float] = typer.Option(None, "--deadline", help="Cancel the run after this many seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Log every linked/copied entry"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be linked/copied without writing"),
) -> None:
    """Create a snapshot of SOURCE at DESTINATION, hardlinking unchanged files from --ref."""
    from hardsnap.config.loader import ConfigError, load_config, validate_config
    from hardsnap.errors import FatalSetupError
    from hardsnap.log import configure_logging
    from hardsnap.output import json_report, terminal, yaml_report
    from hardsnap.run.coordinator import RunCoordinator
    from hardsnap.run.models import RunState

    # --- Load config ---
    try:
        cfg = load_config(source, config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    # --- CLI overrides ---
    if format:
        if format not in ("terminal", "json", "yaml"):
            console.print(f"[bold red]Invalid format:[/bold red] {format}")
            raise typer.Exit(code=2)
        cfg.output.format = format  # type: ignore[assignment]
    if workers is not None:
        cfg.backup.workers = workers
    if deadline is not None:
        cfg.backup.deadline_seconds = deadline
    if debug:
        cfg.logging.level = "debug"
    elif verbose:
        cfg.logging.level = "info"
    try:
        validate_config(cfg)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    configure_logging(cfg.logging.level, cfg.logging.file, console=console)

    coordinator = RunCoordinator(source, destination, reference, config=cfg)

    # --- Run ---
    try:
        result = coordinator.plan() if dry_run else coordinator.run()
    except FatalSetupError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    # --- Output ---
    report_text: Optional[str] = None

    if cfg.output.format == "terminal":
        terminal.render(
            result,
            show_summary=cfg.output.show_summary,
            show_failures=cfg.output.show_failures,
            console=console,
        )
    elif cfg.output.format == "json":
        report_text = json_report.render(result)
        print(report_text)
    elif cfg.output.format == "yaml":
        report_text = yaml_report.render(result)
        print(report_text, end="")

    # --- Write to file ---
    if output:
        if report_text is None:
            report_text = json_report.render(result)
        Path(output).write_text(report_text, encoding="utf-8")
        if verbose:
            console.print(f"[dim]Report written to {output}[/dim]")

    # --- Exit code ---
    if result.state is RunState.CANCELLED or result.failed:
        raise typer.Exit(code=1)
    raise typer.Exit(code=0)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init(
    source: Path = typer.Argument(Path("."), help="Directory that will be backed up"),
    full: bool = typer.Option(False, "--full", help="Include all config options with comments"),
) -> None:
    """Generate a starter .hardsnap.toml in the source directory."""
    from hardsnap.config.defaults import DEFAULT_TOML, FULL_TOML
    from hardsnap.config.loader import CONFIG_FILENAME

    if not source.is_dir():
        console.print(f"[bold red]Error:[/bold red] not a directory: {source}")
        raise typer.Exit(code=2)

    config_path = source / CONFIG_FILENAME
    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    template = FULL_TOML if full else DEFAULT_TOML
    config_path.write_text(template, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"hardsnap {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """hardsnap — incremental snapshots that share unchanged files via hardlinks."""
