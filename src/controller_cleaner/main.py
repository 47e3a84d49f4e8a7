"""Controller Cleaner CLI - iterative dead-code removal for Java controller code."""
from pathlib import Path
from typing import List, Optional

import click
import typer
from rich.markup import escape
from rich.table import Table

from .analyzer.code_model import JavaSourceTree
from .analyzer.liveness import CleanupAnalysis
from .analyzer.policy import ClassMode, FieldMode
from .config import MARKER_TEXT, __version__, get_config
from .driver import Report, RunOutcome, analyze_deprecated_controllers, analyze_marked_files, \
    run_deprecated_controller_cleanup, run_marked_file_cleanup
from .errors import ModelReadError
from .jobs import DeprecatedControllerJob, MarkedFileJob
from .reaper.backup import SafeBackup
from .reaper.marker import FileMarkingCoordinator
from .utils.progress import ConsoleProgressSink
from .utils.safe_console import SafeConsole

app = typer.Typer(
    name="controller-cleaner",
    help="Iterative dead-code removal for Java controller code bases",
    add_completion=False
)
console = SafeConsole()

FIELD_MODES = click.Choice([m.value for m in FieldMode], case_sensitive=False)
CLASS_MODES = click.Choice([m.value for m in ClassMode], case_sensitive=False)

# Backup management sub-command
trash_app = typer.Typer(name="trash", help="Inspect and restore file backups")


def _fail(message: str):
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    raise typer.Exit(1)


def _project_root(project_path: str) -> Path:
    root = Path(project_path).resolve()
    if not root.exists():
        _fail(f"Project path does not exist: {root}")
    if not root.is_dir():
        _fail(f"Project path is not a directory: {root}")
    return root


def _load_config():
    try:
        return get_config()
    except ValueError as e:
        _fail(f"Invalid configuration: {e}")


def _field_mode(value: Optional[str], config) -> FieldMode:
    return FieldMode(value) if value else config.field_mode


def _class_mode(value: Optional[str], config) -> ClassMode:
    return ClassMode(value) if value else config.class_mode


def _provider(root: Path, config, no_backup: bool = False) -> JavaSourceTree:
    backup = None
    if config.backup_enabled and not no_backup:
        backup = SafeBackup(root / config.trash_path)
    return JavaSourceTree(root, backup=backup)


def _confirm(yes: bool):
    def confirm(summary: str) -> bool:
        if yes:
            return True
        return typer.confirm("Proceed with cleanup?", default=False)
    return confirm


def _print_analysis(analysis: CleanupAnalysis, categories, title: str):
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Symbol", style="cyan", no_wrap=False)
    table.add_column("File", style="green")
    table.add_column("Line", justify="right")

    for category in categories:
        for symbol in analysis.symbols(category):
            table.add_row(category.label, escape(symbol.display_name), escape(symbol.file_path), str(symbol.line))

    console.print(table)


def _print_report(report: Report, categories):
    if report.outcome == RunOutcome.FAILED:
        _fail(report.error or "Cleanup failed")

    if report.outcome != RunOutcome.COMPLETED:
        return

    table = Table(title=f"{report.job}: {report.passes_run} passes", show_header=True, header_style="bold cyan")
    table.add_column("Category", style="cyan")
    table.add_column("Removed", justify="right", style="green")
    for category in categories:
        table.add_row(category.label, str(report.removed_counts.get(category, 0)))
    console.print(table)

    if report.failures:
        console.print(f"\n[bold yellow]{len(report.failures)} removals failed:[/bold yellow]")
        for name, reason in report.failures:
            console.print(f"  [red]✗[/red] {escape(name)}: {escape(reason)}")

    if report.marked_files:
        console.print(f"\n[bold blue]Marked for cleanup:[/bold blue] {len(report.marked_files)} files")
        console.print("[dim]Run 'controller-cleaner clean-marked' to remove what they no longer use.[/dim]")


@app.command()
def audit(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    marked: bool = typer.Option(False, "--marked", help=f"Analyze files marked with '{MARKER_TEXT}' instead of controllers"),
    field_mode: str = typer.Option(None, "--field-mode", click_type=FIELD_MODES, help="Unused field policy: final-private or non-public"),
    class_mode: str = typer.Option(None, "--class-mode", click_type=CLASS_MODES, help="Empty class policy: empty or no-methods"),
):
    """List what a cleanup would remove, without changing anything."""
    root = _project_root(project_path)
    config = _load_config()
    provider = _provider(root, config, no_backup=True)

    console.print(f"[bold blue]Analyzing project:[/bold blue] {escape(str(root))}\n")

    try:
        if marked:
            job = MarkedFileJob(
                policy=config.annotation_policy(),
                field_mode=_field_mode(field_mode, config),
                class_mode=_class_mode(class_mode, config),
            )
            analysis = analyze_marked_files(provider, job=job)
        else:
            job = DeprecatedControllerJob(
                policy=config.annotation_policy(),
                controller_name_fallback=config.controller_name_fallback,
            )
            analysis = analyze_deprecated_controllers(provider, job=job)
    except ModelReadError as e:
        _fail(str(e))

    if analysis.is_empty:
        console.print(f"[bold green]{escape(job.empty_message(analysis))}[/bold green]")
        return

    _print_analysis(analysis, job.categories, title=job.title)
    console.print(f"\n[bold yellow]Summary:[/bold yellow]")
    for category in job.categories:
        console.print(f"  {category.label.capitalize()}: {analysis.count(category)}")
    console.print(f"  Files analyzed: {len(analysis.files)}")


@app.command()
def clean(
    project_path: str = typer.Argument(".", help="Project root path to clean"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    no_mark: bool = typer.Option(False, "--no-mark", help="Do not mark touched files for a follow-up cleanup"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not back up files before rewriting them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress messages"),
):
    """Remove unused deprecated controller methods and the methods only they called."""
    root = _project_root(project_path)
    config = _load_config()
    provider = _provider(root, config, no_backup=no_backup)

    job = DeprecatedControllerJob(
        policy=config.annotation_policy(),
        controller_name_fallback=config.controller_name_fallback,
        mark_after_removal=config.mark_after_removal and not no_mark,
    )
    sink = ConsoleProgressSink(console, job.title, verbose=verbose)
    report = run_deprecated_controller_cleanup(provider, _confirm(yes), job=job, sink=sink)
    _print_report(report, job.categories)


@app.command("clean-marked")
def clean_marked(
    project_path: str = typer.Argument(".", help="Project root path to clean"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    field_mode: str = typer.Option(None, "--field-mode", click_type=FIELD_MODES, help="Unused field policy: final-private or non-public"),
    class_mode: str = typer.Option(None, "--class-mode", click_type=CLASS_MODES, help="Empty class policy: empty or no-methods"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not back up files before rewriting them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress messages"),
):
    """Remove unused imports, fields and empty classes from marked files."""
    root = _project_root(project_path)
    config = _load_config()
    provider = _provider(root, config, no_backup=no_backup)

    job = MarkedFileJob(
        policy=config.annotation_policy(),
        field_mode=_field_mode(field_mode, config),
        class_mode=_class_mode(class_mode, config),
    )
    sink = ConsoleProgressSink(console, job.title, verbose=verbose)
    report = run_marked_file_cleanup(provider, _confirm(yes), job=job, sink=sink)
    _print_report(report, job.categories)


def _coordinator(project_path: str, files: List[str]):
    root = _project_root(project_path)
    provider = JavaSourceTree(root)
    targets = []
    for file_name in files:
        path = Path(file_name).resolve()
        if not path.is_file():
            _fail(f"File does not exist: {path}")
        targets.append(path.as_posix())
    return FileMarkingCoordinator(provider, sink=ConsoleProgressSink(console, "Controller Cleaner")), targets


@app.command()
def mark(
    files: List[str] = typer.Argument(..., help="Java files to mark"),
    project_path: str = typer.Option(".", "--project", "-p", help="Project root path"),
):
    """Mark files so the next clean-marked run sweeps them."""
    coordinator, targets = _coordinator(project_path, files)
    changed = coordinator.mark(targets)
    console.print(f"[green]✓ Marked {len(changed)} of {len(targets)} files[/green]")


@app.command()
def unmark(
    files: List[str] = typer.Argument(..., help="Java files to unmark"),
    project_path: str = typer.Option(".", "--project", "-p", help="Project root path"),
):
    """Remove the cleanup marker from files."""
    coordinator, targets = _coordinator(project_path, files)
    changed = coordinator.unmark(targets)
    console.print(f"[green]✓ Unmarked {len(changed)} of {len(targets)} files[/green]")


# =========================================================================
# TRASH MANAGEMENT COMMANDS
# =========================================================================

@trash_app.command("list")
def trash_list(
    project_path: str = typer.Argument(".", help="Project root path"),
):
    """Show backups taken before files were rewritten."""
    root = _project_root(project_path)
    config = _load_config()
    backup = SafeBackup(root / config.trash_path)
    records = backup.manifest.get_all_backups()

    if not records:
        console.print("[dim]Trash is empty.[/dim]")
        return

    table = Table(title=f"Backups: {root}", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan")
    table.add_column("Original File", style="green", no_wrap=False)
    table.add_column("Created", style="dim")
    table.add_column("Restored", justify="center")

    for record in records:
        table.add_row(
            record["id"],
            escape(record["original_path"]),
            record.get("created_at", ""),
            "yes" if record.get("restored") else "no",
        )

    console.print(table)
    info = backup.get_trash_info()
    console.print(f"\n  Total backups: {info['total_backups']}")
    console.print(f"  Not yet restored: {info['unrestored_count']}")


@trash_app.command("restore")
def trash_restore(
    project_path: str = typer.Argument(..., help="Project root path"),
    backup_id: str = typer.Argument(..., help="Backup ID from 'trash list'"),
):
    """Copy a backed-up file over its current version."""
    root = _project_root(project_path)
    config = _load_config()
    backup = SafeBackup(root / config.trash_path)

    try:
        backup.restore(backup_id)
    except (ValueError, OSError) as e:
        _fail(str(e))

    console.print(f"[green]✓ Restored backup {escape(backup_id)}[/green]")


# Register trash sub-command
app.add_typer(trash_app)


@app.callback()
def main():
    """Controller Cleaner - iterative dead-code removal for Java controllers."""


@app.command()
def version():
    """Show the installed version."""
    console.print(f"controller-cleaner {__version__}")


if __name__ == "__main__":
    app()
