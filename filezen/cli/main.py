"""Main CLI interface for FileZen."""

import click
import json
import csv
import io
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from ..core.session import OrganizerSession
from ..core.rules import RuleStore
from ..core.config import SECTIONS, coerce_value
from ..core.models import Category, FileRecord, DuplicateGroup
from ..core.planner import (
    plan_moves, sort_records, category_stats, format_file_size, SORT_FIELDS
)
from ..core.exceptions import (
    FileZenError, AccessDeniedError, TraversalError, RuleStoreError,
    ValidationError, ExecutionError, ConfigurationError
)

console = Console()

CATEGORY_COLORS = {
    "Documents": "blue",
    "Images": "cyan",
    "Videos": "magenta",
    "Archives": "yellow",
    "Installers": "red",
    "Code": "green",
    "Audio": "bright_magenta",
    "Junk": "bright_black",
    "Unknown": "white",
}


@click.group()
@click.version_option(version="0.1.0")
@click.option('--config', '-c', type=click.Path(path_type=Path),
              help='Configuration file path')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level (overrides config)')
@click.option('--log-file', type=click.Path(path_type=Path),
              help='Log file path (overrides config)')
@click.pass_context
def cli(ctx, config, log_level, log_file):
    """FileZen - scan a folder and sort its files into category folders."""
    from ..core.config import setup_config
    from ..core.logging_config import setup_logging

    config_manager = setup_config(config)
    app_config = config_manager.get_config()

    # command-line overrides apply to this run only
    logging_config = replace(app_config.logging)
    if log_file:
        logging_config.file_path = log_file

    logging_manager = setup_logging(logging_config)
    if log_level:
        logging_manager.set_level(log_level)

    ctx.ensure_object(dict)
    ctx.obj['config'] = app_config
    ctx.obj['config_manager'] = config_manager


def exclusion_options(func):
    """Shared options controlling the exclusion set."""
    func = click.option("--no-default-excludes", is_flag=True,
                        help="Do not skip the configured excluded names")(func)
    func = click.option("--exclude", "-x", multiple=True,
                        help="Additional file or folder name to skip at any depth")(func)
    func = click.option("--yes", "-y", is_flag=True,
                        help="Grant read-write access without asking")(func)
    return func


def _open_session(ctx, directory: Path, exclude: Tuple[str, ...],
                  no_default_excludes: bool, yes: bool) -> OrganizerSession:
    """Ask for access to directory and open a session on it."""
    app_config = ctx.obj['config']

    if not yes and not click.confirm(f"Grant FileZen read-write access to {directory}?", default=True):
        raise AccessDeniedError(f"Access to {directory} was declined")

    excluded = set(exclude)
    if not no_default_excludes:
        excluded.update(app_config.scan.excluded_names)

    return OrganizerSession.open(directory, config=app_config, excluded_names=excluded)


def _run_scan(session: OrganizerSession, verbose: bool):
    if not verbose:
        return session.scan()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        scan_task = progress.add_task(f"Scanning {session.root}...", total=None)
        result = session.scan()
        progress.update(scan_task, completed=True,
                        description=f"Scan complete - found {result.total_files} files")
    return result


@cli.command()
@click.argument("directory", type=click.Path(path_type=Path))
@exclusion_options
@click.option("--sort", "sort_field", type=click.Choice(SORT_FIELDS), default="last_modified",
              help="Sort field for the file listing")
@click.option("--desc/--asc", default=True, help="Sort direction")
@click.option("--format", "-f", type=click.Choice(["table", "json", "csv"]), default="table",
              help="Output format")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def scan(ctx, directory: Path, exclude, no_default_excludes: bool, yes: bool,
         sort_field: str, desc: bool, format: str, verbose: bool):
    """Scan a directory and show the category of every file."""
    try:
        session = _open_session(ctx, directory, exclude, no_default_excludes, yes)
        result = _run_scan(session, verbose)

        records = sort_records(result.records, sort_field, "desc" if desc else "asc")
        _display_file_results(records, format)

        if format != "table":
            return

        console.print(f"\n[bold green]✓ Scan completed[/bold green] in {result.duration:.2f} seconds")
        console.print(f"Files found: [bold]{result.total_files}[/bold]")
        console.print(f"Categorized files: [bold cyan]{result.categorized_files}[/bold cyan]")
        _display_stats(result.records)

        if result.duplicate_groups:
            console.print(f"Probable duplicate groups: [bold yellow]{len(result.duplicate_groups)}[/bold yellow] "
                          "(run 'filezen duplicates' for details)")

    except FileZenError as e:
        handle_cli_error(e, "scan")
        raise click.Abort()


@cli.command()
@click.argument("directory", type=click.Path(path_type=Path))
@exclusion_options
@click.option("--select", "-s", "selected", multiple=True,
              help="File name to move (repeatable); defaults to every categorized file")
@click.option("--all", "select_all", is_flag=True, help="Select every scanned file")
@click.option("--destination", "-d", type=click.Path(path_type=Path),
              help="Root that receives the category folders (defaults to DIRECTORY)")
@click.option("--dry-run", is_flag=True, help="Show the planned moves without moving anything")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def organize(ctx, directory: Path, exclude, no_default_excludes: bool, yes: bool,
             selected, select_all: bool, destination: Optional[Path], dry_run: bool, verbose: bool):
    """Move selected files into category folders."""
    try:
        session = _open_session(ctx, directory, exclude, no_default_excludes, yes)
        _run_scan(session, verbose)

        if select_all:
            selection = [record.name for record in session.records]
        elif selected:
            selection = list(selected)
        else:
            selection = session.selection

        operations = plan_moves(session.records, selection)

        if dry_run or verbose:
            _display_plan(operations)

        if dry_run:
            console.print(f"\n[bold yellow]DRY RUN: {len(operations)} file(s) would be moved[/bold yellow]")
            return

        if not operations:
            console.print("[yellow]Nothing to move.[/yellow]")
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console
        ) as progress:
            move_task = progress.add_task("Moving files...", total=100)
            summary = session.organize(
                selection=selection,
                destination_root=destination,
                on_progress=lambda value: progress.update(move_task, completed=value),
            )

        console.print(f"\nMoves attempted: [bold]{summary.attempted}[/bold]")
        console.print(f"Succeeded: [bold green]{summary.succeeded}[/bold green]")
        console.print(f"Failed: [bold red]{summary.failed}[/bold red]")

        if not summary.success:
            handle_cli_error(ExecutionError.from_summary(summary), "organize")
            ctx.exit(1)

        console.print("[bold green]✓ Organization complete[/bold green]")

    except FileZenError as e:
        handle_cli_error(e, "organize")
        raise click.Abort()


@cli.command()
@click.argument("directory", type=click.Path(path_type=Path))
@exclusion_options
@click.pass_context
def duplicates(ctx, directory: Path, exclude, no_default_excludes: bool, yes: bool):
    """List files that share an identical size (probable duplicates)."""
    try:
        session = _open_session(ctx, directory, exclude, no_default_excludes, yes)
        result = session.scan()

        if not result.duplicate_groups:
            console.print("[green]No probable duplicates found.[/green]")
            return

        _display_duplicates(result.duplicate_groups)
        console.print("\n[dim]Groups are based on file size only; contents are not compared.[/dim]")

    except FileZenError as e:
        handle_cli_error(e, "duplicates")
        raise click.Abort()


@cli.group()
def rules():
    """Manage custom extension rules."""
    pass


def _rule_store(ctx) -> RuleStore:
    store = RuleStore(config=ctx.obj['config'])
    store.load()
    return store


@rules.command('list')
@click.pass_context
def list_rules(ctx):
    """Show all custom rules."""
    try:
        current = _rule_store(ctx).get()
    except RuleStoreError as e:
        handle_cli_error(e, "list rules")
        raise click.Abort()

    if not current:
        console.print("[yellow]No custom rules defined.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Extension", style="cyan")
    table.add_column("Category", justify="center")
    for extension, category in sorted(current.items()):
        color = CATEGORY_COLORS.get(category.value, "white")
        table.add_row(f".{extension}", f"[{color}]{category.value}[/{color}]")
    console.print(table)


@rules.command('set')
@click.argument('extension')
@click.argument('category', type=click.Choice(Category.labels(), case_sensitive=False))
@click.pass_context
def set_rule(ctx, extension: str, category: str):
    """Always put files with EXTENSION into CATEGORY."""
    label = next(value for value in Category.labels() if value.lower() == category.lower())
    try:
        _rule_store(ctx).set(extension, label)
        console.print(f"[green]✓[/green] .{extension.lstrip('.').lower()} -> {label}")
    except (RuleStoreError, ValidationError) as e:
        handle_cli_error(e, "set rule")
        raise click.Abort()


@rules.command('remove')
@click.argument('extension')
@click.pass_context
def remove_rule(ctx, extension: str):
    """Remove the rule for EXTENSION."""
    try:
        removed = _rule_store(ctx).delete(extension)
    except (RuleStoreError, ValidationError) as e:
        handle_cli_error(e, "remove rule")
        raise click.Abort()

    if removed:
        console.print(f"[green]✓[/green] Removed rule for .{extension.lstrip('.').lower()}")
    else:
        console.print(f"[yellow]No rule for .{extension.lstrip('.').lower()}[/yellow]")


@cli.command()
@click.option("--port", "-p", type=int, help="Port to run the web server on")
@click.option("--host", "-h", help="Host to bind the web server to")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def web(ctx, port: Optional[int], host: Optional[str], debug: bool):
    """Start the JSON API server."""
    from ..web.app import create_app

    app_config = ctx.obj['config']
    host = host or app_config.web.host
    port = port or app_config.web.port
    debug = debug or app_config.web.debug

    console.print("[bold blue]Starting FileZen API server...[/bold blue]")
    console.print(f"Server: http://{host}:{port}/api")
    console.print(f"Debug mode: {'enabled' if debug else 'disabled'}")
    console.print("\n[bold green]Press Ctrl+C to stop the server[/bold green]\n")

    try:
        app = create_app({
            'DEBUG': debug,
            'SECRET_KEY': app_config.web.secret_key,
            'FILEZEN_CONFIG': app_config,
        })
        app.run(host=host, port=port, debug=debug)
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Server stopped by user[/bold yellow]")


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command('show')
@click.pass_context
def show_config(ctx):
    """Show current configuration."""
    app_config = ctx.obj['config']

    console.print("[bold blue]Current Configuration:[/bold blue]\n")

    console.print("[bold]Rules:[/bold]")
    console.print(f"  Path: {app_config.rules.path}")
    console.print(f"  Timeout: {app_config.rules.timeout}s")

    console.print("\n[bold]Scan:[/bold]")
    console.print(f"  Excluded names: {', '.join(app_config.scan.excluded_names)}")
    console.print(f"  Follow symlinks: {app_config.scan.follow_symlinks}")

    console.print("\n[bold]Oracle:[/bold]")
    console.print(f"  Enabled: {app_config.oracle.enabled}")
    console.print(f"  Model: {app_config.oracle.model}")
    console.print(f"  API key variable: {app_config.oracle.api_key_env}")
    console.print(f"  Timeout: {app_config.oracle.timeout}s")

    console.print("\n[bold]Organize:[/bold]")
    console.print(f"  Audit capacity: {app_config.organize.audit_capacity}")
    console.print(f"  Rescan after organize: {app_config.organize.rescan_after_organize}")

    console.print("\n[bold]Web:[/bold]")
    console.print(f"  Host: {app_config.web.host}")
    console.print(f"  Port: {app_config.web.port}")
    console.print(f"  Debug: {app_config.web.debug}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  Level: {app_config.logging.level}")
    console.print(f"  File enabled: {app_config.logging.file_enabled}")
    console.print(f"  File path: {app_config.logging.file_path}")
    console.print(f"  Console enabled: {app_config.logging.console_enabled}")


@config.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def set_config(ctx, key, value):
    """Set a configuration value. Use dot notation for nested keys (e.g., oracle.model)."""
    config_manager = ctx.obj['config_manager']
    app_config = ctx.obj['config']

    try:
        keys = key.split('.')
        if len(keys) != 2:
            raise ConfigurationError("Key must be in format 'section.key' (e.g., 'oracle.model')")

        section, setting = keys

        if section not in SECTIONS:
            raise ConfigurationError(f"Unknown configuration section: {section}")

        section_obj = getattr(app_config, section)

        if not hasattr(section_obj, setting):
            raise ConfigurationError(f"Unknown setting '{setting}' in section '{section}'")

        converted_value = coerce_value(getattr(section_obj, setting), value)

        setattr(section_obj, setting, converted_value)
        config_manager.save_to_file()

        console.print(f"[green]✓[/green] Set {key} = {converted_value}")

    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort()


@config.command('reset')
@click.confirmation_option(prompt='Are you sure you want to reset all configuration to defaults?')
@click.pass_context
def reset_config(ctx):
    """Reset configuration to default values."""
    ctx.obj['config_manager'].reset_to_defaults()
    console.print("[green]✓ Configuration reset to defaults[/green]")


def _display_file_results(results: List[FileRecord], format: str):
    """Display file records in the specified format."""
    if format == "json":
        click.echo(json.dumps([record.to_dict() for record in results], indent=2))

    elif format == "csv":
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["Name", "Path", "Category", "Size", "Modified", "Extension"])
        for record in results:
            writer.writerow([
                record.name,
                record.relative_path,
                record.category.value,
                record.size,
                record.modified_date.isoformat(),
                record.extension
            ])
        click.echo(output.getvalue().strip())

    else:
        if not results:
            console.print("[yellow]No files found.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan", no_wrap=False, max_width=30)
        table.add_column("Category", justify="center")
        table.add_column("Size", justify="right")
        table.add_column("Modified", style="blue")
        table.add_column("Path", style="dim", no_wrap=False, max_width=50)

        for record in results:
            color = CATEGORY_COLORS.get(record.category.value, "white")
            table.add_row(
                record.name,
                f"[{color}]{record.category.value}[/{color}]",
                format_file_size(record.size),
                record.modified_date.strftime("%Y-%m-%d %H:%M"),
                record.relative_path
            )

        console.print(table)


def _display_stats(records: List[FileRecord]):
    stats = category_stats(records)
    if not stats:
        return
    parts = []
    for label, count in sorted(stats.items(), key=lambda item: -item[1]):
        color = CATEGORY_COLORS.get(label, "white")
        parts.append(f"[{color}]{label}[/{color}]: {count}")
    console.print("By category: " + ", ".join(parts))


def _display_plan(operations):
    if not operations:
        console.print("[yellow]No files selected for moving.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Source", style="cyan", no_wrap=False, max_width=50)
    table.add_column("Target folder", justify="center")
    for index, operation in enumerate(operations, start=1):
        color = CATEGORY_COLORS.get(operation.target_category.value, "white")
        label = operation.target_category.value
        table.add_row(str(index), operation.source_relative_path, f"[{color}]{label}/[/{color}]")
    console.print(table)


def _display_duplicates(groups: List[DuplicateGroup]):
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Group", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Files", style="cyan", no_wrap=False)
    for group in groups:
        table.add_row(group.id, format_file_size(group.size), "\n".join(group.paths))
    console.print(table)


def handle_cli_error(error: Exception, operation: str = "operation") -> None:
    """
    Handle CLI errors with appropriate user feedback.

    Args:
        error: The exception that occurred
        operation: Description of the operation that failed
    """
    if isinstance(error, AccessDeniedError):
        console.print(f"[bold red]Access Denied:[/bold red] {error}")
        console.print("[yellow]Check that the folder exists and that you have read-write permission, then start again.[/yellow]")
    elif isinstance(error, TraversalError):
        console.print(f"[bold red]Scan Error:[/bold red] {error}")
        console.print("[yellow]File system traversal failed; no results were kept.[/yellow]")
    elif isinstance(error, ExecutionError):
        console.print(f"[bold red]Move Error:[/bold red] {error}")
        console.print(f"[yellow]{error.succeeded} of {error.attempted} files were moved. "
                      "Files that failed are still in their original location.[/yellow]")
    elif isinstance(error, RuleStoreError):
        console.print(f"[bold red]Rule Store Error:[/bold red] {error}")
        console.print("[yellow]Check that the rules database location is writable.[/yellow]")
    elif isinstance(error, FileZenError):
        console.print(f"[bold red]Error:[/bold red] {error}")
    else:
        console.print(f"[bold red]Unexpected Error:[/bold red] {error}")
        console.print("[yellow]An unexpected error occurred. Please check the logs for more details.[/yellow]")

    logging.getLogger(__name__).error(f"CLI error in {operation}: {error}")


if __name__ == "__main__":
    cli()
