"""CLI entry point using typer."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from unified_history import __version__
from unified_history import config as config_module
from unified_history.config import AppConfig, load_config, save_config
from unified_history.errors import HistoryError, UsageError
from unified_history.services.backup import backup as backup_store
from unified_history.services.backup import import_history
from unified_history.services.hook import SUPPORTED_SHELLS, render_hook
from unified_history.services.maintenance import deduplicate, statistics
from unified_history.services.search import ENGINES, recent as recent_records
from unified_history.services.search import search as search_store
from unified_history.services.search import search_with_context
from unified_history.services.session import Session
from unified_history.storage.models import HistoryRecord
from unified_history.storage.store import HistoryStore
from unified_history.utils.formatting import (
    TIME_FORMATS,
    format_size,
    format_timestamp,
    highlight,
    printable,
)
from unified_history.utils.system import check_store_location

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="uhist",
    help="Search and maintain shell history shared across machines.",
    add_completion=False,
)
console = Console()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SEARCH_USAGE = "Usage: uhist search <pattern> [max_results] [--all]"
CONTEXT_USAGE = "Usage: uhist context <pattern> [context_lines]"


def _setup_logging(cfg: AppConfig, verbose: bool) -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    handlers: list[logging.Handler] = []
    if cfg.logging.file:
        log_path = Path(cfg.logging.file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(str(log_path), delay=True))
        except OSError as e:
            console.print(f"[dim]Logging to {escape(str(log_path))} disabled: {escape(str(e))}[/dim]")
    if verbose:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        handlers=handlers or [logging.NullHandler()],
    )


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except HistoryError as e:
        logger.debug("Command failed: %s", e.message)
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(e.exit_code)


def _store(cfg: AppConfig) -> HistoryStore:
    return HistoryStore(cfg.store.resolved_path())


def _readable_store(cfg: AppConfig) -> HistoryStore:
    """The shared store, or the session-local history file when it is missing."""
    store = _store(cfg)
    if store.exists:
        return store
    fallback = HistoryStore(cfg.store.resolved_fallback_path())
    console.print(
        f"[yellow]History store not found at {escape(str(store.path))}; "
        f"using session-local history {escape(str(fallback.path))}[/yellow]"
    )
    return fallback


def _time_format(cfg: AppConfig, override: str | None) -> str:
    mode = override or cfg.display.time_format
    if mode not in TIME_FORMATS:
        raise UsageError(f"Unknown time format '{mode}' (choose from: {', '.join(TIME_FORMATS)})")
    return mode


def _record_line(
    number: int,
    record: HistoryRecord,
    time_format: str,
    spans: tuple[tuple[int, int], ...] = (),
    marker: str = " ",
) -> Text:
    return Text.assemble(
        (f"{marker}{number:>5}  ", "dim"),
        (f"[{format_timestamp(record.timestamp, time_format)}]", "cyan"),
        "  ",
        highlight(record.text, spans),
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """Search and maintain shell history shared across machines."""
    _setup_logging(load_config(), verbose)


@app.command()
def sync(
    commands: Optional[List[str]] = typer.Argument(None, help="Commands to record before syncing"),
    stdin: bool = typer.Option(False, "--stdin", help="Read commands to record from stdin, one per line"),
) -> None:
    """Record commands into the shared store and reload the session view."""
    cfg = load_config()
    to_record = list(commands or [])
    if stdin:
        to_record.extend(line.rstrip("\n") for line in sys.stdin)

    session = Session.start(cfg.store, install_handlers=False)
    try:
        for command in to_record:
            session.record(command)
    finally:
        session.close()

    if session.local_only:
        console.print(
            f"[yellow]History store unavailable ({escape(str(session.store.path))}); "
            f"{len(session.pending())} command(s) kept in this session only.[/yellow]"
        )
        return

    console.print(
        f"[green]Synced[/green] {len(to_record)} command(s); "
        f"store holds {session.store.count()} records."
    )


@app.command()
def search(
    pattern: str = typer.Argument(None, help="Case-insensitive regex or substring"),
    max_results: Optional[int] = typer.Argument(None, help="Show only the most recent N matches"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Show every match"),
    engine: str = typer.Option(None, "--engine", "-e", help=f"Search engine: auto, {', '.join(ENGINES)}"),
    time_format: str = typer.Option(None, "--format", "-f", help=f"Time format: {', '.join(TIME_FORMATS)}"),
) -> None:
    """Search the shared history."""
    if not pattern:
        console.print(f"[red]{escape(SEARCH_USAGE)}[/red]")
        raise typer.Exit(1)

    cfg = load_config()
    with _handle_errors():
        mode = _time_format(cfg, time_format)
        result = search_store(
            _readable_store(cfg),
            pattern,
            max_results=max_results if max_results is not None else cfg.search.max_results,
            show_all=show_all,
            engine=engine or cfg.search.engine,
        )

    if result.total == 0:
        console.print(f"[yellow]No matches for '{escape(pattern)}'[/yellow]")
        return

    for match in result.matches:
        console.print(_record_line(match.index, match.record, mode, match.spans))

    if result.truncated:
        console.print(
            f"\n[dim]Showing last {len(result.matches)} of {result.total} matches "
            f"(use --all to show everything)[/dim]"
        )
    elif show_all:
        console.print(f"\n[dim]Total: {result.total} matches[/dim]")


@app.command()
def context(
    pattern: str = typer.Argument(None, help="Case-insensitive regex or substring"),
    context_lines: Optional[int] = typer.Argument(None, help="Records to show before and after each match"),
    time_format: str = typer.Option(None, "--format", "-f", help=f"Time format: {', '.join(TIME_FORMATS)}"),
) -> None:
    """Show each match with the commands around it."""
    if not pattern:
        console.print(f"[red]{escape(CONTEXT_USAGE)}[/red]")
        raise typer.Exit(1)

    cfg = load_config()
    with _handle_errors():
        mode = _time_format(cfg, time_format)
        blocks = search_with_context(
            _readable_store(cfg),
            pattern,
            context_lines=context_lines if context_lines is not None else cfg.search.context_lines,
        )

    if not blocks:
        console.print(f"[yellow]No matches for '{escape(pattern)}'[/yellow]")
        return

    for number, block in enumerate(blocks, start=1):
        console.print(f"[bold]--- Match {number} of {len(blocks)} ---[/bold]")
        for record in block.before:
            console.print(_record_line(record.position + 1, record, mode))
        console.print(_record_line(block.match.position + 1, block.match, mode, block.spans, marker=">"))
        for record in block.after:
            console.print(_record_line(record.position + 1, record, mode))
        console.print()


@app.command()
def recent(
    count: Optional[int] = typer.Argument(None, help="Number of records to show"),
    time_format: str = typer.Option(None, "--format", "-f", help=f"Time format: {', '.join(TIME_FORMATS)}"),
) -> None:
    """Show the most recent commands."""
    cfg = load_config()
    with _handle_errors():
        mode = _time_format(cfg, time_format)
        records = recent_records(
            _readable_store(cfg),
            count if count is not None else cfg.search.max_results,
        )

    if not records:
        console.print("[dim]No history yet.[/dim]")
        return

    for record in records:
        console.print(_record_line(record.position + 1, record, mode))


@app.command()
def dedup() -> None:
    """Remove repeated commands recorded under the same timestamp."""
    cfg = load_config()
    with _handle_errors():
        report = deduplicate(_store(cfg))

    console.print(f"Before:  {report.before}")
    console.print(f"After:   {report.after}")
    console.print(f"Removed: [green]{report.removed}[/green]")


@app.command()
def stats() -> None:
    """Show command counts and the most used commands."""
    cfg = load_config()
    with _handle_errors():
        result = statistics(_readable_store(cfg))

    console.print(f"Total commands:  {result.total}")
    console.print(f"Unique commands: {result.unique}")
    console.print(f"Markers:         {result.markers}")
    if result.first_timestamp is not None:
        console.print(f"First recorded:  {format_timestamp(result.first_timestamp, 'full')}")
        console.print(f"Last recorded:   {format_timestamp(result.last_timestamp, 'full')}")

    if not result.top_commands:
        return

    table = Table(title="Top commands")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Command", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for rank, (command, count) in enumerate(result.top_commands, start=1):
        table.add_row(str(rank), Text(printable(command)), str(count))
    console.print(table)


@app.command()
def backup() -> None:
    """Copy the store to a timestamped backup file."""
    cfg = load_config()
    store = _store(cfg)
    with _handle_errors():
        path = backup_store(store, backup_dir=cfg.store.resolved_backup_dir())

    if path is None:
        console.print(f"[yellow]Nothing to back up: {escape(str(store.path))} does not exist.[/yellow]")
        return
    console.print(f"[green]Backup written to {escape(str(path))}[/green]")


@app.command("import")
def import_(
    source: str = typer.Argument(None, help="History file to merge into the store"),
) -> None:
    """Merge another history file into the store."""
    if not source:
        console.print("[red]Usage: uhist import <history_file>[/red]")
        raise typer.Exit(1)

    cfg = load_config()
    with _handle_errors():
        report = import_history(_store(cfg), Path(source), backup_dir=cfg.store.resolved_backup_dir())

    if report.adopted:
        console.print(
            f"[green]Created store from {escape(str(report.source))}[/green] ({report.merged_lines} lines)"
        )
    else:
        console.print(f"[green]Merged {escape(str(report.source))}[/green]")
        console.print(f"  Store lines:  {report.store_lines}")
        console.print(f"  Source lines: {report.source_lines}")
        console.print(f"  Merged lines: {report.merged_lines}")
        if report.backup_path is not None:
            console.print(f"  Backup:       {escape(str(report.backup_path))}")
    console.print("[dim]Open sessions pick up the merged history at their next prompt.[/dim]")


@app.command()
def info() -> None:
    """Show where the store lives and what it contains."""
    cfg = load_config()
    store = _store(cfg)
    writable, detail = check_store_location(store.path)

    console.print(f"Store:     {escape(str(store.path))}")
    if store.exists:
        console.print(f"Size:      {format_size(store.size_bytes())}")
        console.print(f"Records:   {store.count()}")
        console.print(f"Markers:   {store.count_markers()}")
    else:
        console.print("[yellow]Store does not exist yet; it is created on first sync.[/yellow]")
        console.print(f"Fallback:  {escape(str(cfg.store.resolved_fallback_path()))}")
    if writable:
        console.print("Writable:  [green]yes[/green]")
    else:
        console.print(f"Writable:  [red]no[/red] ({escape(detail)})")
    console.print(f"Engine:    {cfg.search.engine}")
    console.print(f"Config:    {escape(str(config_module.CONFIG_FILE))}")


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., search.max_results)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = load_config()

    if key is None:
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("store.path", cfg.store.path)
        table.add_row("store.backup_dir", cfg.store.backup_dir or "(next to store)")
        table.add_row("store.fallback_path", cfg.store.fallback_path)
        table.add_row("store.retention", str(cfg.store.retention))
        table.add_row("search.max_results", str(cfg.search.max_results))
        table.add_row("search.context_lines", str(cfg.search.context_lines))
        table.add_row("search.engine", cfg.search.engine)
        table.add_row("display.time_format", cfg.display.time_format)
        table.add_row("logging.level", cfg.logging.level)
        table.add_row("logging.file", cfg.logging.file)

        console.print(table)
        return

    if value is None:
        console.print("[red]Usage: uhist config <key> <value>[/red]")
        raise typer.Exit(1)

    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., search.max_results)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    section_map = {"store": cfg.store, "search": cfg.search, "display": cfg.display, "logging": cfg.logging}

    if section not in section_map:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(1)

    obj = section_map[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    current = getattr(obj, attr)
    try:
        typed_value = int(value) if isinstance(current, int) else value
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    if key == "display.time_format" and typed_value not in TIME_FORMATS:
        console.print(f"[red]time_format must be one of: {', '.join(TIME_FORMATS)}[/red]")
        raise typer.Exit(1)
    if key == "search.engine" and typed_value not in ("auto", *ENGINES):
        console.print(f"[red]engine must be one of: auto, {', '.join(ENGINES)}[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{key} = {typed_value}[/green]")


@app.command()
def hook(
    shell: str = typer.Option("bash", "--shell", "-s", help=f"Target shell: {', '.join(SUPPORTED_SHELLS)}"),
) -> None:
    """Print the rc-file block that keeps every session synced with the store."""
    cfg = load_config()
    with _handle_errors():
        block = render_hook(cfg.store.resolved_path(), cfg.store.retention, shell=shell)
    typer.echo(block, nl=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"unified-history v{__version__}")
    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {config_module.CONFIG_FILE}")


if __name__ == "__main__":
    app()
