"""Command line interface for Grid Toolkit."""

import asyncio
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Literal

from backend import SqlAlchemyBackend, read_only_sqlite, table_result_set
from compare import (
    DiffRow,
    DiffStatus,
    InvalidKeyError,
    compare,
    diff_cells,
    diff_stats,
    diff_to_csv,
    diff_to_html,
    diff_to_json,
    display_cell,
    export_columns,
)
from cyclopts import App
from metacache import FetchFailedError, MetadataCache
from overlay import (
    DeleteDisplay,
    MissingPrimaryKeyError,
    Overlay,
    SessionStore,
    changes_from_json,
    changes_to_json,
)
from results import (
    MalformedResultSetError,
    Namespace,
    ResultSet,
    format_value,
    result_set_from_json,
)
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from grid_toolkit.settings import load_settings

app = App(help="Grid Toolkit CLI tool")


type Format = Literal["table", "json", "csv", "html"]

console = Console()
err_console = Console(stderr=True)

# Constants
SESSION = "cli"
MAIN = Namespace("main")
SQLITE_EXTENSIONS = {".sqlite", ".db", ".sqlite3"}
JSON_EXTENSIONS = {".json"}

STATUS_STYLES = {
    DiffStatus.ADDED: "green",
    DiffStatus.REMOVED: "red",
    DiffStatus.MODIFIED: "yellow",
    DiffStatus.UNCHANGED: "",
}


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def validate_database_location(database_location: Path) -> None:
    """Validate that a source file exists."""
    if not database_location.exists():
        print_error(f"File does not exist: {database_location}")
        sys.exit(1)


def validate_database_extension(
    database_location: Path,
    file_extensions: Iterable[str],
) -> None:
    """Validate source file extension."""
    if database_location.suffix.lower() not in file_extensions:
        print_error(
            f"File has invalid extension, expected: {', '.join(sorted(file_extensions))}",
        )
        sys.exit(1)


def load_source(location: Path, table: str | None) -> tuple[ResultSet, list[str]]:
    """Load a result set and its primary key from a JSON or SQLite file."""
    validate_database_location(location)
    validate_database_extension(location, SQLITE_EXTENSIONS | JSON_EXTENSIONS)

    if location.suffix.lower() in JSON_EXTENSIONS:
        return result_set_from_json(location), []

    if table is None:
        print_error("A --table is required when comparing SQLite databases")
        sys.exit(1)

    backend = SqlAlchemyBackend()
    backend.connect(SESSION, read_only_sqlite(location))
    try:
        schema = asyncio.run(
            MetadataCache().table_schema(SESSION, backend, MAIN, table),
        )
        return table_result_set(backend.engine(SESSION), table), schema["primary_key"]
    except FetchFailedError as e:
        print_error(str(e))
        sys.exit(1)
    finally:
        backend.disconnect(SESSION)


def format_diff_table(
    rows: Sequence[DiffRow],
    left: ResultSet,
    right: ResultSet,
) -> None:
    """Format a diff as a rich table."""
    if not rows:
        console.print("Both result sets are empty.")
        return

    stats = diff_stats(rows)
    columns = export_columns(left, right)
    table = Table(
        title=(
            f"{stats.added} added, {stats.removed} removed, "
            f"{stats.modified} modified, {stats.unchanged} unchanged"
        ),
    )
    table.add_column("Status", style="bold")
    for column in columns:
        table.add_column(column.name)

    for row in rows:
        cells = []
        for cell in diff_cells(row, columns):
            if row.status == DiffStatus.MODIFIED and cell.changed:
                cells.append(
                    Text.assemble((cell.old_text(), "strike"), " ", cell.new_text()),
                )
            else:
                cells.append(Text(display_cell(row.status, cell)))
        table.add_row(row.status, *cells, style=STATUS_STYLES[row.status])

    console.print(table)


def format_overlay_table(overlay: Overlay, title: str) -> None:
    """Format a projected preview as a rich table."""
    table = Table(title=title)
    table.add_column("", style="bold")
    for column in overlay.result.columns:
        table.add_column(column.name)

    for index, row in enumerate(overlay.result.rows):
        flags = overlay.flags(index)
        marker, style = "", ""
        if flags is not None and flags.is_deleted:
            marker, style = "-", "red strike"
        elif flags is not None and flags.is_inserted:
            marker, style = "+", "green"
        elif flags is not None and flags.is_modified:
            marker = "~"

        cells = [
            Text(
                format_value(value),
                style="yellow" if overlay.is_cell_modified(index, name) else "",
            )
            for name, value in zip(overlay.result.column_names, row, strict=True)
        ]
        table.add_row(marker, *cells, style=style)

    console.print(table)


@app.command
def diff(
    old_location: Path,
    new_location: Path,
    *,
    table: str | None = None,
    key: list[str] | None = None,
    fmt: Format = "table",
) -> None:
    """Compare a table of two SQLite databases, or two result-set JSON files."""
    left, left_key = load_source(old_location, table)
    right, right_key = load_source(new_location, table)
    print_info(f"Old: {old_location} ({len(left.rows)} rows)")
    print_info(f"New: {new_location} ({len(right.rows)} rows)")

    key_columns = key or [name for name in left_key if name in right_key]
    print_info(f"Key columns: {', '.join(key_columns) or '(all shared columns)'}")

    try:
        rows = compare(left, right, key_columns)
    except InvalidKeyError as e:
        print_error(str(e))
        sys.exit(1)

    # Output to stdout in requested format (keep stdout clean for data)
    if fmt == "json":
        sys.stdout.write(diff_to_json(rows, left, right))
    elif fmt == "csv":
        sys.stdout.write(diff_to_csv(rows, left, right))
    elif fmt == "html":
        sys.stdout.write(diff_to_html(rows, left, right, title=table or "Comparison"))
    elif fmt == "table":
        format_diff_table(rows, left, right)


def load_changes(store: SessionStore, changes_location: Path) -> int:
    """Replay a JSON change log into the CLI session."""
    validate_database_location(changes_location)
    validate_database_extension(changes_location, JSON_EXTENSIONS)
    try:
        changes = changes_from_json(changes_location.read_text(encoding="utf-8"))
        return store.import_changes(SESSION, changes)
    except (ValueError, KeyError) as e:
        print_error(f"Invalid change log: {e}")
        sys.exit(1)


@app.command
def preview(
    database: Path,
    table: str,
    changes: Path,
    *,
    delete_display: DeleteDisplay | None = None,
    config: Path | None = None,
) -> None:
    """Show a table with a change log applied, without writing anything."""
    validate_database_location(database)
    validate_database_extension(database, SQLITE_EXTENSIONS)
    settings = load_settings(config)

    store = SessionStore(delete_display or settings["delete_display"])
    pending = load_changes(store, changes)
    print_info(f"Pending changes: {pending}")

    backend = SqlAlchemyBackend()
    backend.connect(SESSION, read_only_sqlite(database))
    cache = MetadataCache(ttl=settings["cache_ttl_seconds"])
    try:
        schema = asyncio.run(cache.table_schema(SESSION, backend, MAIN, table))
        base = table_result_set(backend.engine(SESSION), table)
    except FetchFailedError as e:
        print_error(str(e))
        sys.exit(1)
    finally:
        backend.disconnect(SESSION)

    overlay = store.project(SESSION, base, schema["primary_key"], MAIN, table)
    stats = overlay.stats
    format_overlay_table(
        overlay,
        title=(
            f"{table}: {stats.inserted_rows} inserted, {stats.modified_rows} "
            f"modified, {stats.deleted_rows} deleted"
        ),
    )


@app.command
def commit(
    database: Path,
    changes: Path,
    *,
    dry_run: bool = False,
    transaction: bool = True,
) -> None:
    """Apply a change log to a SQLite database.

    With --dry-run the SQL script is printed instead of written. With
    --no-transaction each change is written on its own and every change
    that succeeds stays written.
    """
    validate_database_location(database)
    validate_database_extension(database, SQLITE_EXTENSIONS)

    store = SessionStore()
    pending = load_changes(store, changes)

    backend = SqlAlchemyBackend()
    if dry_run:
        backend.connect(SESSION, read_only_sqlite(database))
        try:
            script = asyncio.run(
                backend.migration_script(SESSION, store.export_changes(SESSION)),
            )
        finally:
            backend.disconnect(SESSION)
        for warning in script.warnings:
            print_error(f"Skipped {warning}")
        print_info(f"Rendered {script.statement_count} of {pending} changes")
        sys.stdout.write(script.sql)
        return

    print_info(f"Applying {pending} changes to {database}")
    backend.connect(SESSION, create_engine(f"sqlite:///{database}"))
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
        ) as progress:
            progress.add_task("Committing changes...", total=None)
            result = asyncio.run(
                store.commit(SESSION, backend, use_transaction=transaction),
            )
    finally:
        backend.disconnect(SESSION)

    if result.success:
        print_success(f"Applied {result.applied_count} changes")
        return

    for failure in result.failures:
        print_error(f"Change {failure.index} ({failure.change.kind}): {failure.error}")
    if result.rolled_back:
        print_error("Rolled back, no change was written")

    # Remaining changes go to stdout so they can be fixed and re-applied
    sys.stdout.write(changes_to_json(store.export_changes(SESSION)))
    sys.exit(1)


async def _describe(backend: SqlAlchemyBackend, cache: MetadataCache) -> Table:
    table = Table(title="Tables")
    table.add_column("Namespace", style="bold cyan")
    table.add_column("Table", style="bold")
    table.add_column("Primary Key", style="bold yellow")
    table.add_column("Columns")

    for namespace in await cache.namespaces(SESSION, backend):
        for name in await cache.collections(SESSION, backend, namespace):
            schema = await cache.table_schema(SESSION, backend, namespace, name)
            table.add_row(
                namespace.database,
                name,
                ", ".join(schema["primary_key"]),
                ", ".join(
                    f"{column['name']} {column['type']}" for column in schema["columns"]
                ),
            )
    return table


@app.command
def describe(database: Path) -> None:
    """List the tables of a SQLite database with their primary keys."""
    validate_database_location(database)
    validate_database_extension(database, SQLITE_EXTENSIONS)

    backend = SqlAlchemyBackend()
    backend.connect(SESSION, read_only_sqlite(database))
    try:
        console.print(asyncio.run(_describe(backend, MetadataCache())))
    except FetchFailedError as e:
        print_error(str(e))
        sys.exit(1)
    finally:
        backend.disconnect(SESSION)


def main() -> None:
    """Run the CLI, reporting domain errors without a traceback."""
    try:
        app()
    except (
        MalformedResultSetError,
        MissingPrimaryKeyError,
        SQLAlchemyError,
    ) as e:
        print_error(str(e))
        sys.exit(1)
