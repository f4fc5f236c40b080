"""CLI entry point for corpusdb."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from corpusdb.core.exceptions import (
    CorpusError,
    InvariantError,
    SchemaError,
    SchemaMismatchError,
    StoreError,
    UnknownNameError,
)
from corpusdb.core.manager import StoreManager
from corpusdb.core.models import MergeStats, UnitRecord
from corpusdb.core.schema import (
    DatabaseSchema,
    InternedIdKind,
    default_schema,
    load_schema,
    schema_to_dict,
)
from corpusdb.core.storage import (
    ENCODINGS,
    Loader,
    load_multifile,
    load_multifile_or_default,
    load_tables,
    load_tables_or_default,
    save_tables,
    store_multifile,
)
from corpusdb.core.storage.multifile import counters_path
from corpusdb.core.tables import Tables
from corpusdb.logging import configure_logging
from corpusdb.settings import CorpusSettings

app = typer.Typer(
    name="corpusdb",
    help="Build and merge relational fact stores of compilation units.",
    no_args_is_help=True,
)
console = Console()

FormatOption = Annotated[
    str | None,
    typer.Option("--format", "-F", help="Multi-file encoding: msgpack or json"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", "-l", help="Logging level (default: INFO)")
    ] = None,
) -> None:
    """Build and merge relational fact stores of compilation units."""
    configure_logging(log_level or get_settings().log_level)


def get_settings() -> CorpusSettings:
    """Settings from ``CORPUSDB_*`` environment variables."""
    return CorpusSettings()


def get_schema(settings: CorpusSettings) -> DatabaseSchema:
    """The schema file from the settings, or the built-in schema."""
    if settings.schema_path is not None:
        return load_schema(settings.schema_path)
    return default_schema()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report corpusdb errors and exit non-zero."""
    try:
        yield
    except InvariantError as e:
        console.print(f"[bold red]Invariant violated:[/] {e}")
        console.print("[red]The in-memory corpus is inconsistent and was not stored.[/]")
        raise typer.Exit(2) from e
    except (StoreError, SchemaError, SchemaMismatchError, UnknownNameError) as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1) from e


def is_single_file(path: Path) -> bool:
    return path.suffix in ENCODINGS


def detect_format(database_root: Path, default: str) -> str:
    """Encoding of an existing multi-file store, or ``default``."""
    for ext in (default, *(e.lstrip(".") for e in ENCODINGS)):
        if counters_path(database_root, ext).exists():
            return ext
    return default


def load_store(path: Path, schema: DatabaseSchema, ext: str) -> Tables:
    """Load either layout: a directory is a multi-file store."""
    if path.is_dir():
        return load_multifile(path, schema, detect_format(path, ext))
    return load_tables(path, schema)


def print_stats(stats: MergeStats) -> None:
    console.print(f"  Facts merged: {stats.facts}")
    console.print(f"  Values interned: {stats.interned}")
    console.print(f"  IDs shifted: {stats.shifted}")


@app.command()
def update(
    database: Annotated[
        Path | None, typer.Option("--database", "-d", help="Corpus directory")
    ] = None,
    workspace: Annotated[
        Path | None, typer.Option("--workspace", "-w", help="Directory of per-unit stores")
    ] = None,
    fmt: FormatOption = None,
    output_json: JsonOption = False,
) -> None:
    """Merge every new per-unit store of the workspace into the corpus."""
    settings = get_settings()
    if fmt is not None:
        settings = settings.model_copy(update={"corpus_format": fmt})
    database = database or settings.database_root
    workspace = workspace or settings.workspace_root

    with handle_errors():
        manager = StoreManager(database, get_schema(settings), settings)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            disable=output_json,
        ) as progress:
            task = progress.add_task(f"Merging [cyan]{workspace.name}[/]", total=None)

            def on_progress(unit: UnitRecord, current: int, total: int) -> None:
                progress.update(task, total=total, completed=current)
                progress.update(task, description=f"[cyan]{unit.unit_id}[/]")

            report = manager.update(workspace, on_progress=on_progress)

    if output_json:
        result = {
            "merged": report.merged,
            "unchanged": report.unchanged,
            "errors": report.errors,
            "facts": report.stats.facts,
            "interned": report.stats.interned,
            "shifted": report.stats.shifted,
        }
        print(json.dumps(result))
        return

    console.print("[green]Done![/green]")
    console.print(f"  Units merged: {len(report.merged)}")
    print_stats(report.stats)
    if report.unchanged:
        console.print(f"  [dim]Already merged: {report.unchanged}[/]")
    if report.errors:
        console.print(f"  [red]Errors: {len(report.errors)}[/red]")
        for error in report.errors:
            console.print(f"    {error}")


@app.command()
def merge(
    inputs: Annotated[list[Path], typer.Argument(help="Single-file stores to merge")],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output file (.json/.msgpack) or directory"),
    ],
    fmt: FormatOption = None,
) -> None:
    """Merge single-file stores into OUTPUT, creating it if needed."""
    settings = get_settings()
    ext = fmt or settings.corpus_format

    with handle_errors():
        schema = get_schema(settings)
        if is_single_file(output):
            corpus = load_tables_or_default(output, schema)
        else:
            corpus = load_multifile_or_default(output, schema, detect_format(output, ext))

        total = MergeStats()
        for path in inputs:
            total.add(corpus.merge(load_tables(path, schema)))
            console.print(f"[dim]Merged {path}[/]")

        if is_single_file(output):
            save_tables(corpus, output)
        else:
            store_multifile(corpus, output, detect_format(output, ext))

    console.print(f"[green]Merged {len(inputs)} stores into {output}[/green]")
    print_stats(total)


@app.command()
def stats(
    path: Annotated[Path | None, typer.Argument(help="Store file or directory")] = None,
    output_json: JsonOption = False,
) -> None:
    """Show fact, interned value, and counter totals of a store."""
    settings = get_settings()
    path = path or settings.database_root

    with handle_errors():
        tables = load_store(path, get_schema(settings), settings.corpus_format)
    result = tables.stats()

    if output_json:
        print(json.dumps(result))
        return

    console.print(f"[bold]{path}[/] [dim]({tables.schema.name})[/]")
    for section, counts in result.items():
        console.print(f"[green]{section.replace('_', ' ').capitalize()}:[/]")
        for name, count in counts.items():
            console.print(f"  [cyan]{name}[/]: {count}")


def _resolve_columns(tables: Tables, types: list[str], row: tuple[Any, ...]) -> tuple[Any, ...]:
    resolved = []
    for type_name, value in zip(types, row):
        kind = tables.column_kind(type_name)
        if isinstance(kind, InternedIdKind):
            value = tables.resolve(kind.table.name, value)
        resolved.append(value)
    return tuple(resolved)


@app.command()
def show(
    name: Annotated[str, typer.Argument(help="Relation or interning table name")],
    path: Annotated[Path | None, typer.Argument(help="Store file or directory")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum rows to print")] = 20,
    resolve: Annotated[
        bool, typer.Option("--resolve", "-r", help="Replace interned keys with their values")
    ] = False,
    output_json: JsonOption = False,
) -> None:
    """Print the rows of one relation or interning table."""
    settings = get_settings()
    path = path or settings.database_root

    with handle_errors():
        schema = get_schema(settings)
        try:
            relation = schema.get_relation(name)
            columns = relation.column_names
            types = [c.type for c in relation.columns]
        except UnknownNameError:
            relation = None
            table = schema.get_interning_table(name)
            columns = ["key", "value"]
            types = [table.key, ", ".join(table.value_types)]

        rows: list[tuple[Any, ...]]
        if path.is_dir() and not resolve:
            loader = Loader(path, schema, detect_format(path, settings.corpus_format))
            if relation is not None:
                rows = loader.load_relation(name)
            else:
                rows = loader.load_interning_table_as_pairs(name)
        else:
            tables = load_store(path, schema, settings.corpus_format)
            if relation is not None:
                rows = tables.relation(name).as_list()
                if resolve:
                    rows = [_resolve_columns(tables, types, row) for row in rows]
            else:
                rows = list(tables.interning_table(name).items())
                if resolve:
                    rows = [(key, tables.resolve(name, key)) for key, _ in rows]

    total = len(rows)
    rows = rows[:limit] if limit >= 0 else rows

    if output_json:
        print(json.dumps({"name": name, "columns": columns, "total": total, "rows": rows}))
        return

    grid = Table(title=f"{name} ({total} rows)")
    for column, type_name in zip(columns, types):
        grid.add_column(f"{column}\n[dim]{type_name}[/]")
    for row in rows:
        grid.add_row(*(repr(v) if isinstance(v, tuple) else str(v) for v in row))
    console.print(grid)
    if total > len(rows):
        console.print(f"[dim]... {total - len(rows)} more[/]")


@app.command()
def convert(
    source: Annotated[Path, typer.Argument(help="Store file or directory to read")],
    dest: Annotated[Path, typer.Argument(help="Output file (.json/.msgpack) or directory")],
    fmt: FormatOption = None,
) -> None:
    """Rewrite a store in another layout or encoding."""
    settings = get_settings()
    ext = fmt or settings.corpus_format

    with handle_errors():
        tables = load_store(source, get_schema(settings), ext)
        if is_single_file(dest):
            save_tables(tables, dest)
        else:
            store_multifile(tables, dest, ext)

    console.print(f"[green]Converted {source} -> {dest}[/green]")


@app.command()
def schema(output_json: JsonOption = False) -> None:
    """Print the active schema and its interning order."""
    settings = get_settings()

    with handle_errors():
        active = get_schema(settings)

    if output_json:
        print(json.dumps(schema_to_dict(active)))
        return

    console.print(f"[bold]{active.name}[/] [dim]{active.fingerprint()[:12]}[/]")
    console.print("[green]Interning order:[/]")
    for decl in active.interning_order():
        value = ", ".join(decl.value_types)
        console.print(f"  [cyan]{decl.name}[/]: {decl.key} <- {value}")
    console.print("[green]Relations:[/]")
    for relation in active.relations:
        columns = ", ".join(
            f"{c.name}: {c.type}{' (auto)' if c.auto else ''}" for c in relation.columns
        )
        console.print(f"  [cyan]{relation.name}[/]({columns})")
    console.print("[green]Incremental IDs:[/]")
    for inc_id in active.incremental_ids:
        constants = ", ".join(f"{c.name}={c.value}" for c in inc_id.constants)
        suffix = f" [dim]{constants}[/]" if constants else ""
        console.print(f"  [cyan]{inc_id.name}[/]: u{inc_id.width}{suffix}")


if __name__ == "__main__":
    app()
