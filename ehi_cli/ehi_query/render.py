"""Terminal rendering helpers for ehi-query."""

from __future__ import annotations

import csv
import json
import sys
from typing import IO, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from ehi_cli.shared.logging import Logger

from .types import QueryResult, SavedQuerySummary, SchemaOverview


def render_query_result(
    result: QueryResult,
    *,
    output_format: str,
    logger: Logger,
    title: str | None = None,
    stream=None,
) -> None:
    """Render a successful query result set to the desired format."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "table":
        _render_table(result, logger=logger, stream=output_stream, title=title)
    elif fmt == "csv":
        _render_delimited(result, stream=output_stream, delimiter=",")
    elif fmt == "tsv":
        _render_delimited(result, stream=output_stream, delimiter="\t")
    elif fmt == "json":
        _render_json(result, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")

    if result.has_more:
        logger.warning(
            f"Showing the first {result.row_count} rows. Re-run with --limit 0 for the full result."
        )


def render_saved_query_catalog(
    catalog: Sequence[SavedQuerySummary],
    *,
    logger: Logger,
    stream=None,
) -> None:
    """Render the chapter query catalog for display."""
    output_stream = stream or sys.stdout
    if not catalog:
        logger.info("The query catalog is empty.")
        return

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Id", style="bold")
    table.add_column("Chapter")
    table.add_column("Description")
    for summary in catalog:
        table.add_row(summary.block_id, summary.chapter_id, summary.description or "—")
    console.print(table)


def render_schema_overview(
    overview: SchemaOverview,
    *,
    output_format: str,
    logger: Logger,
    stream=None,
) -> None:
    """Render schema metadata to the output stream."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "json":
        payload = {
            "database": str(overview.database_path),
            "tables": [
                {
                    "name": table.name,
                    "rows": table.row_count,
                    "columns": [
                        {"name": name, "type": column_type, "not_null": not_null}
                        for name, column_type, not_null in table.columns
                    ],
                }
                for table in overview.tables
            ],
        }
        json.dump(payload, output_stream, indent=2)
        output_stream.write("\n")
        return

    if not overview.tables:
        logger.info(f"No tables found in dataset {overview.database_path}.")
        return

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    for table in overview.tables:
        columns = Table(
            title=f"{table.name} ({table.row_count} rows)",
            title_justify="left",
            box=box.SIMPLE,
            header_style="bold",
        )
        columns.add_column("Column")
        columns.add_column("Type")
        columns.add_column("Not null")
        for name, column_type, not_null in table.columns:
            columns.add_row(name, column_type, "yes" if not_null else "")
        console.print(columns)


def _render_table(result: QueryResult, *, logger: Logger, stream: IO[str], title: str | None) -> None:
    console = Console(file=stream, highlight=False, force_terminal=False)
    if title:
        console.print(f"[bold]{title}[/bold]")

    columns = result.columns or ()
    table = Table(box=box.SIMPLE_HEAVY, show_header=bool(columns), header_style="bold")
    for column in columns:
        table.add_column(column or "")

    if result.rows:
        for row in result.rows:
            table.add_row(*[_stringify(row.get(column)) for column in columns])
    else:
        logger.info("Query returned zero rows.")

    console.print(table)


def _render_delimited(result: QueryResult, *, stream: IO[str], delimiter: str) -> None:
    writer = csv.writer(stream, delimiter=delimiter)
    columns = result.columns or ()
    if columns:
        writer.writerow(columns)
    for row in result.rows or ():
        writer.writerow("" if row.get(column) is None else row.get(column) for column in columns)


def _render_json(result: QueryResult, *, stream: IO[str]) -> None:
    json.dump([dict(row) for row in result.rows or ()], stream, indent=2)
    stream.write("\n")


def _stringify(value: object) -> str:
    if value is None:
        return "NULL"
    return str(value)
