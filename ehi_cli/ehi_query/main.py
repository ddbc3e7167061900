"""ehi-query CLI entrypoint."""

from __future__ import annotations

import click

from ehi_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from ehi_cli.shared.exceptions import QueryError

from . import executor, render
from .types import QueryResult

OUTPUT_FORMAT_CHOICES = ("table", "tsv", "csv", "json")
SCHEMA_FORMAT_CHOICES = ("table", "json")


@click.group(help="Query the reference dataset snapshot.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for ehi-query commands."""
    cli_ctx.logger.debug(f"ehi-query using snapshot {cli_ctx.dataset_path}")


@cli.command("sql")
@click.argument("query", type=str)
@click.option("--limit", type=int, help="Override the default row limit (0 for no limit).")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def run_sql(cli_ctx: CLIContext, query: str, limit: int | None, output_format: str) -> None:
    """Execute ad-hoc SQL against the snapshot."""
    cli_ctx.logger.debug("ehi-query sql invoked")
    if not query.strip():
        raise click.ClickException("Query text must not be empty.")

    result = executor.execute_sql(config=cli_ctx.config, query=query, limit=limit)
    _render_query_output(cli_ctx, result, output_format)


@cli.command("list")
@pass_cli_context
@handle_cli_errors
def list_saved(cli_ctx: CLIContext) -> None:
    """List the chapter queries recorded by the last site build."""
    cli_ctx.logger.debug("ehi-query list invoked")
    catalog = executor.list_saved_queries(config=cli_ctx.config)
    render.render_saved_query_catalog(list(catalog), logger=cli_ctx.logger)


@cli.command("saved")
@click.argument("block_id", type=str)
@click.option("--limit", type=int, help="Override the default row limit (0 for no limit).")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def run_saved(cli_ctx: CLIContext, block_id: str, limit: int | None, output_format: str) -> None:
    """Re-run a chapter query by its id (for example 00-01-read-me-first-0)."""
    cli_ctx.logger.debug(f"ehi-query saved invoked for {block_id}")
    entry, result = executor.run_saved_query(config=cli_ctx.config, block_id=block_id, limit=limit)
    _render_query_output(cli_ctx, result, output_format, title=entry.get("description") or None)


@cli.command("schema")
@click.option("--table", "table_filter", type=str, help="Inspect a specific table only.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(SCHEMA_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def show_schema(cli_ctx: CLIContext, table_filter: str | None, output_format: str) -> None:
    """Display snapshot schema details."""
    cli_ctx.logger.debug("ehi-query schema invoked")
    overview = executor.describe_schema(config=cli_ctx.config, table_filter=table_filter)
    render.render_schema_overview(overview, output_format=output_format, logger=cli_ctx.logger)


def _render_query_output(
    cli_ctx: CLIContext,
    result: QueryResult,
    output_format: str,
    *,
    title: str | None = None,
) -> None:
    if result.error:
        raise QueryError(f"SQLite error: {result.error}")
    render.render_query_result(
        result,
        output_format=output_format,
        logger=cli_ctx.logger,
        title=title,
    )


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
