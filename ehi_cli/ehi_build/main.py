"""ehi-build CLI entrypoint."""

from __future__ import annotations

import json
import sys

import click
from rich import box
from rich.console import Console
from rich.table import Table

from ehi_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from ehi_cli.shared.exceptions import BuildError

from .chapters import discover_chapters
from .extractor import extract_query_blocks
from .site import build_site
from .validate import format_issue, validate_queries


@click.group(help="Build the manual site and check its example queries.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for ehi-build commands."""
    cli_ctx.logger.debug(f"ehi-build using snapshot {cli_ctx.dataset_path}")


@cli.command("site")
@click.option("--output", "output_dir", type=click.Path(path_type=str), help="Directory to write the site to.")
@click.option("--chapters", "chapters_dir", type=click.Path(path_type=str), help="Directory holding chapter markdown.")
@pass_cli_context
@handle_cli_errors
def build_site_command(cli_ctx: CLIContext, output_dir: str | None, chapters_dir: str | None) -> None:
    """Extract, bake and render every chapter into a static site."""
    config = cli_ctx.config.with_build_dirs(chapters_dir=chapters_dir, output_dir=output_dir)
    report = build_site(config, logger=cli_ctx.logger, dry_run=cli_ctx.dry_run)
    if report.html_issues:
        cli_ctx.logger.warning(f"{len(report.html_issues)} HTML structure issue(s) found.")
    if report.bake.failed:
        cli_ctx.logger.warning(
            f"{len(report.bake.failed)} query block(s) baked with errors: {', '.join(report.bake.failed)}"
        )
    click.echo(
        f"Chapters: {report.chapters}  Query blocks: {report.blocks}  "
        f"Pages written: {len(report.pages)}"
    )


@cli.command("extract")
@click.option("--chapters", "chapters_dir", type=click.Path(path_type=str), help="Directory holding chapter markdown.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(("table", "json")),
)
@pass_cli_context
@handle_cli_errors
def extract_command(cli_ctx: CLIContext, chapters_dir: str | None, output_format: str) -> None:
    """List the query blocks found in the chapters without running them."""
    config = cli_ctx.config.with_build_dirs(chapters_dir=chapters_dir)
    chapters = discover_chapters(config.build.chapters_dir, logger=cli_ctx.logger)
    blocks = [
        block
        for chapter in chapters
        for block in extract_query_blocks(chapter.document_id, chapter.text, logger=cli_ctx.logger)
    ]

    if output_format == "json":
        payload = [
            {
                "id": block.block_id,
                "document_id": block.document_id,
                "index": block.index,
                "line": block.line,
                "description": block.description,
                "query": block.query,
            }
            for block in blocks
        ]
        json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
        return

    if not blocks:
        cli_ctx.logger.info("No query blocks found.")
        return
    console = Console(file=sys.stdout, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Id", style="bold")
    table.add_column("Line", justify="right")
    table.add_column("Description")
    for block in blocks:
        table.add_row(block.block_id, str(block.line), block.description or "-")
    console.print(table)


@cli.command("validate")
@click.option("--chapters", "chapters_dir", type=click.Path(path_type=str), help="Directory holding chapter markdown.")
@pass_cli_context
@handle_cli_errors
def validate_command(cli_ctx: CLIContext, chapters_dir: str | None) -> None:
    """Run every chapter query against the snapshot and report failures."""
    config = cli_ctx.config.with_build_dirs(chapters_dir=chapters_dir)
    issues = validate_queries(config, logger=cli_ctx.logger)
    if not issues:
        cli_ctx.logger.success("All chapter queries ran successfully.")
        return
    for issue in issues:
        click.echo(format_issue(issue))
        click.echo("")
    raise BuildError(f"Found {len(issues)} failing query block(s).")


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
