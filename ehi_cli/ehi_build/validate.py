"""Check every chapter query against the reference snapshot."""

from __future__ import annotations

from ehi_cli.ehi_query import engine
from ehi_cli.shared.config import AppConfig
from ehi_cli.shared.database import connect
from ehi_cli.shared.logging import Logger
from ehi_cli.shared.utils import truncate_words

from .chapters import discover_chapters
from .extractor import extract_query_blocks
from .types import QueryIssue

EXCERPT_LENGTH = 100


def validate_queries(config: AppConfig, *, logger: Logger) -> list[QueryIssue]:
    """Run each extracted block once and collect the ones that fail."""
    chapters = discover_chapters(config.build.chapters_dir, logger=logger)
    issues: list[QueryIssue] = []
    checked = 0
    with connect(config) as connection:
        for chapter in chapters:
            for block in extract_query_blocks(chapter.document_id, chapter.text, logger=logger):
                checked += 1
                # One row is enough to surface runtime errors.
                result = engine.execute(block.query, connection, limit=1)
                if result.error is None:
                    continue
                issues.append(
                    QueryIssue(
                        path=chapter.source_path,
                        line=block.line,
                        block_id=block.block_id,
                        description=block.description,
                        query=block.query,
                        error=result.error,
                    )
                )
    logger.debug(f"Validated {checked} query block(s) across {len(chapters)} chapter(s)")
    return issues


def format_issue(issue: QueryIssue) -> str:
    excerpt = truncate_words(" ".join(issue.query.split()), EXCERPT_LENGTH)
    return "\n".join(
        [
            f"{issue.path}:{issue.line} ({issue.block_id})",
            f"  Description: {issue.description or '-'}",
            f"  Error: {issue.error}",
            f"  Query: {excerpt}",
        ]
    )
