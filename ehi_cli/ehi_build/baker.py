"""Build-time execution of extracted query blocks."""

from __future__ import annotations

import sqlite3
from typing import Iterable

from ehi_cli.ehi_query import engine
from ehi_cli.ehi_query.types import QueryResult
from ehi_cli.shared.logging import Logger

from .types import BakeSummary, BlockKey, QueryBlock


def bake_blocks(
    blocks: Iterable[QueryBlock],
    connection: sqlite3.Connection,
    *,
    logger: Logger,
    row_limit: int | None = None,
    summary: BakeSummary | None = None,
) -> dict[BlockKey, QueryResult]:
    """Execute each block once and return its result keyed by ``(document_id, index)``.

    Query failures are recorded as error results and logged; they never stop the build.
    """
    results: dict[BlockKey, QueryResult] = {}
    for block in blocks:
        result = engine.execute(block.query, connection, limit=row_limit)
        results[block.key] = result
        if result.error:
            logger.warning(f"Error in {block.document_id} query #{block.index}: {result.error}")
            if summary is not None:
                summary.failed.append(block.block_id)
        else:
            logger.debug(f"Baked {block.block_id}: {result.row_count} row(s)")
            if summary is not None:
                summary.successful += 1
    return results
