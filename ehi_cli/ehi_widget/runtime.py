"""In-browser query execution against the shared snapshot."""

from __future__ import annotations

import time
from dataclasses import replace

from ehi_cli.ehi_query import engine
from ehi_cli.ehi_query.types import QueryResult
from ehi_cli.shared.exceptions import DatasetLoadError
from ehi_cli.shared.logging import Logger, get_logger

from .dataset import DatasetHandle

DEFAULT_ROW_LIMIT = 100


class ClientRuntime:
    """Runs reader queries with the same engine that baked the page."""

    def __init__(
        self,
        dataset: DatasetHandle,
        *,
        row_limit: int = DEFAULT_ROW_LIMIT,
        logger: Logger | None = None,
    ) -> None:
        self.dataset = dataset
        self.row_limit = row_limit
        self.logger = logger or get_logger()

    async def execute(self, query_text: str, limit: int | None = None) -> QueryResult:
        """Execute ``query_text``; ``limit`` of None uses the runtime cap, ``<= 0`` lifts it.

        Never raises: dataset and query failures come back as error results.
        """
        started = time.perf_counter()
        try:
            connection = await self.dataset.connection()
        except DatasetLoadError as exc:
            return QueryResult.failure(str(exc), elapsed_ms=_elapsed_ms(started))

        result = engine.execute(query_text, connection, limit=self._normalise_limit(limit))
        if result.error:
            self.logger.debug(f"Query failed: {result.error}")
        return replace(result, elapsed_ms=_elapsed_ms(started))

    def _normalise_limit(self, limit: int | None) -> int | None:
        if limit is None:
            return self.row_limit
        if limit <= 0:
            return None
        return limit


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
