"""Query execution helpers for ehi-query."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping

from ehi_cli.shared.config import AppConfig
from ehi_cli.shared.database import connect
from ehi_cli.shared.exceptions import DatasetError, QueryError

from . import engine
from .types import QueryResult, SavedQuerySummary, SchemaOverview, SchemaTable

DEFAULT_ROW_LIMIT = 200
CATALOG_RELATIVE_PATH = Path("assets") / "data" / "queries.json"


def execute_sql(
    *,
    config: AppConfig,
    query: str,
    limit: int | None = None,
) -> QueryResult:
    """Execute ad-hoc SQL against the snapshot and return a structured result set."""

    with _read_only_connection(config) as connection:
        return engine.execute(query, connection, limit=_normalise_limit(limit))


def run_saved_query(
    *,
    config: AppConfig,
    block_id: str,
    limit: int | None = None,
) -> tuple[Mapping[str, Any], QueryResult]:
    """Re-run a chapter query by its block id and return its catalog entry with the result."""

    entry = _lookup_saved_query(config, block_id)
    result = execute_sql(config=config, query=str(entry["query"]), limit=limit)
    return entry, result


def list_saved_queries(*, config: AppConfig) -> Sequence[SavedQuerySummary]:
    """Return the chapter queries recorded by the last site build."""

    summaries: list[SavedQuerySummary] = []
    for entry in _load_catalog(config):
        summaries.append(
            SavedQuerySummary(
                block_id=str(entry["widget_id"]),
                description=str(entry.get("description") or ""),
                chapter_id=str(entry.get("chapter_id") or ""),
            )
        )
    return summaries


def describe_schema(
    *,
    config: AppConfig,
    table_filter: str | None = None,
) -> SchemaOverview:
    """List the snapshot tables with their columns and row counts."""
    with _read_only_connection(config) as connection:
        names = _table_names(connection, table_filter)
        if table_filter and not names:
            raise QueryError(f"Table '{table_filter}' does not exist in the dataset.")
        tables = [_describe_table(connection, name) for name in names]

    return SchemaOverview(tables=tables, database_path=config.dataset.path)


# ---------------------------------------------------------------------------
# Internal helpers


def _normalise_limit(limit: int | None) -> int | None:
    if limit is None:
        return DEFAULT_ROW_LIMIT
    if limit <= 0:
        return None
    return limit


@contextmanager
def _read_only_connection(config: AppConfig) -> Iterator[sqlite3.Connection]:
    try:
        with connect(config) as connection:
            yield connection
    except DatasetError as exc:
        raise QueryError(str(exc)) from exc


def _catalog_path(config: AppConfig) -> Path:
    return config.build.output_dir / CATALOG_RELATIVE_PATH


def _load_catalog(config: AppConfig) -> list[Mapping[str, Any]]:
    catalog_path = _catalog_path(config)
    if not catalog_path.exists():
        raise QueryError(
            f"Query catalog not found at {catalog_path}; run 'ehi-build site' first."
        )
    try:
        data = json.loads(catalog_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise QueryError(f"Query catalog at {catalog_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise QueryError("Query catalog must be a JSON list of widget payloads.")
    return [entry for entry in data if isinstance(entry, Mapping) and "widget_id" in entry]


def _lookup_saved_query(config: AppConfig, block_id: str) -> Mapping[str, Any]:
    catalog = _load_catalog(config)
    for entry in catalog:
        if entry["widget_id"] == block_id:
            return entry
    raise QueryError(
        f"Query '{block_id}' is not in the catalog. Run 'ehi-query list' to see available ids."
    )


def _table_names(connection: sqlite3.Connection, table_filter: str | None) -> list[str]:
    rows = connection.execute(
        "SELECT name FROM sqlite_schema WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetchall()
    names = [row[0] for row in rows]
    if table_filter:
        wanted = table_filter.casefold()
        names = [name for name in names if name.casefold() == wanted]
    return names


def _describe_table(connection: sqlite3.Connection, name: str) -> SchemaTable:
    quoted = '"' + name.replace('"', '""') + '"'
    columns = [
        (row[1], row[2] or "", bool(row[3]))
        for row in connection.execute(f"PRAGMA table_info({quoted})").fetchall()
    ]
    (row_count,) = connection.execute(f"SELECT COUNT(*) FROM {quoted}").fetchone()
    return SchemaTable(name=name, columns=columns, row_count=int(row_count))
