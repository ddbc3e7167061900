"""Data structures shared by the build-time executor and the in-browser runtime."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

Scalar = str | int | float | bool | None


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Outcome of executing one query against the reference dataset.

    Exactly one side is populated: ``columns`` and ``rows`` for a successful
    execution, ``error`` for a failed one.
    """

    columns: tuple[str, ...] | None
    rows: tuple[Mapping[str, Scalar], ...] | None
    error: str | None = None
    has_more: bool = False
    elapsed_ms: float | None = None

    @classmethod
    def success(
        cls,
        columns: Sequence[str],
        rows: Sequence[Mapping[str, Scalar]],
        *,
        has_more: bool = False,
    ) -> QueryResult:
        return cls(columns=tuple(columns), rows=tuple(rows), error=None, has_more=has_more)

    @classmethod
    def failure(cls, message: str, *, elapsed_ms: float | None = None) -> QueryResult:
        return cls(columns=None, rows=None, error=message or "Query execution failed", elapsed_ms=elapsed_ms)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def row_count(self) -> int:
        return len(self.rows) if self.rows is not None else 0

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready mapping embedded into generated pages."""
        payload: dict[str, Any] = {
            "columns": list(self.columns) if self.columns is not None else None,
            "rows": [dict(row) for row in self.rows] if self.rows is not None else None,
            "error": self.error,
            "has_more": self.has_more,
        }
        if self.elapsed_ms is not None:
            payload["elapsed_ms"] = self.elapsed_ms
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> QueryResult:
        error = payload.get("error")
        if error:
            return cls.failure(str(error), elapsed_ms=payload.get("elapsed_ms"))
        columns = payload.get("columns") or []
        rows = payload.get("rows") or []
        return cls(
            columns=tuple(str(column) for column in columns),
            rows=tuple(dict(row) for row in rows),
            error=None,
            has_more=bool(payload.get("has_more", False)),
            elapsed_ms=payload.get("elapsed_ms"),
        )


@dataclass(frozen=True, slots=True)
class SchemaTable:
    """One snapshot table: (name, declared type, not null) per column, and its row count."""

    name: str
    columns: Sequence[tuple[str, str, bool]]
    row_count: int


@dataclass(frozen=True, slots=True)
class SchemaOverview:
    """Aggregated schema details returned by the schema inspector."""

    tables: Sequence[SchemaTable]
    database_path: Path


@dataclass(frozen=True, slots=True)
class SavedQuerySummary:
    """A chapter query listed from the build's query catalog."""

    block_id: str
    description: str
    chapter_id: str
