"""The execute contract shared by build-time baking and the in-browser runtime.

Both sides call :func:`execute` with a connection to the same snapshot, so a
baked result and a reader's first unedited run go through identical code.
This module only depends on the standard library because it is also shipped
to the browser.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Sequence

from .types import QueryResult, Scalar

# Errors the sqlite3 module raises for bad query text: compile failures,
# unknown objects, multiple statements and embedded NUL characters.
_QUERY_ERRORS = (sqlite3.Error, sqlite3.Warning, ValueError, OverflowError)


def execute(query_text: str, connection: sqlite3.Connection, limit: int | None = None) -> QueryResult:
    """Run ``query_text`` and return its columns and rows, or the error message.

    With ``limit`` set, iteration stops after ``limit`` rows; one extra row is
    stepped (and discarded) to decide ``has_more``. When the query returns no
    rows and the engine reported no columns, a shape probe recovers the column
    names for header rendering. Never raises for problems with the query text.
    """
    cursor: sqlite3.Cursor | None = None
    try:
        cursor = connection.execute(query_text)
        columns: tuple[str, ...] | None = None
        rows: list[dict[str, Scalar]] = []
        has_more = False
        for values in cursor:
            if columns is None:
                columns = _column_names(cursor)
            if limit is not None and len(rows) >= limit:
                has_more = True
                break
            rows.append(_row_mapping(columns, values))
        if columns is None:
            columns = _column_names(cursor) or probe_columns(query_text, connection)
    except _QUERY_ERRORS as exc:
        return QueryResult.failure(str(exc))
    finally:
        if cursor is not None:
            cursor.close()

    return QueryResult.success(columns, rows, has_more=has_more)


def probe_columns(query_text: str, connection: sqlite3.Connection) -> tuple[str, ...]:
    """Recover column names for ``query_text`` without fetching any rows.

    Failures are swallowed: the caller renders an empty header instead.
    """
    statement = query_text.strip().rstrip(";").strip()
    if not statement:
        return ()
    try:
        cursor = connection.execute(f"SELECT * FROM ({statement}) LIMIT 0")
    except _QUERY_ERRORS:
        return ()
    try:
        return _column_names(cursor)
    finally:
        cursor.close()


def _column_names(cursor: sqlite3.Cursor) -> tuple[str, ...]:
    description = cursor.description or ()
    return tuple(str(column[0]) for column in description)


def _row_mapping(columns: Sequence[str], values: Sequence[Any]) -> dict[str, Scalar]:
    return {column: _scalar(value) for column, value in zip(columns, values)}


def _scalar(value: Any) -> Scalar:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value
