"""Result-table markup shared by baked pages and the in-browser runtime."""

from __future__ import annotations

from html import escape

from ehi_cli.ehi_query.types import QueryResult, Scalar


def format_cell(value: Scalar) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_result_html(result: QueryResult, *, showing_all: bool = False) -> str:
    """Return the markup for a result: error box, table, or empty notice."""
    if result.error:
        return f'<div class="sql-error"><strong>Error:</strong> {escape(result.error)}</div>'

    columns = result.columns or ()
    rows = result.rows or ()
    parts: list[str] = []
    if columns:
        parts.append('<div class="sql-results-wrapper"><table class="sql-results"><thead><tr>')
        parts.extend(f"<th>{escape(column)}</th>" for column in columns)
        parts.append("</tr></thead><tbody>")
        for row in rows:
            parts.append("<tr>")
            parts.extend(f"<td>{escape(format_cell(row.get(column)))}</td>" for column in columns)
            parts.append("</tr>")
        parts.append("</tbody></table></div>")

    if not rows:
        parts.append('<p class="sql-no-results">No results returned</p>')
    elif result.has_more and not showing_all:
        parts.append(
            f'<p class="sql-note">Showing the first {len(rows)} rows. '
            '<button type="button" class="sql-show-all-button">Show all rows</button></p>'
        )
    return "".join(parts)


def render_elapsed(result: QueryResult) -> str:
    if result.elapsed_ms is None:
        return ""
    return f"Executed in {result.elapsed_ms:.0f}ms"
