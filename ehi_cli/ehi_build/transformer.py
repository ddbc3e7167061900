"""Swap query annotations for widget placeholders carrying baked results."""

from __future__ import annotations

import html
import re
from typing import Callable, Mapping

from ehi_cli.ehi_query.types import QueryResult
from ehi_cli.ehi_widget.payload import WidgetPayload
from ehi_cli.shared.exceptions import BakeIntegrityError

from .extractor import infer_description, iter_annotations
from .types import BlockKey

PLACEHOLDER_CLASS = "sql-widget-placeholder"

_PLACEHOLDER = re.compile(
    r'<div class="sql-widget-placeholder" data-widget-id="(?P<widget_id>[^"]*)" '
    r'data-payload="(?P<payload>[^"]*)"></div>'
)
_WRAPPED_PLACEHOLDER = re.compile(
    r"<p>\s*(?P<placeholder><div class=\"sql-widget-placeholder\"[^>]*></div>)\s*</p>"
)


def transform_document(
    document_id: str,
    text: str,
    results: Mapping[BlockKey, QueryResult],
) -> str:
    """Replace every well-formed annotation with a single-line placeholder.

    Text outside the matched spans is copied verbatim, malformed annotations
    included. Raises :class:`BakeIntegrityError` when a block has no result.
    """
    pieces: list[str] = []
    cursor = 0
    index = 0
    for annotation in iter_annotations(text):
        query = annotation.query
        if query is None:
            continue
        key = (document_id, index)
        if key not in results:
            raise BakeIntegrityError(
                f"No baked result for query block {document_id}-{index} "
                f"(line {annotation.line}); extraction and baking are out of sync."
            )
        description = annotation.attributes.get("description") or infer_description(text, annotation.start)
        payload = WidgetPayload(
            widget_id=f"{document_id}-{index}",
            query=query,
            description=description,
            result=results[key],
        )
        pieces.append(text[cursor : annotation.start])
        pieces.append(render_placeholder(payload))
        # raw HTML blocks end at a blank line
        if text.startswith("\n", annotation.end):
            pieces.append("\n")
        cursor = annotation.end
        index += 1
    pieces.append(text[cursor:])
    return "".join(pieces)


def render_placeholder(payload: WidgetPayload) -> str:
    return (
        f'<div class="{PLACEHOLDER_CLASS}" data-widget-id="{html.escape(payload.widget_id, quote=True)}" '
        f'data-payload="{html.escape(payload.to_json(), quote=True)}"></div>'
    )


def count_placeholders(markup: str) -> int:
    return sum(1 for _ in _PLACEHOLDER.finditer(markup))


def read_placeholders(markup: str) -> list[WidgetPayload]:
    """Decode every placeholder payload in document order."""
    return [WidgetPayload.from_json(html.unescape(match.group("payload"))) for match in _PLACEHOLDER.finditer(markup)]


def unwrap_placeholders(markup: str) -> str:
    """Lift placeholders out of paragraphs the markdown renderer wrapped them in."""
    return _WRAPPED_PLACEHOLDER.sub(lambda match: match.group("placeholder"), markup)


def expand_placeholders(markup: str, render: Callable[[WidgetPayload], str]) -> str:
    """Replace each placeholder with the markup returned by ``render``."""
    unwrapped = unwrap_placeholders(markup)
    return _PLACEHOLDER.sub(
        lambda match: render(WidgetPayload.from_json(html.unescape(match.group("payload")))),
        unwrapped,
    )
