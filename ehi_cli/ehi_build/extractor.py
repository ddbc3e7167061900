"""Locate ``<example-query>`` annotations in chapter markdown.

The scan is lexical: the query body is opaque text and is never parsed. The
same scan (:func:`iter_annotations`) drives both extraction and the document
transformer so both agree on which spans are query blocks and how they are
numbered.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Iterator, Mapping

from ehi_cli.shared.logging import Logger, get_logger

from .types import QueryBlock

TAG_NAME = "example-query"

_OPENING = re.compile(r"<example-query(?=[\s>])")
_BLOCK = re.compile(
    r"""<example-query
        (?P<attrs>(?:\s+[\w:-]+\s*=\s*(?:"[^"]*"|'[^']*'))*)\s*>
        (?P<body>(?:(?!<example-query(?=[\s>])).)*?)
        </example-query\s*>""",
    re.DOTALL | re.VERBOSE,
)
_ATTRIBUTE = re.compile(r"""([\w:-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_NON_PROSE_PREFIXES = ("#", "```", "~~~", "<", "|")


@dataclass(frozen=True, slots=True)
class Annotation:
    """A raw match of the annotation syntax, well-formed or not."""

    start: int
    end: int
    line: int
    body: str | None
    attributes: Mapping[str, str] = field(default_factory=dict)

    @property
    def query(self) -> str | None:
        """Trimmed query text, or None when the annotation cannot become a block."""
        if self.body is None:
            return None
        stripped = self.body.strip()
        return stripped or None


def iter_annotations(text: str) -> Iterator[Annotation]:
    """Yield every opening of the annotation syntax in document order.

    An opening with no matching close (or whose body runs into another
    opening) is yielded with ``body=None`` and covers only the opening marker.
    """
    position = 0
    line = 1
    counted_to = 0
    while True:
        opening = _OPENING.search(text, position)
        if opening is None:
            return
        line += text.count("\n", counted_to, opening.start())
        counted_to = opening.start()

        match = _BLOCK.match(text, opening.start())
        if match is None:
            yield Annotation(start=opening.start(), end=opening.end(), line=line, body=None)
            position = opening.end()
            continue

        yield Annotation(
            start=match.start(),
            end=match.end(),
            line=line,
            body=match.group("body"),
            attributes=_parse_attributes(match.group("attrs")),
        )
        position = match.end()


def extract_query_blocks(
    document_id: str,
    text: str,
    *,
    logger: Logger | None = None,
) -> Iterator[QueryBlock]:
    """Yield the query blocks of one document, numbered from 0 in document order."""
    log = logger or get_logger()
    index = 0
    for annotation in iter_annotations(text):
        query = annotation.query
        if query is None:
            reason = "is not terminated" if annotation.body is None else "has an empty body"
            log.warning(f"{document_id}:{annotation.line}: <{TAG_NAME}> {reason}; skipping it.")
            continue

        description = annotation.attributes.get("description") or infer_description(text, annotation.start)
        yield QueryBlock(
            document_id=document_id,
            index=index,
            query=query,
            description=description,
            start=annotation.start,
            end=annotation.end,
            line=annotation.line,
        )
        index += 1


def infer_description(text: str, position: int) -> str | None:
    """Return the closest prose line before ``position``, if there is one.

    Headings, code fences, tables and tag lines are not treated as prose.
    """
    for raw_line in reversed(text[:position].splitlines()):
        candidate = raw_line.strip()
        if not candidate:
            continue
        if candidate.startswith(_NON_PROSE_PREFIXES):
            return None
        return candidate
    return None


def _parse_attributes(raw: str) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for name, double_quoted, single_quoted in _ATTRIBUTE.findall(raw or ""):
        value = double_quoted if double_quoted else single_quoted
        attributes[name.lower()] = html.unescape(value).strip()
    return attributes
