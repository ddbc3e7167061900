"""Chapter discovery and metadata parsing."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Mapping

from ehi_cli.shared.exceptions import BuildError
from ehi_cli.shared.logging import Logger
from ehi_cli.shared.utils import slugify, truncate_words

from .types import Chapter

_FILENAME = re.compile(r"^(?P<number>\d{2}(?:-\d{2}|-intro))(?:-(?P<slug>.+))?$")
_HEADING = re.compile(r"^#+\s*")
_TITLE_PREFIXES = (
    re.compile(r"^Chapter\s+\d+\.\d+:\s*", re.IGNORECASE),
    re.compile(r"^Part\s+\d+:\s*", re.IGNORECASE),
)
_PURPOSE = re.compile(r"^\*Purpose:\s*(?P<text>.*?)\*?$")
SUMMARY_LENGTH = 150


def discover_chapters(chapters_dir: Path, *, logger: Logger) -> list[Chapter]:
    """Load every ``*.md`` chapter under ``chapters_dir`` sorted by file name."""
    if not chapters_dir.is_dir():
        raise BuildError(f"Chapters directory not found: {chapters_dir}")

    chapters: list[Chapter] = []
    for path in sorted(chapters_dir.glob("*.md")):
        text = path.read_text(encoding="utf-8")
        chapters.append(load_chapter(path, text))
    if not chapters:
        logger.warning(f"No markdown chapters found in {chapters_dir}")
    else:
        logger.debug(f"Found {len(chapters)} chapter(s) in {chapters_dir}")
    return chapters


def load_chapter(path: Path, text: str) -> Chapter:
    number, slug, fallback_title = parse_filename(path.stem)
    return Chapter(
        document_id=path.stem,
        source_path=path,
        text=text,
        number=number,
        slug=slug,
        title=extract_title(text) or fallback_title,
        summary=extract_summary(text),
    )


def parse_filename(stem: str) -> tuple[str, str, str]:
    """Split ``00-01-read-me-first`` into number, slug and a title made from the slug.

    Stems outside the numbering scheme keep an empty number and sort into part ``""``.
    """
    match = _FILENAME.match(stem)
    if match is None:
        slug = slugify(stem)
        return "", slug, _title_from_slug(slug)

    number = match.group("number")
    slug = match.group("slug") or ("intro" if number.endswith("intro") else slugify(stem))
    if number.endswith("intro") and match.group("slug") is None:
        return number, slug, f"Part {int(number[:2])} Introduction"
    return number, slug, _title_from_slug(slug)


def extract_title(text: str) -> str:
    """Return the first heading with ``Chapter X.Y:`` and ``Part X:`` prefixes removed."""
    for line in text.splitlines():
        if line.startswith("#"):
            title = _HEADING.sub("", line)
            for prefix in _TITLE_PREFIXES:
                title = prefix.sub("", title)
            return title.replace("`", "").strip()
    return ""


def extract_summary(text: str) -> str:
    """Return the ``*Purpose: ...*`` line, or the first paragraph line, truncated."""
    for line in _body_lines(text):
        purpose = _PURPOSE.match(line)
        if purpose:
            return purpose.group("text").strip()
        return truncate_words(line, SUMMARY_LENGTH, min_length=100)
    return ""


def group_by_part(chapters: Iterable[Chapter], part_names: Mapping[str, str]) -> list[tuple[str, str, list[Chapter]]]:
    """Group chapters by their two-digit part prefix, preserving chapter order."""
    grouped: dict[str, list[Chapter]] = {}
    for chapter in chapters:
        grouped.setdefault(chapter.part, []).append(chapter)
    return [
        (part, part_names.get(part, "Additional Topics"), sorted(items, key=lambda item: item.number))
        for part, items in grouped.items()
    ]


def _body_lines(text: str) -> Iterable[str]:
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        yield stripped


def _title_from_slug(slug: str) -> str:
    return " ".join(word.capitalize() for word in slug.split("-") if word)
