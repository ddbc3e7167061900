from __future__ import annotations

from pathlib import Path

import pytest

from ehi_cli.ehi_build.chapters import (
    discover_chapters,
    extract_summary,
    extract_title,
    group_by_part,
    load_chapter,
    parse_filename,
)
from ehi_cli.shared.exceptions import BuildError
from ehi_cli.shared.logging import get_logger


def test_parse_filename_variants() -> None:
    assert parse_filename("00-01-read-me-first") == ("00-01", "read-me-first", "Read Me First")
    assert parse_filename("02-intro") == ("02-intro", "intro", "Part 2 Introduction")
    assert parse_filename("Appendix Notes") == ("", "appendix-notes", "Appendix Notes")


def test_extract_title_strips_prefixes_and_backticks() -> None:
    assert extract_title("# Chapter 0.1: Read `Me` First\n\nBody") == "Read Me First"
    assert extract_title("## Part 3: Clinical Data\n") == "Clinical Data"
    assert extract_title("No headings here") == ""


def test_extract_summary_prefers_purpose_line() -> None:
    assert extract_summary("# T\n\n*Purpose: Explain the basics.*\n\nMore.") == "Explain the basics."
    assert extract_summary("# T\n\nPlain first paragraph.\n") == "Plain first paragraph."
    long_line = "word " * 60
    summary = extract_summary(f"# T\n\n{long_line}")
    assert summary.endswith("...")
    assert len(summary) <= 153


def test_discover_chapters_sorts_and_loads(chapters_dir: Path) -> None:
    chapters = discover_chapters(chapters_dir, logger=get_logger())

    assert [chapter.document_id for chapter in chapters] == ["00-01-big-tables", "00-intro"]
    big, intro = chapters
    assert big.title == "Big Tables"
    assert big.order == "0.1"
    assert big.page_path == "chapters/00-01-big-tables.html"
    assert intro.title == "Getting Started"
    assert intro.summary == "How to read this manual."
    assert intro.part == "00"


def test_discover_chapters_requires_directory(tmp_path: Path) -> None:
    with pytest.raises(BuildError, match="not found"):
        discover_chapters(tmp_path / "missing", logger=get_logger())


def test_group_by_part_uses_names_and_fallback(tmp_path: Path) -> None:
    chapters = [
        load_chapter(tmp_path / "01-02-b.md", "# B"),
        load_chapter(tmp_path / "01-01-a.md", "# A"),
        load_chapter(tmp_path / "09-01-z.md", "# Z"),
    ]

    groups = group_by_part(chapters, {"01": "Core Architecture"})

    assert [(part, name) for part, name, _ in groups] == [("01", "Core Architecture"), ("09", "Additional Topics")]
    assert [chapter.title for chapter in groups[0][2]] == ["A", "B"]
