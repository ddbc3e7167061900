"""Data structures shared across ehi-build modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

BlockKey = tuple[str, int]


@dataclass(frozen=True, slots=True)
class QueryBlock:
    """One ``<example-query>`` annotation found in a chapter."""

    document_id: str
    index: int
    query: str
    description: str | None
    start: int
    end: int
    line: int

    @property
    def key(self) -> BlockKey:
        return (self.document_id, self.index)

    @property
    def block_id(self) -> str:
        return f"{self.document_id}-{self.index}"


@dataclass(frozen=True, slots=True)
class Chapter:
    """A markdown chapter discovered under the chapters directory."""

    document_id: str
    source_path: Path
    text: str
    number: str
    slug: str
    title: str
    summary: str

    @property
    def part(self) -> str:
        return self.number[:2]

    @property
    def order(self) -> str:
        """Display number: ``00-01`` becomes ``0.1``; intro chapters keep their number."""
        if "intro" in self.number or "-" not in self.number:
            return self.number
        part, chapter = self.number.split("-", 1)
        return f"{int(part)}.{int(chapter)}"

    @property
    def page_path(self) -> str:
        return f"chapters/{self.document_id}.html"


@dataclass(slots=True)
class BakeSummary:
    """Counts collected while baking query results."""

    successful: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.successful + len(self.failed)


@dataclass(slots=True)
class BuildReport:
    """What a site build produced."""

    output_dir: Path
    chapters: int = 0
    blocks: int = 0
    bake: BakeSummary = field(default_factory=BakeSummary)
    pages: list[Path] = field(default_factory=list)
    html_issues: list[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class QueryIssue:
    """A chapter query that failed validation against the snapshot."""

    path: Path
    line: int
    block_id: str
    description: str | None
    query: str
    error: str
