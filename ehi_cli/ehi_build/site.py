"""Static site assembly: chapters in, HTML pages with hydrated SQL widgets out."""

from __future__ import annotations

import json
import re
import shutil
from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from jinja2 import Environment, FileSystemLoader, Template
from markdown_it import MarkdownIt

from ehi_cli.ehi_query.types import QueryResult
from ehi_cli.ehi_widget.html import render_result_html
from ehi_cli.ehi_widget.payload import WidgetPayload, script_safe
from ehi_cli.ehi_widget.playground import DEFAULT_PLAYGROUND_QUERY, PLAYGROUND_WIDGET_ID
from ehi_cli.shared import paths
from ehi_cli.shared.config import AppConfig
from ehi_cli.shared.database import connect
from ehi_cli.shared.exceptions import BakeIntegrityError
from ehi_cli.shared.logging import Logger
from ehi_cli.shared.utils import compute_file_sha256

from .baker import bake_blocks
from .chapters import discover_chapters, group_by_part
from .extractor import extract_query_blocks
from .transformer import count_placeholders, expand_placeholders, transform_document
from .types import BuildReport, Chapter, QueryBlock

PACKAGE_ROOT = Path(__file__).resolve().parent.parent
TEMPLATE_DIR = Path(__file__).parent / "templates"
STATIC_DIR = Path(__file__).parent / "static"

CATALOG_PATH = "assets/data/queries.json"
SEARCH_INDEX_PATH = "assets/search-index.json"
STYLESHEET_PATH = "assets/css/sql-widget.css"
BROWSER_DIR = "assets/py"

# Modules the in-browser runtime imports, relative to the ehi_cli package.
BROWSER_MODULES = (
    "shared/exceptions.py",
    "shared/logging.py",
    "ehi_query/types.py",
    "ehi_query/engine.py",
    "ehi_widget/payload.py",
    "ehi_widget/html.py",
    "ehi_widget/dataset.py",
    "ehi_widget/runtime.py",
    "ehi_widget/controller.py",
    "ehi_widget/playground.py",
    "ehi_widget/dom.py",
)
BROWSER_PACKAGES = ("sqlite3", "rich")

_TAGS = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_WRAPPED_BLOCK = re.compile(r"<p>\s*<div")


@dataclass(slots=True)
class RenderedChapter:
    chapter: Chapter
    blocks: list[QueryBlock]
    body: str
    plain_text: str


def create_markdown_renderer() -> MarkdownIt:
    """CommonMark with tables, strikethrough and raw HTML; mermaid fences stay diagrams."""
    md = MarkdownIt("commonmark", {"html": True}).enable("table").enable("strikethrough")
    default_fence = md.renderer.rules["fence"]

    def render_fence(tokens, idx, options, env):
        token = tokens[idx]
        info = token.info.strip().split(maxsplit=1)[0].lower() if token.info else ""
        if info == "mermaid":
            return f'<pre class="mermaid">\n{escape(token.content)}</pre>\n'
        return default_fence(tokens, idx, options, env)

    md.renderer.rules["fence"] = render_fence
    return md


def create_template_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_widget(
    template: Template,
    payload: WidgetPayload,
    *,
    reset_label: str | None = None,
) -> str:
    """Render the full widget markup with the baked result already in place."""
    line_count = payload.query.count("\n") + 1
    return template.render(
        payload=payload,
        editor_rows=max(3, min(line_count + 1, 20)),
        results_html=render_result_html(payload.result),
        payload_json=payload.to_script_json(),
        reset_label=reset_label,
    ).strip()


def render_chapter(
    chapter: Chapter,
    blocks: Sequence[QueryBlock],
    results: Mapping[tuple[str, int], QueryResult],
    *,
    markdown: MarkdownIt,
    widget_template: Template,
) -> RenderedChapter:
    """Transform, render and hydrate one chapter.

    Raises :class:`BakeIntegrityError` when the rendered markup does not carry
    exactly one placeholder per extracted block.
    """
    transformed = transform_document(chapter.document_id, chapter.text, results)
    markup = markdown.render(transformed)
    found = count_placeholders(markup)
    if found != len(blocks):
        raise BakeIntegrityError(
            f"{chapter.document_id}: expected {len(blocks)} widget placeholder(s) "
            f"after rendering, found {found}."
        )
    body = expand_placeholders(markup, lambda payload: render_widget(widget_template, payload))
    return RenderedChapter(
        chapter=chapter,
        blocks=list(blocks),
        body=body,
        plain_text=plain_text(markup),
    )


def plain_text(markup: str) -> str:
    return _WHITESPACE.sub(" ", _TAGS.sub("", markup)).strip()


def check_html(document_id: str, markup: str) -> list[str]:
    """Return structural problems found in a rendered chapter body."""
    issues: list[str] = []
    if _WRAPPED_BLOCK.search(markup):
        issues.append(f"{document_id}: block element wrapped in a <p> tag")
    if count_placeholders(markup):
        issues.append(f"{document_id}: widget placeholder was not expanded")
    if "<example-query" in markup:
        issues.append(f"{document_id}: unprocessed <example-query> annotation left in page")
    return issues


def build_example_catalog(
    blocks: Iterable[QueryBlock],
    chapters: Iterable[Chapter],
) -> list[dict[str, Any]]:
    """Examples offered by the playground, sorted by chapter then block order."""
    by_id = {chapter.document_id: chapter for chapter in chapters}
    examples: list[dict[str, Any]] = []
    for block in sorted(blocks, key=lambda item: (item.document_id, item.index)):
        chapter = by_id.get(block.document_id)
        examples.append(
            {
                "id": block.block_id,
                "name": block.description or f"Query {block.index + 1}",
                "chapter_number": chapter.order if chapter else "",
                "chapter_title": chapter.title if chapter else block.document_id,
                "query": block.query,
            }
        )
    return examples


def build_search_index(rendered: Iterable[RenderedChapter]) -> list[dict[str, str]]:
    return [
        {
            "id": item.chapter.document_id,
            "title": item.chapter.title,
            "url": item.chapter.page_path,
            "content": item.plain_text,
            "chapter": item.chapter.order,
        }
        for item in rendered
    ]


def build_site(config: AppConfig, *, logger: Logger, dry_run: bool = False) -> BuildReport:
    """Build every chapter page, the index, the playground and site assets."""
    output_dir = config.build.output_dir
    report = BuildReport(output_dir=output_dir, dry_run=dry_run)

    logger.step(f"Discovering chapters in {config.build.chapters_dir}")
    chapters = discover_chapters(config.build.chapters_dir, logger=logger)
    report.chapters = len(chapters)

    markdown = create_markdown_renderer()
    environment = create_template_environment()
    widget_template = environment.get_template("widget.html.j2")

    rendered: list[RenderedChapter] = []
    catalog: list[dict[str, Any]] = []
    with connect(config) as connection:
        for chapter in chapters:
            blocks = list(extract_query_blocks(chapter.document_id, chapter.text, logger=logger))
            results = bake_blocks(
                blocks,
                connection,
                logger=logger,
                row_limit=config.build.bake_row_limit,
                summary=report.bake,
            )
            item = render_chapter(
                chapter,
                blocks,
                results,
                markdown=markdown,
                widget_template=widget_template,
            )
            rendered.append(item)
            report.blocks += len(blocks)
            catalog.extend(
                {
                    "widget_id": block.block_id,
                    "chapter_id": block.document_id,
                    "index": block.index,
                    "query": block.query,
                    "description": block.description,
                    "result": results[block.key].to_payload(),
                }
                for block in blocks
            )
            for issue in check_html(chapter.document_id, item.body):
                report.html_issues.append(issue)
                logger.warning(issue)
            logger.debug(f"Rendered {chapter.document_id}: {len(blocks)} query block(s)")

    logger.info(
        f"Baked {report.bake.total} query block(s): "
        f"{report.bake.successful} succeeded, {len(report.bake.failed)} failed"
    )
    if dry_run:
        logger.info(f"[dry-run] Would write {len(rendered) + 2} page(s) to {output_dir}")
        return report

    writer = _SiteWriter(config, environment, rendered, logger=logger)
    report.pages = writer.write_pages(widget_template)
    writer.write_json(SEARCH_INDEX_PATH, build_search_index(rendered))
    writer.write_json(CATALOG_PATH, catalog)
    writer.copy_assets()
    logger.success(f"Built {len(report.pages)} page(s) into {output_dir}")
    return report


class _SiteWriter:
    """Writes pages and assets for one build."""

    def __init__(
        self,
        config: AppConfig,
        environment: Environment,
        rendered: Sequence[RenderedChapter],
        *,
        logger: Logger,
    ) -> None:
        self.config = config
        self.environment = environment
        self.rendered = rendered
        self.logger = logger
        self.output_dir = config.build.output_dir
        self.parts = group_by_part([item.chapter for item in rendered], config.site.part_names)
        self.dataset_version = compute_file_sha256(config.dataset.path)[:12]

    def page_context(self, page_path: str, *, page_kind: str, current_id: str | None) -> dict[str, Any]:
        dataset_url = paths.asset_url(
            f"assets/data/{self.config.dataset.asset_name}",
            page_path=page_path,
            base_path=self.config.site.base_path,
        )
        root = paths.asset_url("", page_path=page_path, base_path=self.config.site.base_path)
        return {
            "root": root,
            "site_title": self.config.site.title,
            "pyscript_url": self.config.widget.pyscript_url,
            "dataset_url": f"{dataset_url}?v={self.dataset_version}",
            "row_limit": self.config.widget.row_limit,
            "page_kind": page_kind,
            "parts": self.parts,
            "current_id": current_id,
        }

    def write_pages(self, widget_template: Template) -> list[Path]:
        pages: list[Path] = []
        chapter_template = self.environment.get_template("chapter.html.j2")
        for position, item in enumerate(self.rendered):
            chapter = item.chapter
            previous = self.rendered[position - 1].chapter if position > 0 else None
            following = self.rendered[position + 1].chapter if position + 1 < len(self.rendered) else None
            context = self.page_context(chapter.page_path, page_kind="chapter", current_id=chapter.document_id)
            html = chapter_template.render(
                chapter=chapter,
                body=item.body,
                previous=previous,
                next=following,
                **context,
            )
            pages.append(self._write_text(chapter.page_path, html))
        self._remove_stale_chapters({item.chapter.page_path for item in self.rendered})

        index_template = self.environment.get_template("index.html.j2")
        pages.append(
            self._write_text(
                "index.html",
                index_template.render(**self.page_context("index.html", page_kind="index", current_id=None)),
            )
        )
        pages.append(self._write_text("playground.html", self._render_playground(widget_template)))
        return pages

    def _render_playground(self, widget_template: Template) -> str:
        blocks = [block for item in self.rendered for block in item.blocks]
        examples = build_example_catalog(blocks, [item.chapter for item in self.rendered])
        payload = WidgetPayload(
            widget_id=PLAYGROUND_WIDGET_ID,
            query=DEFAULT_PLAYGROUND_QUERY,
            description=None,
            result=QueryResult.success((), ()),
        )
        template = self.environment.get_template("playground.html.j2")
        return template.render(
            examples=examples,
            examples_json=script_safe(json.dumps(examples, ensure_ascii=False)),
            widget_html=render_widget(widget_template, payload, reset_label="Clear"),
            **self.page_context("playground.html", page_kind="playground", current_id="playground"),
        )

    def write_json(self, relative_path: str, data: Any) -> Path:
        return self._write_text(relative_path, json.dumps(data, indent=2, ensure_ascii=False))

    def copy_assets(self) -> None:
        dataset_target = self.output_dir / "assets" / "data" / self.config.dataset.asset_name
        dataset_target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.config.dataset.path, dataset_target)
        self.logger.debug(f"Copied snapshot to {dataset_target} (version {self.dataset_version})")

        stylesheet = self.output_dir / STYLESHEET_PATH
        stylesheet.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(STATIC_DIR / "css" / "sql-widget.css", stylesheet)

        browser_dir = self.output_dir / BROWSER_DIR
        files: dict[str, str] = {}
        for module in BROWSER_MODULES:
            target = browser_dir / "ehi_cli" / module
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(PACKAGE_ROOT / module, target)
            files[f"./ehi_cli/{module}"] = f"./ehi_cli/{module}"
        pyscript_config = {"packages": list(BROWSER_PACKAGES), "files": files}
        self.write_json(f"{BROWSER_DIR}/pyscript.json", pyscript_config)

    def _write_text(self, relative_path: str, content: str) -> Path:
        target = self.output_dir / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content if content.endswith("\n") else content + "\n", encoding="utf-8")
        return target

    def _remove_stale_chapters(self, current: set[str]) -> None:
        chapters_dir = self.output_dir / "chapters"
        for page in chapters_dir.glob("*.html"):
            if f"chapters/{page.name}" not in current:
                page.unlink()
                self.logger.debug(f"Removed stale page {page}")
