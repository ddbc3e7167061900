"""Bind widgets in a rendered page to their controllers.

This module runs inside Pyodide. Everything except :func:`boot` only touches
the objects it is handed, so the binding can be driven by any object exposing
the few DOM methods used here.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

from ehi_cli.shared.exceptions import DatasetLoadError
from ehi_cli.shared.logging import Logger, get_logger

from .controller import WidgetController, WidgetState
from .dataset import DatasetHandle
from .html import render_elapsed, render_result_html
from .payload import WidgetPayload
from .playground import PLAYGROUND_WIDGET_ID, decode_share_token, share_url, token_from_search
from .runtime import DEFAULT_ROW_LIMIT, ClientRuntime

Proxy = Callable[[Callable[..., Any]], Any]

_background: set[asyncio.Future[Any]] = set()
_mounted: list[WidgetController] = []


def _no_proxy(handler: Callable[..., Any]) -> Callable[..., Any]:
    return handler


def _spawn(awaitable: Awaitable[Any]) -> asyncio.Future[Any]:
    future = asyncio.ensure_future(awaitable)
    _background.add(future)
    future.add_done_callback(_background.discard)
    return future


class DomWidgetView:
    """Renders a :class:`WidgetState` into one ``.sql-widget`` element."""

    def __init__(self, element: Any) -> None:
        self.element = element
        self.editor = element.querySelector(".sql-editor")
        self.run_button = element.querySelector(".sql-run-button")
        self.reset_button = element.querySelector(".sql-reset-button")
        self.timing = element.querySelector(".sql-execution-time")
        self.results = element.querySelector(".sql-widget-results")

    def render(self, state: WidgetState) -> None:
        if self.editor.value != state.query:
            self.editor.value = state.query
        self.editor.disabled = state.is_running
        self.run_button.disabled = state.is_running
        self.run_button.textContent = "Running..." if state.is_running else "Run"
        self.reset_button.disabled = not state.can_reset
        self.element.setAttribute("data-status", state.status.value)
        if state.is_running:
            self.timing.textContent = ""
            return
        self.timing.textContent = render_elapsed(state.result)
        self.results.innerHTML = render_result_html(state.result, showing_all=state.showing_all)


def bind_widget(element: Any, controller: WidgetController, *, proxy: Proxy = _no_proxy) -> DomWidgetView:
    """Wire Run, Reset, Show-all and Ctrl/Cmd+Enter for one widget element."""
    view = DomWidgetView(element)

    def on_input(event: Any) -> None:
        controller.edit(view.editor.value)

    def on_keydown(event: Any) -> None:
        if event.key == "Enter" and (event.ctrlKey or event.metaKey):
            event.preventDefault()
            controller.edit(view.editor.value)
            _spawn(controller.run())

    def on_run(event: Any) -> None:
        controller.edit(view.editor.value)
        _spawn(controller.run())

    def on_reset(event: Any) -> None:
        controller.reset()

    def on_results_click(event: Any) -> None:
        target = event.target
        if target is not None and target.classList.contains("sql-show-all-button"):
            _spawn(controller.show_all())

    view.editor.addEventListener("input", proxy(on_input))
    view.editor.addEventListener("keydown", proxy(on_keydown))
    view.run_button.addEventListener("click", proxy(on_run))
    view.reset_button.addEventListener("click", proxy(on_reset))
    view.results.addEventListener("click", proxy(on_results_click))
    controller.attach(view)
    return view


def mount_widgets(
    document: Any,
    runtime: ClientRuntime,
    *,
    proxy: Proxy = _no_proxy,
    logger: Logger | None = None,
) -> list[WidgetController]:
    """Create a controller for every widget on the page that carries a valid payload."""
    log = logger or runtime.logger
    controllers: list[WidgetController] = []
    for element in document.querySelectorAll(".sql-widget"):
        data = element.querySelector("script.sql-widget-data")
        if data is None:
            log.warning(f"Widget {element.id} has no embedded payload; leaving it static.")
            continue
        try:
            payload = WidgetPayload.from_json(data.textContent)
        except ValueError as exc:
            log.warning(f"Widget {element.id} has an unreadable payload: {exc}")
            continue
        controller = WidgetController(payload, runtime)
        bind_widget(element, controller, proxy=proxy)
        controllers.append(controller)
    log.debug(f"Mounted {len(controllers)} SQL widget(s)")
    return controllers


def mount_playground(
    document: Any,
    window: Any,
    controller: WidgetController,
    *,
    proxy: Proxy = _no_proxy,
    logger: Logger | None = None,
) -> None:
    """Bind the example picker, the share button and shared-link loading."""
    log = logger or get_logger()
    name_input = document.getElementById("query-name")
    select = document.getElementById("example-select")
    share_button = document.getElementById("share-button")
    catalog_element = document.getElementById("example-catalog")
    examples = {item["id"]: item for item in json.loads(catalog_element.textContent or "[]")}

    shared_token = token_from_search(window.location.search or "")
    if shared_token:
        shared = decode_share_token(shared_token, logger=log)
        if shared is not None:
            name_input.value = shared.name
            controller.edit(shared.query)

    def on_select(event: Any) -> None:
        example = examples.get(select.value)
        if example is None:
            return
        name_input.value = example["name"]
        controller.edit(example["query"])

    def on_share(event: Any) -> None:
        url = share_url(window.location.href, name_input.value, controller.state.query)
        window.history.replaceState(None, "", url)
        window.navigator.clipboard.writeText(url)
        share_button.textContent = "Copied!"

    def on_clear(event: Any) -> None:
        name_input.value = ""
        select.value = ""

    select.addEventListener("change", proxy(on_select))
    share_button.addEventListener("click", proxy(on_share))
    document.querySelector(f"#widget-{PLAYGROUND_WIDGET_ID} .sql-reset-button").addEventListener(
        "click", proxy(on_clear)
    )


def boot() -> None:
    """Page entry point executed by PyScript."""
    from js import document, window
    from pyodide.ffi import create_proxy
    from pyodide.http import pyfetch

    logger = get_logger()
    body = document.body
    source = body.getAttribute("data-dataset-url")
    row_limit = int(body.getAttribute("data-row-limit") or DEFAULT_ROW_LIMIT)

    async def fetch_snapshot(url: str) -> bytes:
        response = await pyfetch(url)
        if not response.ok:
            raise DatasetLoadError(f"Failed to load database: HTTP {response.status} {response.status_text}")
        return await response.bytes()

    dataset = DatasetHandle(source, loader=fetch_snapshot, logger=logger)
    runtime = ClientRuntime(dataset, row_limit=row_limit, logger=logger)
    controllers = mount_widgets(document, runtime, proxy=create_proxy, logger=logger)
    _mounted.extend(controllers)

    playground = next((item for item in controllers if item.widget_id == PLAYGROUND_WIDGET_ID), None)
    if playground is not None:
        mount_playground(document, window, playground, proxy=create_proxy, logger=logger)
    if controllers:
        dataset.prefetch()
