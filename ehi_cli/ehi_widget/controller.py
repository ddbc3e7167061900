"""Per-widget state machine for the interactive SQL widgets."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from ehi_cli.ehi_query.types import QueryResult

from .payload import WidgetPayload
from .runtime import ClientRuntime


class WidgetStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class WidgetState:
    """Snapshot of one widget handed to its view on every transition."""

    query: str
    original_query: str
    result: QueryResult
    status: WidgetStatus = WidgetStatus.IDLE
    showing_all: bool = False

    @property
    def is_running(self) -> bool:
        return self.status is WidgetStatus.RUNNING

    @property
    def can_reset(self) -> bool:
        return self.query != self.original_query

    @property
    def error(self) -> str | None:
        return self.result.error if self.status is WidgetStatus.ERRORED else None


class WidgetView(Protocol):
    def render(self, state: WidgetState) -> None: ...


class WidgetController:
    """Drives one widget: edit, run, show all rows, reset.

    At most one execution is tracked per widget. A run requested while one
    is in flight returns the in-flight result. A reset invalidates the
    in-flight run so its result never reaches the view.
    """

    def __init__(
        self,
        payload: WidgetPayload,
        runtime: ClientRuntime,
        view: WidgetView | None = None,
    ) -> None:
        self.payload = payload
        self.runtime = runtime
        self.view = view
        self._state = self._initial_state()
        self._inflight: asyncio.Future[QueryResult] | None = None
        self._generation = 0

    @property
    def widget_id(self) -> str:
        return self.payload.widget_id

    @property
    def state(self) -> WidgetState:
        return self._state

    def attach(self, view: WidgetView) -> None:
        self.view = view
        view.render(self._state)

    def edit(self, text: str) -> None:
        if text != self._state.query:
            self._set_state(replace(self._state, query=text))

    async def run(self) -> QueryResult:
        """Run the current query with the runtime's default row cap."""
        return await self._execute(limit=None)

    async def show_all(self) -> QueryResult:
        """Re-run the current query without a row cap."""
        return await self._execute(limit=0)

    def reset(self) -> None:
        """Restore the baked query text and result, from any state."""
        self._generation += 1
        self._inflight = None
        self._set_state(self._initial_state())

    async def _execute(self, *, limit: int | None) -> QueryResult:
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            return await asyncio.shield(inflight)

        self._set_state(replace(self._state, status=WidgetStatus.RUNNING))
        task = asyncio.ensure_future(self._run_once(self._state.query, limit, self._generation))
        self._inflight = task
        return await asyncio.shield(task)

    async def _run_once(self, query: str, limit: int | None, generation: int) -> QueryResult:
        result = await self.runtime.execute(query, limit=limit)
        if generation != self._generation:
            return result
        status = WidgetStatus.ERRORED if result.error else WidgetStatus.IDLE
        self._set_state(
            replace(
                self._state,
                result=result,
                status=status,
                showing_all=limit is not None and not result.error,
            )
        )
        return result

    def _initial_state(self) -> WidgetState:
        return WidgetState(
            query=self.payload.query,
            original_query=self.payload.query,
            result=self.payload.result,
        )

    def _set_state(self, state: WidgetState) -> None:
        self._state = state
        if self.view is not None:
            self.view.render(state)
