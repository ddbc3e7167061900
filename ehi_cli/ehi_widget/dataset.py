"""Client-side access to the reference dataset snapshot.

Every widget on a page shares one :class:`DatasetHandle`; the snapshot is
downloaded at most once per page load and opened as an in-memory, query-only
SQLite connection.
"""

from __future__ import annotations

import asyncio
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable
from urllib.parse import urlparse
from urllib.request import url2pathname

from ehi_cli.shared.exceptions import DatasetLoadError
from ehi_cli.shared.logging import Logger, get_logger

SQLITE_HEADER = b"SQLite format 3\x00"
FETCH_TIMEOUT_SECONDS = 60.0

SnapshotLoader = Callable[[str], Awaitable[bytes]]


class DatasetState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


async def load_snapshot_bytes(source: str) -> bytes:
    """Fetch snapshot bytes from an ``http(s)://`` URL, a ``file://`` URL or a path."""
    scheme = urlparse(source).scheme.lower()
    if scheme in ("http", "https"):
        import httpx

        try:
            async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True) as client:
                response = await client.get(source)
                response.raise_for_status()
                return response.content
        except httpx.HTTPStatusError as exc:
            raise DatasetLoadError(
                f"Failed to load database: HTTP {exc.response.status_code} for {source}"
            ) from exc
        except httpx.RequestError as exc:
            raise DatasetLoadError(f"Failed to load database from {source}: {exc}") from exc

    path = Path(url2pathname(urlparse(source).path)) if scheme == "file" else Path(source)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise DatasetLoadError(f"Failed to load database from {path}: {exc}") from exc


def open_snapshot_bytes(data: bytes) -> sqlite3.Connection:
    """Deserialize snapshot bytes into a query-only in-memory connection."""
    if not data.startswith(SQLITE_HEADER):
        raise DatasetLoadError("Downloaded dataset is not a SQLite database file.")
    connection = sqlite3.connect(":memory:", check_same_thread=False)
    try:
        connection.deserialize(data)
        connection.execute("PRAGMA query_only = ON")
    except sqlite3.Error as exc:
        connection.close()
        raise DatasetLoadError(f"Unable to open dataset snapshot: {exc}") from exc
    return connection


class DatasetHandle:
    """Shared, lazily loaded snapshot connection.

    State moves from ``uninitialized`` to ``loading`` on the first
    :meth:`prefetch` or :meth:`connection` call and then to ``ready`` or
    ``failed``. A failure is kept and raised to every caller until the page
    is reloaded.
    """

    def __init__(
        self,
        source: str,
        loader: SnapshotLoader | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.source = source
        self._loader = loader or load_snapshot_bytes
        self._logger = logger or get_logger()
        self._state = DatasetState.UNINITIALIZED
        self._future: asyncio.Future[sqlite3.Connection] | None = None

    @property
    def state(self) -> DatasetState:
        return self._state

    def prefetch(self) -> asyncio.Future[sqlite3.Connection]:
        """Start loading without waiting; repeated calls share the same load."""
        if self._future is None:
            self._state = DatasetState.LOADING
            self._logger.info(f"Loading dataset from {self.source}")
            self._future = asyncio.ensure_future(self._load())
            self._future.add_done_callback(self._log_outcome)
        return self._future

    async def connection(self) -> sqlite3.Connection:
        """Wait for the shared load and return the connection.

        Raises :class:`DatasetLoadError` when the load failed.
        """
        # shield: a cancelled caller must not cancel the load other widgets wait on
        future = self.prefetch()
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            if not future.cancelled():
                raise
            raise DatasetLoadError("Dataset load was cancelled.") from None

    def close(self) -> None:
        future = self._future
        if future is not None and future.done() and not future.cancelled() and future.exception() is None:
            future.result().close()

    async def _load(self) -> sqlite3.Connection:
        try:
            data = await self._loader(self.source)
            connection = open_snapshot_bytes(bytes(data))
        except DatasetLoadError:
            self._state = DatasetState.FAILED
            raise
        except Exception as exc:
            self._state = DatasetState.FAILED
            raise DatasetLoadError(f"Failed to load database from {self.source}: {exc}") from exc
        self._state = DatasetState.READY
        return connection

    def _log_outcome(self, future: asyncio.Future[sqlite3.Connection]) -> None:
        if future.cancelled():
            self._state = DatasetState.FAILED
            self._logger.error("Dataset load was cancelled.")
            return
        error = future.exception()
        if error is not None:
            self._logger.error(str(error))
        else:
            self._logger.success("Dataset loaded.")
