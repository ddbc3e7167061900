"""Read-only access to the reference dataset snapshot."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import AppConfig
from .exceptions import DatasetError

SQLITE_HEADER = b"SQLite format 3\x00"


def _resolve_snapshot_path(config: AppConfig) -> Path:
    snapshot = config.dataset.path
    if not snapshot.is_file():
        raise DatasetError(
            f"Dataset snapshot not found at {snapshot}. Set dataset.path or pass --dataset."
        )
    return snapshot


def _open_connection(path: Path) -> sqlite3.Connection:
    # mode=ro keeps build-time queries from mutating the file readers will download.
    uri = f"{path.resolve().as_uri()}?mode=ro"
    return sqlite3.connect(uri, uri=True)


def is_sqlite_snapshot(path: Path) -> bool:
    """Return True when the file starts with the SQLite header."""
    try:
        with path.open("rb") as handle:
            return handle.read(len(SQLITE_HEADER)) == SQLITE_HEADER
    except OSError:
        return False


@contextmanager
def connect(config: AppConfig) -> Iterator[sqlite3.Connection]:
    """Yield a read-only SQLite connection to the configured snapshot."""
    db_path = _resolve_snapshot_path(config)
    if not is_sqlite_snapshot(db_path):
        raise DatasetError(f"{db_path} is not a SQLite database file.")
    try:
        connection = _open_connection(db_path)
    except sqlite3.Error as exc:
        raise DatasetError(f"Unable to open dataset snapshot {db_path}: {exc}") from exc
    try:
        yield connection
    finally:
        connection.close()
