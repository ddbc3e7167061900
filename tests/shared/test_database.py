from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from ehi_cli.shared.config import AppConfig
from ehi_cli.shared.database import connect, is_sqlite_snapshot
from ehi_cli.shared.exceptions import DatasetError


def test_connect_yields_read_only_connection(app_config: AppConfig) -> None:
    with connect(app_config) as connection:
        rows = connection.execute("SELECT PAT_NAME FROM PATIENT ORDER BY PAT_ID").fetchall()
        assert rows == [("Alice",), ("Bob",)]
        with pytest.raises(sqlite3.OperationalError):
            connection.execute("DELETE FROM PATIENT")


def test_connect_rejects_missing_snapshot(app_config: AppConfig, tmp_path: Path) -> None:
    config = app_config.with_dataset_path(tmp_path / "nope.sqlite")
    with pytest.raises(DatasetError, match="not found"):
        with connect(config):
            pass


def test_connect_rejects_non_sqlite_file(app_config: AppConfig, tmp_path: Path) -> None:
    bogus = tmp_path / "bogus.sqlite"
    bogus.write_text("definitely not a database", encoding="utf-8")
    assert is_sqlite_snapshot(bogus) is False
    with pytest.raises(DatasetError, match="not a SQLite database"):
        with connect(app_config.with_dataset_path(bogus)):
            pass


def test_is_sqlite_snapshot_accepts_real_database(snapshot_path: Path) -> None:
    assert is_sqlite_snapshot(snapshot_path) is True
