from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from ehi_cli.shared import paths
from ehi_cli.shared.config import AppConfig, load_config

INTRO_CHAPTER = """# Part 0: Getting Started

*Purpose: How to read this manual.*

Patients are stored in one table.

<example-query description="List every patient">
SELECT * FROM PATIENT ORDER BY PAT_ID;
</example-query>

Counting works too.

<example-query>
SELECT COUNT(*) AS total FROM PATIENT;
</example-query>
"""

NUMBERS_CHAPTER = """# Chapter 0.1: Big Tables

Large results are capped in the browser.

<example-query description="All numbers">
SELECT n FROM NUMBERS ORDER BY n;
</example-query>

```mermaid
graph TD; A-->B;
```

A broken query stays visible.

<example-query description="Typo">
SELEKT 1;
</example-query>
"""


def build_snapshot(path: Path) -> Path:
    connection = sqlite3.connect(path)
    try:
        connection.execute("CREATE TABLE PATIENT (PAT_ID TEXT PRIMARY KEY, PAT_NAME TEXT)")
        connection.executemany(
            "INSERT INTO PATIENT (PAT_ID, PAT_NAME) VALUES (?, ?)",
            [("P1", "Alice"), ("P2", "Bob")],
        )
        connection.execute("CREATE TABLE NUMBERS (n INTEGER NOT NULL)")
        connection.executemany("INSERT INTO NUMBERS (n) VALUES (?)", [(value,) for value in range(1, 151)])
        connection.execute("CREATE TABLE NOTES (NOTE_ID INTEGER, BODY BLOB, FLAG INTEGER)")
        connection.execute("INSERT INTO NOTES VALUES (1, ?, NULL)", (b"caf\xc3\xa9",))
        connection.commit()
    finally:
        connection.close()
    return path


def config_env(tmp_path: Path, snapshot: Path | None = None) -> dict[str, str]:
    return {
        paths.CONFIG_FILE_ENV: str(tmp_path / "missing-config.yaml"),
        paths.DATASET_PATH_ENV: str(snapshot or tmp_path / "ehi.sqlite"),
        "EHI_CHAPTERS_DIR": str(tmp_path / "chapters"),
        "EHI_OUTPUT_DIR": str(tmp_path / "dist"),
    }


@pytest.fixture()
def snapshot_path(tmp_path: Path) -> Path:
    return build_snapshot(tmp_path / "ehi.sqlite")


@pytest.fixture()
def snapshot_connection(snapshot_path: Path):
    connection = sqlite3.connect(snapshot_path)
    yield connection
    connection.close()


@pytest.fixture()
def chapters_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "chapters"
    directory.mkdir()
    (directory / "00-intro.md").write_text(INTRO_CHAPTER, encoding="utf-8")
    (directory / "00-01-big-tables.md").write_text(NUMBERS_CHAPTER, encoding="utf-8")
    return directory


@pytest.fixture()
def app_config(tmp_path: Path, snapshot_path: Path) -> AppConfig:
    return load_config(env=config_env(tmp_path, snapshot_path))


@pytest.fixture()
def cli_env(tmp_path: Path, snapshot_path: Path) -> dict[str, str]:
    return config_env(tmp_path, snapshot_path)
