from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from ehi_cli.ehi_query import engine
from ehi_cli.ehi_widget.dataset import DatasetHandle, DatasetState
from ehi_cli.ehi_widget.runtime import ClientRuntime


def _runtime(snapshot_path: Path, **kwargs) -> ClientRuntime:
    return ClientRuntime(DatasetHandle(str(snapshot_path)), **kwargs)


@pytest.mark.asyncio
async def test_first_client_run_matches_baked_result(snapshot_path: Path, snapshot_connection) -> None:
    query = "SELECT * FROM PATIENT ORDER BY PAT_ID"
    runtime = _runtime(snapshot_path)

    result = await runtime.execute(query)
    baked = engine.execute(query, snapshot_connection)

    assert result.columns == baked.columns == ("PAT_ID", "PAT_NAME")
    assert result.rows == baked.rows
    assert result.error is None
    assert result.elapsed_ms is not None and result.elapsed_ms >= 0


@pytest.mark.asyncio
async def test_default_cap_and_show_all(snapshot_path: Path) -> None:
    runtime = _runtime(snapshot_path, row_limit=100)

    capped = await runtime.execute("SELECT n FROM NUMBERS ORDER BY n")
    everything = await runtime.execute("SELECT n FROM NUMBERS ORDER BY n", limit=0)
    explicit = await runtime.execute("SELECT n FROM NUMBERS ORDER BY n", limit=5)

    assert capped.row_count == 100 and capped.has_more is True
    assert everything.row_count == 150 and everything.has_more is False
    assert everything.rows[:100] == capped.rows
    assert explicit.row_count == 5


@pytest.mark.asyncio
async def test_query_errors_are_results(snapshot_path: Path) -> None:
    result = await _runtime(snapshot_path).execute("SELEKT 1")

    assert result.columns is None and result.rows is None
    assert "syntax error" in result.error
    assert result.elapsed_ms is not None


@pytest.mark.asyncio
async def test_dataset_failure_becomes_error_result(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path / "missing.sqlite")

    result = await runtime.execute("SELECT 1")

    assert result.ok is False
    assert "Failed to load database" in result.error
    assert result.elapsed_ms is not None


@pytest.mark.asyncio
async def test_cancelled_dataset_load_becomes_error_result() -> None:
    async def never_loads(source: str) -> bytes:
        await asyncio.Event().wait()
        return b""

    dataset = DatasetHandle("assets/data/ehi.sqlite", loader=never_loads)
    dataset.prefetch().cancel()

    result = await ClientRuntime(dataset).execute("SELECT 1")

    assert result.error == "Dataset load was cancelled."
    assert result.elapsed_ms is not None
    assert dataset.state is DatasetState.FAILED
