from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from ehi_cli.ehi_query.main import cli


def test_cli_sql_json(cli_env: dict[str, str]) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["sql", "SELECT * FROM PATIENT ORDER BY PAT_ID", "--format", "json"],
        env=cli_env,
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {"PAT_ID": "P1", "PAT_NAME": "Alice"},
        {"PAT_ID": "P2", "PAT_NAME": "Bob"},
    ]


def test_cli_sql_supports_tsv_and_limit(cli_env: dict[str, str]) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["sql", "SELECT n FROM NUMBERS ORDER BY n", "--format", "tsv", "--limit", "3"],
        env=cli_env,
    )

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == ["n", "1", "2", "3"]
    assert "--limit 0" in result.stderr


def test_cli_sql_reports_sqlite_errors(cli_env: dict[str, str]) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["sql", "SELEKT 1"], env=cli_env)

    assert result.exit_code != 0
    assert "SQLite error" in result.output


def test_cli_dataset_option_overrides_config(cli_env: dict[str, str], tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["--dataset", str(tmp_path / "elsewhere.sqlite"), "sql", "SELECT 1"],
        env=cli_env,
    )

    assert result.exit_code != 0
    assert "elsewhere.sqlite" in result.output


def test_cli_schema_command(cli_env: dict[str, str]) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["schema", "--table", "patient", "--format", "json"], env=cli_env)

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert [table["name"] for table in data["tables"]] == ["PATIENT"]


def test_cli_list_and_saved_use_build_catalog(cli_env: dict[str, str]) -> None:
    catalog = Path(cli_env["EHI_OUTPUT_DIR"]) / "assets" / "data" / "queries.json"
    catalog.parent.mkdir(parents=True)
    catalog.write_text(
        json.dumps(
            [
                {
                    "widget_id": "00-intro-1",
                    "chapter_id": "00-intro",
                    "index": 1,
                    "description": "Counting works too.",
                    "query": "SELECT COUNT(*) AS total FROM PATIENT;",
                }
            ]
        ),
        encoding="utf-8",
    )
    runner = CliRunner()

    listed = runner.invoke(cli, ["list"], env=cli_env)
    assert listed.exit_code == 0, listed.output
    assert "00-intro-1" in listed.output

    saved = runner.invoke(cli, ["saved", "00-intro-1", "--format", "csv"], env=cli_env)
    assert saved.exit_code == 0, saved.output
    assert saved.stdout.splitlines() == ["total", "2"]

    missing = runner.invoke(cli, ["saved", "nope-0"], env=cli_env)
    assert missing.exit_code != 0
    assert "not in the catalog" in missing.output
