from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from ehi_cli.ehi_build.main import cli


def test_cli_site_builds_into_output_option(cli_env: dict[str, str], chapters_dir: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["site", "--output", str(tmp_path / "public")], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Query blocks: 4" in result.output
    assert (tmp_path / "public" / "chapters" / "00-intro.html").exists()
    assert (tmp_path / "public" / "playground.html").exists()


def test_cli_site_dry_run_writes_nothing(cli_env: dict[str, str], chapters_dir: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--dry-run", "site"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Pages written: 0" in result.output
    assert not Path(cli_env["EHI_OUTPUT_DIR"]).exists()


def test_cli_site_fails_without_chapters(cli_env: dict[str, str]) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["site"], env=cli_env)

    assert result.exit_code != 0
    assert "Chapters directory not found" in result.output


def test_cli_extract_json(cli_env: dict[str, str], chapters_dir: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["extract", "--format", "json"], env=cli_env)

    assert result.exit_code == 0, result.output
    blocks = json.loads(result.stdout)
    assert [block["id"] for block in blocks] == [
        "00-01-big-tables-0",
        "00-01-big-tables-1",
        "00-intro-0",
        "00-intro-1",
    ]
    assert blocks[2]["description"] == "List every patient"


def test_cli_validate_exits_non_zero_on_failures(cli_env: dict[str, str], chapters_dir: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["validate"], env=cli_env)

    assert result.exit_code != 0
    assert "00-01-big-tables-1" in result.output
    assert "Found 1 failing query block(s)." in result.output
