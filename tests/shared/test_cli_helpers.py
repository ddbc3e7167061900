from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import click
import pytest
from click.testing import CliRunner

from ehi_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors
from ehi_cli.shared.exceptions import ConfigurationError, ManualError


class DummyAppConfig:
    def __init__(self, path: Path) -> None:
        self.dataset = SimpleNamespace(path=path)
        self.source_path = path.parent / "config.yaml"

    def with_dataset_path(self, new_path: str | Path) -> DummyAppConfig:
        return DummyAppConfig(Path(new_path))


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_common_cli_options_builds_context(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    monkeypatch.setattr(
        "ehi_cli.shared.cli.load_config", lambda config_path: DummyAppConfig(tmp_path / "ehi.sqlite")
    )

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(f"dry={cli_ctx.dry_run} verbose={cli_ctx.verbose} db={cli_ctx.dataset_path.name}")

    result = runner.invoke(sample, [])

    assert result.exit_code == 0, result.output
    assert "dry=False verbose=False db=ehi.sqlite" in result.output


def test_common_cli_options_respects_dry_run(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    monkeypatch.setattr(
        "ehi_cli.shared.cli.load_config", lambda config_path: DummyAppConfig(tmp_path / "ehi.sqlite")
    )

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(f"dry={cli_ctx.dry_run}")

    result = runner.invoke(sample, ["--dry-run"])

    assert result.exit_code == 0, result.output
    assert "dry=True" in result.output


def test_common_cli_options_applies_dataset_override(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    base_config = DummyAppConfig(tmp_path / "original.sqlite")
    monkeypatch.setattr("ehi_cli.shared.cli.load_config", lambda config_path: base_config)

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(str(cli_ctx.dataset_path))

    override_path = tmp_path / "override.sqlite"
    result = runner.invoke(sample, ["--dataset", str(override_path)])

    assert result.exit_code == 0, result.output
    assert override_path.as_posix() in result.output


def test_common_cli_options_reports_configuration_errors(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner
) -> None:
    def broken_config(config_path: str | None) -> DummyAppConfig:
        raise ConfigurationError("bad yaml")

    monkeypatch.setattr("ehi_cli.shared.cli.load_config", broken_config)

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo("unreachable")

    result = runner.invoke(sample, [])

    assert result.exit_code != 0
    assert "bad yaml" in result.output


def test_handle_cli_errors_wraps_known_exceptions() -> None:
    @handle_cli_errors
    def boom() -> None:
        raise ManualError("boom")

    with pytest.raises(click.ClickException) as excinfo:
        boom()
    assert str(excinfo.value) == "boom"


def test_handle_cli_errors_formats_configuration_errors() -> None:
    @handle_cli_errors
    def misconfigured() -> None:
        raise ConfigurationError("missing value")

    with pytest.raises(click.ClickException) as excinfo:
        misconfigured()
    assert "Configuration error" in str(excinfo.value)


def test_handle_cli_errors_wraps_unexpected_exceptions() -> None:
    @handle_cli_errors
    def explode() -> None:
        raise RuntimeError("kapow")

    with pytest.raises(click.ClickException) as excinfo:
        explode()
    assert "Unexpected error: kapow" == str(excinfo.value)
