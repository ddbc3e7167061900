"""Configuration loading utilities for the manual build tools."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError

DEFAULT_PART_NAMES: dict[str, str] = {
    "00": "Getting Started",
    "01": "Core Architecture",
    "02": "Fundamental Patterns",
    "03": "Clinical Data Model",
    "04": "Financial Data Model",
    "05": "Technical Reference",
}


@dataclass(frozen=True, slots=True)
class DatasetSettings:
    """Reference dataset snapshot configuration."""

    path: Path
    asset_name: str


@dataclass(frozen=True, slots=True)
class BuildSettings:
    """Inputs and outputs of the site build."""

    chapters_dir: Path
    output_dir: Path
    bake_row_limit: int | None  # None bakes every row


@dataclass(frozen=True, slots=True)
class SiteSettings:
    """Presentation settings for generated pages."""

    title: str
    base_path: str | None
    part_names: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class WidgetSettings:
    """Client-side widget behaviour."""

    row_limit: int
    pyscript_url: str


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    dataset: DatasetSettings
    build: BuildSettings
    site: SiteSettings
    widget: WidgetSettings

    def with_dataset_path(self, new_path: str | Path) -> AppConfig:
        """Return a copy with an updated snapshot path."""
        resolved = paths.resolve_path(new_path)
        return replace(self, dataset=replace(self.dataset, path=resolved))

    def with_build_dirs(
        self,
        *,
        chapters_dir: str | Path | None = None,
        output_dir: str | Path | None = None,
    ) -> AppConfig:
        """Return a copy with chapter and/or output directories replaced."""
        build = self.build
        if chapters_dir is not None:
            build = replace(build, chapters_dir=paths.resolve_path(chapters_dir))
        if output_dir is not None:
            build = replace(build, output_dir=paths.resolve_path(output_dir))
        return replace(self, build=build)


def _default_config(env: Mapping[str, str]) -> dict[str, Any]:
    return {
        "dataset": {
            "path": str(paths.default_dataset_path(env=env)),
            "asset_name": "ehi.sqlite",
        },
        "build": {
            "chapters_dir": paths.DEFAULT_CHAPTERS_DIR,
            "output_dir": paths.DEFAULT_OUTPUT_DIR,
            "bake_row_limit": None,
        },
        "site": {
            "title": "Epic EHI Export - The Missing Manual",
            "base_path": None,
            "part_names": dict(DEFAULT_PART_NAMES),
        },
        "widget": {
            "row_limit": 100,
            "pyscript_url": "https://pyscript.net/releases/2024.1.1/core.js",
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "dataset.path": (paths.DATASET_PATH_ENV, str),
    "dataset.asset_name": ("EHI_DATASET_ASSET_NAME", str),
    "build.chapters_dir": ("EHI_CHAPTERS_DIR", str),
    "build.output_dir": ("EHI_OUTPUT_DIR", str),
    "build.bake_row_limit": ("EHI_BAKE_ROW_LIMIT", int),
    "site.title": ("EHI_SITE_TITLE", str),
    "site.base_path": ("EHI_SITE_BASE_PATH", str),
    "widget.row_limit": ("EHI_WIDGET_ROW_LIMIT", int),
    "widget.pyscript_url": ("EHI_PYSCRIPT_URL", str),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(os.environ if env is None else env)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    defaults = _default_config(env)
    merged: dict[str, Any] = _deep_merge(defaults, file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file at {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is int:
        return int(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _optional_limit(raw: Any) -> int | None:
    if raw is None:
        return None
    value = int(raw)
    if value <= 0:
        return None
    return value


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        dataset_cfg = data["dataset"]
        dataset = DatasetSettings(
            path=paths.resolve_path(dataset_cfg["path"]),
            asset_name=str(dataset_cfg["asset_name"]),
        )
        build_cfg = data["build"]
        build = BuildSettings(
            chapters_dir=paths.resolve_path(build_cfg["chapters_dir"]),
            output_dir=paths.resolve_path(build_cfg["output_dir"]),
            bake_row_limit=_optional_limit(build_cfg["bake_row_limit"]),
        )
        site_cfg = data["site"]
        part_names = site_cfg["part_names"] or {}
        if not isinstance(part_names, Mapping):
            raise TypeError("site.part_names must be a mapping")
        site = SiteSettings(
            title=str(site_cfg["title"]),
            base_path=str(site_cfg["base_path"]) if site_cfg["base_path"] else None,
            part_names={str(key).zfill(2): str(value) for key, value in part_names.items()},
        )
        widget_cfg = data["widget"]
        widget = WidgetSettings(
            row_limit=int(widget_cfg["row_limit"]),
            pyscript_url=str(widget_cfg["pyscript_url"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if widget.row_limit <= 0:
        raise ConfigurationError("widget.row_limit must be a positive integer.")

    return AppConfig(
        source_path=source_path,
        dataset=dataset,
        build=build,
        site=site,
        widget=widget,
    )
