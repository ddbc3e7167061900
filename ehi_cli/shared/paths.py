"""Utilities for resolving configuration, dataset and build paths."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

DEFAULT_CONFIG_DIR = "~/.ehi-manual"
DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_DATASET_PATH = "~/.ehi-manual/ehi.sqlite"
DEFAULT_CHAPTERS_DIR = "chapters"
DEFAULT_OUTPUT_DIR = "dist"

CONFIG_DIR_ENV = "EHI_CONFIG_DIR"
CONFIG_FILE_ENV = "EHI_CONFIG_PATH"
DATASET_PATH_ENV = "EHI_DATASET_PATH"


def _expand(path_str: str) -> Path:
    """Return a Path with user and environment variables expanded."""
    return Path(os.path.expandvars(path_str)).expanduser()


def get_config_dir(create: bool = False, env: Mapping[str, str] | None = None) -> Path:
    """Return the configuration directory, optionally creating it."""
    env = env or os.environ
    raw = env.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR)
    path = _expand(raw)
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the default config file path."""
    env = env or os.environ
    override = env.get(CONFIG_FILE_ENV)
    if override:
        return _expand(override)
    return get_config_dir(env=env) / DEFAULT_CONFIG_FILE


def default_dataset_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the default location of the reference dataset snapshot."""
    env = env or os.environ
    override = env.get(DATASET_PATH_ENV)
    if override:
        return _expand(override)
    return _expand(DEFAULT_DATASET_PATH)


def resolve_path(path_str: str | Path) -> Path:
    """Expand user and environment variables for arbitrary paths."""
    if isinstance(path_str, Path):
        return _expand(str(path_str))
    return _expand(path_str)


def relative_root(page_path: str) -> str:
    """Return the prefix that leads from a site page back to the site root.

    ``chapters/00-01-intro.html`` yields ``"../"``; ``index.html`` yields ``""``.
    """
    depth = page_path.strip("/").count("/")
    return "../" * depth


def asset_url(asset_path: str, *, page_path: str, base_path: str | None = None) -> str:
    """Return the URL a page should use to reach a site asset.

    With a configured ``base_path`` the URL is absolute under that prefix,
    otherwise it is relative to the page so the site works from any mount point
    and from ``file://``.
    """
    clean = asset_path.lstrip("/")
    if base_path:
        prefix = base_path if base_path.endswith("/") else base_path + "/"
        if not prefix.startswith("/") and "://" not in prefix:
            prefix = "/" + prefix
        return prefix + clean
    return relative_root(page_path) + clean
