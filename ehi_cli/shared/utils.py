"""Miscellaneous helper utilities."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def compute_file_sha256(path: str | Path, *, chunk_size: int = 65536) -> str:
    """Return the SHA256 hex digest for a file without loading it entirely into memory."""

    digest = hashlib.sha256()
    with Path(path).expanduser().open("rb") as handle:
        for block in iter(lambda: handle.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def slugify(value: str) -> str:
    """Lower-case ``value`` and collapse anything but letters and digits into dashes."""
    return _SLUG_STRIP.sub("-", value.lower()).strip("-")


def truncate_words(text: str, limit: int, *, min_length: int | None = None) -> str:
    """Truncate ``text`` to ``limit`` characters, preferring a word boundary.

    The cut falls back to a hard cut when the last space would leave fewer than
    ``min_length`` characters (two thirds of ``limit`` by default).
    """
    if len(text) <= limit:
        return text
    floor = min_length if min_length is not None else (limit * 2) // 3
    cut = text[:limit]
    last_space = cut.rfind(" ")
    if last_space > floor:
        cut = cut[:last_space]
    return cut.rstrip() + "..."
