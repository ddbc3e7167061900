"""Helpers for the free-form SQL playground page."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from urllib.parse import parse_qs

from ehi_cli.shared.logging import Logger, get_logger

DEFAULT_PLAYGROUND_QUERY = "SELECT * FROM PATIENT LIMIT 10;"
PLAYGROUND_WIDGET_ID = "playground"
SHARE_PARAMETER = "q"


@dataclass(frozen=True, slots=True)
class SharedQuery:
    name: str
    query: str


def encode_share_token(name: str, query: str) -> str:
    """Return a URL-safe token carrying the query name and text."""
    raw = json.dumps({"name": name, "query": query}, ensure_ascii=False, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_share_token(token: str, *, logger: Logger | None = None) -> SharedQuery | None:
    """Decode a share token; a damaged token is logged and yields None."""
    log = logger or get_logger()
    padded = token.strip() + "=" * (-len(token.strip()) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (ValueError, UnicodeError) as exc:
        log.warning(f"Ignoring invalid shared query link: {exc}")
        return None
    if not isinstance(data, dict) or not isinstance(data.get("query"), str):
        log.warning("Ignoring shared query link without query text.")
        return None
    return SharedQuery(name=str(data.get("name") or ""), query=data["query"])


def share_url(page_url: str, name: str, query: str) -> str:
    base = page_url.split("#", 1)[0].split("?", 1)[0]
    return f"{base}?{SHARE_PARAMETER}={encode_share_token(name, query)}"


def token_from_search(search: str) -> str | None:
    """Return the share token from a ``location.search`` string, if present."""
    values = parse_qs(search.lstrip("?")).get(SHARE_PARAMETER)
    return values[0] if values else None
