"""Serialized widget record shared by the page generator and client hydration."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from ehi_cli.ehi_query.types import QueryResult


@dataclass(frozen=True, slots=True)
class WidgetPayload:
    """Everything a widget needs to render and re-run without a network round-trip."""

    widget_id: str
    query: str
    description: str | None
    result: QueryResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "widget_id": self.widget_id,
            "query": self.query,
            "description": self.description,
            "result": self.result.to_payload(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    def to_script_json(self) -> str:
        """JSON that is safe to place inside a ``<script type="application/json">`` element."""
        return script_safe(self.to_json())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WidgetPayload:
        try:
            return cls(
                widget_id=str(data["widget_id"]),
                query=str(data["query"]),
                description=data.get("description") or None,
                result=QueryResult.from_payload(data.get("result") or {}),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"Invalid widget payload: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str) -> WidgetPayload:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Widget payload is not valid JSON: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ValueError("Widget payload must be a JSON object.")
        return cls.from_dict(data)


def script_safe(raw_json: str) -> str:
    """Escape sequences that would end or confuse an inline script element."""
    return (
        raw_json.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )
