"""Result envelope shared by all tools and resources.

The host protocol expects ``{"content": [{"type": "text", "text": ...}]}``
with the JSON-serialized payload as the text.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from devforge.utils.timezone import to_utc


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, set | frozenset):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=_json_default)


def text_content(payload: Any) -> dict:
    return {"content": [{"type": "text", "text": dumps(payload)}]}


def not_found(message: str, suggestions: list[str] | None = None) -> dict:
    """User-facing lookup miss, returned as data rather than raised."""
    payload: dict[str, Any] = {"error": message}
    if suggestions is not None:
        payload["suggestions"] = suggestions
    return text_content(payload)


def payload_of(envelope: dict) -> Any:
    """Decode the JSON payload carried by an envelope."""
    return json.loads(envelope["content"][0]["text"])
