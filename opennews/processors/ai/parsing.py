from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from ...errors import ModelOutputMalformed

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_json_object(raw: str) -> Dict[str, Any]:
    """Extract and decode the JSON object in a model response.

    Tolerates code fences and leading/trailing prose; anything else raises
    ``ModelOutputMalformed``.
    """
    if not raw or not raw.strip():
        raise ModelOutputMalformed("Empty AI response")

    text = _FENCE_RE.sub("", raw.strip())
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        raise ModelOutputMalformed("No JSON object found in AI response")

    try:
        obj = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ModelOutputMalformed(f"Invalid JSON in AI response: {exc}") from exc
    if not isinstance(obj, dict):
        raise ModelOutputMalformed("AI response JSON is not an object")
    return obj


def require_str(obj: Dict[str, Any], key: str, *, allow_empty: bool = False) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ModelOutputMalformed(f"'{key}' must be a string")
    value = value.strip()
    if not value and not allow_empty:
        raise ModelOutputMalformed(f"'{key}' must not be empty")
    return value


def require_number(obj: Dict[str, Any], key: str) -> float:
    value = obj.get(key)
    if isinstance(value, bool):
        raise ModelOutputMalformed(f"'{key}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ModelOutputMalformed(f"Invalid number for '{key}': {value!r}") from exc


def require_list(obj: Dict[str, Any], key: str, *, default: List[Any] | None = None) -> List[Any]:
    value = obj.get(key, default)
    if not isinstance(value, list):
        raise ModelOutputMalformed(f"'{key}' must be a list")
    return value


def string_items(values: List[Any]) -> List[str]:
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]
