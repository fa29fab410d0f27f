"""Parsing helpers for free-text model output."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


def _outermost_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces in strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def parse_json_response(text: str) -> dict[str, Any]:
    """Extract a JSON object from model output.

    Tries, in order: a fenced ```json block, the first balanced brace span,
    and the whole text. Malformed output yields an empty dict.

    Args:
        text: Raw completion text.

    Returns:
        Parsed object, or ``{}`` if nothing parseable was found.
    """
    candidates: list[str] = []
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    braces = _outermost_object(text)
    if braces:
        candidates.append(braces)
    candidates.append(text.strip())

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.warning("model_output_unparseable", preview=text[:200])
    return {}


def clamp_percentage(value: object, default: int) -> int:
    """Coerce a model-provided number into the 0-100 range."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return round(max(0.0, min(100.0, number)))
