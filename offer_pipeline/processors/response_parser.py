"""
Turn a free-form completion reply into a validated extraction payload.

The reply is scanned for the first top-level JSON object (braces balanced,
string literals respected), decoded, and validated against
``ExtractedPayload``. Anything short of that is a ``ResponseParseError``.
"""

import json
from typing import Any, Optional

from pydantic import ValidationError

from offer_pipeline.core.config import RESPONSE_PREVIEW_CHARS
from offer_pipeline.core.exceptions import ResponseParseError
from offer_pipeline.models.dto import ExtractedPayload


def find_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span in ``text``, or None."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_json_object(reply: str) -> dict[str, Any]:
    """Locate and decode the first JSON object of a reply."""
    preview = (reply or "")[:RESPONSE_PREVIEW_CHARS]
    candidate = find_first_json_object(reply or "")
    if candidate is None:
        raise ResponseParseError("No JSON found in completion response", preview)
    try:
        obj = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Invalid JSON in completion response: {e.msg}", preview) from e
    if not isinstance(obj, dict):
        raise ResponseParseError("Completion JSON is not an object", preview)
    return obj


def parse_extraction_reply(reply: str) -> ExtractedPayload:
    """Parse then validate; schema mismatches are parse errors, never partial data."""
    obj = parse_json_object(reply)
    try:
        return ExtractedPayload.model_validate(obj)
    except ValidationError as e:
        locations = ", ".join(
            ".".join(str(p) for p in err["loc"]) for err in e.errors()
        )
        raise ResponseParseError(
            f"Completion JSON does not match schema at: {locations}",
            (reply or "")[:RESPONSE_PREVIEW_CHARS],
        ) from e


def reported_confidence(payload: ExtractedPayload) -> Optional[int]:
    """Model-reported confidence clamped to 0-100, or None when absent/unusable."""
    if not payload.metadata:
        return None
    raw = payload.metadata.get("confidence_score")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value != value:  # NaN
        return None
    return max(0, min(100, round(value)))
