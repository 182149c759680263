"""Dotted-path helpers over StructuredResult (``"vehicle.make"``)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from offer_pipeline.models.dto import STRUCTURED_GROUPS, StructuredResult


def get_path(obj: Any, path: str) -> Any:
    """Walk a dotted path through nested models/dicts; None when any step is absent."""
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, BaseModel):
            current = getattr(current, part, None)
        elif isinstance(current, dict):
            current = current.get(part)
        else:
            return None
    return current


def is_present(obj: Any, path: str) -> bool:
    return get_path(obj, path) is not None


def missing_paths(result: StructuredResult, paths: list[str]) -> list[str]:
    """Required paths whose value is absent, in request order, without duplicates."""
    seen: set[str] = set()
    missing = []
    for path in paths:
        if path in seen:
            continue
        seen.add(path)
        if not is_present(result, path):
            missing.append(path)
    return missing


def split_field_path(path: str) -> tuple[str, str]:
    """Split ``group.field`` and check both parts exist on StructuredResult."""
    parts = path.split(".")
    if len(parts) != 2 or parts[0] not in STRUCTURED_GROUPS:
        raise ValueError(f"Unsupported field path: {path!r}")
    group, field = parts
    group_model = StructuredResult.model_fields[group].annotation
    if field not in group_model.model_fields:
        raise ValueError(f"Unknown field {field!r} in group {group!r}")
    return group, field


def with_values(result: StructuredResult, values: dict[str, Any]) -> StructuredResult:
    """
    Return a copy of ``result`` with the given dotted paths set.

    Values are expected to be coerced already (see :func:`coerce_field_value`);
    the input result is not modified.
    """
    updates: dict[str, dict[str, Any]] = {}
    for path, value in values.items():
        group, field = split_field_path(path)
        updates.setdefault(group, {})[field] = value

    copy = result.model_copy(deep=True)
    for group, fields in updates.items():
        current = getattr(copy, group)
        merged = current.model_dump()
        merged.update(fields)
        setattr(copy, group, type(current).model_validate(merged))
    return copy


def coerce_field_value(path: str, raw: Any) -> tuple[bool, Any]:
    """Validate ``raw`` against the type of the field at ``path``.

    Returns:
        (ok, value): ``ok`` is False when the value cannot be coerced.
    """
    group, field = split_field_path(path)
    group_model = StructuredResult.model_fields[group].annotation
    if raw is None:
        return True, None
    try:
        validated = group_model.model_validate({field: raw})
    except ValidationError:
        return False, None
    return True, getattr(validated, field)
