"""One-directional field diff between two state documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from waymark.state.models import FieldChange

# Refreshed on every write, so never counts as a meaningful change.
TIMESTAMP_FIELD = "updated_at"


def compute_diff(
    old: Mapping[str, Any], new: Mapping[str, Any]
) -> dict[str, FieldChange]:
    """Compare the keys present in ``new`` against ``old``.

    Keys missing from ``new`` are never compared. Keys missing from ``old``
    compare as ``None``.

    Args:
        old: Previous document values.
        new: Candidate values (a full document or just a patch).

    Returns:
        Map of changed field name to its old and new value.
    """
    changes: dict[str, FieldChange] = {}
    for field, new_value in new.items():
        old_value = old.get(field)
        if old_value is None and new_value is None:
            continue
        if old_value is not None and new_value is not None and old_value == new_value:
            continue
        changes[field] = FieldChange(from_=old_value, to=new_value)
    return changes


def meaningful_changes(diff: Mapping[str, FieldChange]) -> dict[str, FieldChange]:
    """Drop the write timestamp from a diff."""
    return {field: change for field, change in diff.items() if field != TIMESTAMP_FIELD}


def diff_to_payload(diff: Mapping[str, FieldChange]) -> dict[str, dict[str, Any]]:
    """Render a diff as plain ``{"field": {"from": ..., "to": ...}}`` data."""
    return {
        field: change.model_dump(mode="json", by_alias=True)
        for field, change in diff.items()
    }
