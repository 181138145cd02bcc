"""Typed patch, event serialization, and phase order helpers."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from waymark.state import (
    EventType,
    FieldChange,
    HistoryEvent,
    PhaseOrder,
    StatePatch,
    WorkflowState,
)


@pytest.mark.unit
def test_patch_distinguishes_absent_from_null() -> None:
    """Only supplied keys come back from supplied_fields."""
    patch = StatePatch.model_validate({"phase": "spec", "notes": None})

    assert patch.supplied_fields() == {"phase": "spec", "notes": None}
    assert StatePatch().is_empty()


@pytest.mark.unit
def test_patch_rejects_unknown_and_owned_fields() -> None:
    """Unknown keys and updated_at are not patchable."""
    with pytest.raises(ValidationError):
        StatePatch.model_validate({"colour": "red"})
    with pytest.raises(ValidationError):
        StatePatch.model_validate({"updated_at": "2026-03-01T00:00:00Z"})


@pytest.mark.unit
def test_state_timestamps_normalize_to_utc() -> None:
    """Naive and offset timestamps are stored as UTC."""
    naive = WorkflowState(updated_at=datetime(2026, 3, 1, 12, 0))
    offset = WorkflowState(
        updated_at=datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    )

    assert naive.updated_at.tzinfo is UTC
    assert offset.updated_at == naive.updated_at


@pytest.mark.unit
def test_event_line_omits_absent_fields_but_keeps_null_diff_values() -> None:
    """Optional fields are dropped; null from/to values survive."""
    event = HistoryEvent.build(
        EventType.STATE_SET,
        timestamp=datetime(2026, 3, 1, tzinfo=UTC),
        diff={"phase": FieldChange(from_=None, to="spec")},
    )

    payload = json.loads(event.to_line())

    assert set(payload) == {"timestamp", "type", "diff"}
    assert payload["diff"] == {"phase": {"from": None, "to": "spec"}}


@pytest.mark.unit
def test_event_build_drops_empty_diff() -> None:
    """An empty diff is never serialized."""
    event = HistoryEvent.build(EventType.STATE_INIT, diff={})

    assert "diff" not in json.loads(event.to_line())


@pytest.mark.unit
def test_phase_order_following() -> None:
    """following walks the ordering and stops at the end."""
    order = PhaseOrder(phases=["spec", "tasks", "implement"])

    assert order.following("spec") == "tasks"
    assert order.following("implement") is None
    assert order.following("deploy") is None
    assert order.following(None) is None
