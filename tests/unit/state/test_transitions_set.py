"""Set: patch merge, auto-init, validation, and no-op detection."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from waymark.state import (
    EventType,
    HistoryLog,
    StateErrorCode,
    StatePatch,
    StateStore,
    StateTransitions,
    StateValidationError,
)


@pytest.mark.unit
def test_set_on_empty_project_initializes_and_logs(
    transitions: StateTransitions, store: StateStore, history: HistoryLog
) -> None:
    """First Set creates the document and logs state_init then state_set."""
    # Act - set phase on an empty project
    result = transitions.set_state(StatePatch(phase="spec"), reason="kickoff")

    # Assert - document written, two events, diff only for phase
    assert result.changed is True
    assert result.initialized is True
    persisted = store.read()
    assert persisted is not None
    assert persisted.phase == "spec"
    events = history.query().events
    assert [event.type for event in events] == [EventType.STATE_SET, EventType.STATE_INIT]
    assert events[0].reason == "kickoff"
    assert events[0].diff is not None
    assert set(events[0].diff) == {"phase"}


@pytest.mark.unit
def test_set_overwrites_exactly_the_supplied_keys(
    transitions: StateTransitions, store: StateStore
) -> None:
    """Merge keeps untouched fields and refreshes updated_at."""
    # Arrange - existing document
    transitions.set_state(
        StatePatch(current_feature="001-login", phase="spec", notes="draft")
    )
    before = store.read()
    assert before is not None

    # Act - patch one field
    transitions.set_state(StatePatch(phase="tasks"))

    # Assert - only phase and updated_at differ
    after = store.read()
    assert after is not None
    expected = before.to_file_dict() | {"phase": "tasks"}
    actual = after.to_file_dict()
    assert actual.pop("updated_at") != expected.pop("updated_at")
    assert actual == expected
    assert after.updated_at > before.updated_at


@pytest.mark.unit
def test_explicit_null_clears_and_absent_keeps(
    transitions: StateTransitions, store: StateStore
) -> None:
    """An explicit None clears a field; an omitted one is untouched."""
    transitions.set_state(StatePatch(active_branch="feat/login", notes="n"))

    result = transitions.set_state(StatePatch.model_validate({"notes": None}))

    persisted = store.read()
    assert persisted is not None
    assert persisted.notes is None
    assert persisted.active_branch == "feat/login"
    assert set(result.diff) == {"notes"}


@pytest.mark.unit
def test_repeating_a_patch_is_a_no_op(
    transitions: StateTransitions, store: StateStore, history: HistoryLog
) -> None:
    """Second identical Set reports changed=False and writes nothing."""
    # Arrange - first set
    patch = StatePatch(current_feature="001-login", phase="spec")
    first = transitions.set_state(patch)
    raw_before = store.path.read_bytes()
    events_before = len(history.query().events)

    # Act - same patch again
    second = transitions.set_state(patch)

    # Assert - no diff, same bytes, no new events
    assert first.changed is True
    assert second.changed is False
    assert second.diff == {}
    assert store.path.read_bytes() == raw_before
    assert len(history.query().events) == events_before


@pytest.mark.unit
def test_empty_patch_on_fresh_project_still_commits(
    transitions: StateTransitions, store: StateStore, history: HistoryLog
) -> None:
    """Auto-init always writes, even when the patch changes nothing."""
    result = transitions.set_state(StatePatch())

    assert result.changed is True
    assert store.exists()
    set_event = history.query(types=["state_set"]).events[0]
    assert set_event.diff is None
    line = history.path.read_text(encoding="utf-8").splitlines()[-1]
    assert "diff" not in json.loads(line)


@pytest.mark.unit
def test_invalid_commit_fails_without_writing(
    transitions: StateTransitions, store: StateStore, history: HistoryLog
) -> None:
    """Validation failure raises INVALID_STATE and leaves no document."""
    with pytest.raises(StateValidationError) as excinfo:
        transitions.set_state(StatePatch(last_commit="ZZZ"))

    assert excinfo.value.code == StateErrorCode.INVALID_STATE
    assert excinfo.value.issues
    assert not store.exists()
    assert not history.path.exists()


@pytest.mark.unit
def test_valid_commit_succeeds(transitions: StateTransitions, store: StateStore) -> None:
    """A hex commit id passes validation."""
    result = transitions.set_state(StatePatch(last_commit="abc1234"))

    assert result.changed is True
    persisted = store.read()
    assert persisted is not None
    assert persisted.last_commit == "abc1234"


@pytest.mark.unit
def test_skip_validation_writes_invalid_values(
    transitions: StateTransitions, store: StateStore
) -> None:
    """Validation is advisory for Set and can be bypassed."""
    result = transitions.set_state(StatePatch(phase="review"), skip_validation=True)

    assert result.changed is True
    persisted = store.read()
    assert persisted is not None
    assert persisted.phase == "review"


@pytest.mark.unit
def test_correlation_id_is_recorded(
    transitions: StateTransitions, history: HistoryLog
) -> None:
    """Correlation ids propagate onto committed events."""
    transitions.set_state(StatePatch(phase="spec"), correlation_id="req-42")

    assert all(event.correlation_id == "req-42" for event in history.query().events)


@pytest.mark.unit
def test_updated_at_never_moves_backwards(
    store: StateStore, history: HistoryLog
) -> None:
    """A clock running behind the document does not rewind updated_at."""
    # Arrange - document stamped in the future relative to a frozen clock
    future = datetime(2030, 1, 1, tzinfo=UTC)
    past = datetime(2020, 1, 1, tzinfo=UTC)
    StateTransitions(store=store, history=history, clock=lambda: future).set_state(
        StatePatch(phase="spec")
    )
    lagging = StateTransitions(store=store, history=history, clock=lambda: past)

    # Act - write with the lagging clock
    lagging.set_state(StatePatch(phase="tasks"))

    # Assert - timestamp did not go backwards
    persisted = store.read()
    assert persisted is not None
    assert persisted.updated_at == future
