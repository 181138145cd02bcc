"""Integration tests for a full workflow driven through the state tools."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from waymark.state.paths import (
    get_history_path,
    get_phase_order_path,
    get_state_path,
)
from waymark.tools import StateToolbox, ToolStatus


@pytest.fixture
def toolbox(tmp_path: Path) -> StateToolbox:
    """Toolbox over an empty project with a phase order document."""
    order_path = get_phase_order_path(tmp_path)
    order_path.parent.mkdir(parents=True)
    order_path.write_text(
        json.dumps({"phases": ["spec", "tasks", "implement", "verify"]}),
        encoding="utf-8",
    )
    return StateToolbox(project_root=tmp_path)


@pytest.mark.integration
def test_feature_lifecycle(toolbox: StateToolbox, tmp_path: Path) -> None:
    """Set, advance through tasks and phases, then reset the feature."""
    # Arrange - empty project
    assert toolbox.invoke("state_get").status is ToolStatus.WARNING

    # Act - start a feature and walk it forward
    started = toolbox.invoke(
        "state_set",
        {
            "patch": {
                "current_feature": "001-login",
                "phase": "spec",
                "phase_index": 0,
            },
            "reason": "kickoff",
            "correlation_id": "run-1",
        },
    )
    phased = toolbox.invoke("state_advance", {"target": "next-phase"})
    tasked = toolbox.invoke(
        "state_advance", {"target": "next-task", "next_task_id": "T001"}
    )
    repeated = toolbox.invoke(
        "state_advance", {"target": "next-task", "next_task_id": "T001"}
    )
    unconfirmed = toolbox.invoke("state_reset", {"scope": "feature"})
    reset = toolbox.invoke(
        "state_reset",
        {"scope": "feature", "confirm": True, "reason": "abandon feature"},
    )

    # Assert - each step reported and persisted
    assert started.data["initialized"] is True
    assert phased.data["state"]["phase"] == "tasks"
    assert phased.data["state"]["phase_index"] == 1
    assert tasked.data["state"]["current_task_id"] == "T001"
    assert repeated.data["changed"] is False
    assert unconfirmed.status is ToolStatus.WARNING
    assert reset.status is ToolStatus.OK

    shown = toolbox.invoke("state_get")
    assert shown.data["state"]["current_feature"] is None
    assert shown.data["state"]["phase"] == "spec"
    assert shown.data["state"]["current_task_id"] is None

    on_disk = json.loads(get_state_path(tmp_path).read_text(encoding="utf-8"))
    assert on_disk == shown.data["state"]

    types = [
        json.loads(line)["type"]
        for line in get_history_path(tmp_path).read_text(encoding="utf-8").splitlines()
    ]
    assert types == [
        "state_init",
        "state_set",
        "state_advance",
        "state_advance",
        "state_reset",
    ]


@pytest.mark.integration
def test_history_filters(toolbox: StateToolbox) -> None:
    """Feature and since filters narrow the journal."""
    # Arrange - two features, one after the other
    toolbox.invoke("state_set", {"patch": {"current_feature": "001-login"}})
    toolbox.invoke("state_set", {"patch": {"notes": "wip"}})
    toolbox.invoke("state_set", {"patch": {"current_feature": "002-billing"}})

    # Act - query by feature, and since the first event
    by_feature = toolbox.invoke("state_history", {"feature": "002-billing"})
    everything = toolbox.invoke("state_history", {})
    oldest = everything.data["events"][-1]["timestamp"]
    since = toolbox.invoke("state_history", {"since": oldest})

    # Assert - only matching events come back, newest first
    assert by_feature.data["count"] == 1
    assert by_feature.data["events"][0]["diff"]["current_feature"]["to"] == (
        "002-billing"
    )
    assert everything.data["count"] == 4
    assert everything.data["events"][-1]["type"] == "state_init"
    cutoff = datetime.fromisoformat(oldest)
    assert all(
        datetime.fromisoformat(event["timestamp"]) > cutoff
        for event in since.data["events"]
    )


@pytest.mark.integration
def test_next_phase_past_end_of_order(toolbox: StateToolbox) -> None:
    """The last phase in the ordering has no successor."""
    toolbox.invoke("state_set", {"patch": {"phase": "verify"}})

    envelope = toolbox.invoke("state_advance", {"target": "next-phase"})

    assert envelope.status is ToolStatus.ERROR
    assert envelope.errors[0].code == "PHASE_ORDER_MISSING"
