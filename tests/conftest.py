"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from waymark.state import HistoryLog, StateStore, StateTransitions
from waymark.state.paths import get_history_path, get_phase_order_path, get_state_path


class StepClock:
    """Deterministic UTC clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Temporary project root. .waymark will be created under it."""
    return tmp_path


@pytest.fixture
def clock() -> StepClock:
    """Deterministic clock shared by transitions in a test."""
    return StepClock()


@pytest.fixture
def store(project_root: Path) -> StateStore:
    """State store at the default project location."""
    return StateStore(state_path=get_state_path(project_root))


@pytest.fixture
def history(project_root: Path) -> HistoryLog:
    """History journal at the default project location."""
    return HistoryLog(history_path=get_history_path(project_root))


@pytest.fixture
def transitions(
    project_root: Path, store: StateStore, history: HistoryLog, clock: StepClock
) -> StateTransitions:
    """Transitions wired to the default layout and deterministic clock."""
    return StateTransitions(
        store=store,
        history=history,
        phase_order_path=get_phase_order_path(project_root),
        clock=clock,
    )
