"""Schema and value-range checks on candidate state documents."""

from __future__ import annotations

from waymark.state.models import COMMIT_PATTERN, Phase, WorkflowState

_VALID_PHASES = frozenset(phase.value for phase in Phase)


def validate_state(state: WorkflowState) -> list[str]:
    """Check a candidate document; one issue string per failed check.

    Args:
        state: Candidate state document.

    Returns:
        Issues found; empty when the document is valid.
    """
    issues: list[str] = []
    if state.phase is not None and state.phase not in _VALID_PHASES:
        allowed = ", ".join(phase.value for phase in Phase)
        issues.append(f"phase '{state.phase}' is not one of: {allowed}")
    if state.current_task_id is not None and not state.current_task_id.strip():
        issues.append("current_task_id must not be empty")
    if state.last_commit is not None and not COMMIT_PATTERN.fullmatch(
        state.last_commit
    ):
        issues.append(
            f"last_commit '{state.last_commit}' is not a 7-40 character hex commit id"
        )
    if state.phase_index is not None and state.phase_index < 0:
        issues.append("phase_index must be non-negative")
    return issues
