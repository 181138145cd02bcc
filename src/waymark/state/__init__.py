"""Workflow state persistence and transitions public surface."""

from waymark.state.diff import compute_diff, diff_to_payload, meaningful_changes
from waymark.state.errors import (
    ConfirmationRequiredError,
    InvalidParameterError,
    PhaseOrderMissingError,
    StateError,
    StateErrorCode,
    StateNotInitializedError,
    StateParseError,
    StateStorageError,
    StateValidationError,
)
from waymark.state.history import HistoryLog, HistoryQueryResult, ParsedLine
from waymark.state.models import (
    AdvanceTarget,
    EventType,
    FieldChange,
    HistoryEvent,
    Phase,
    PhaseOrder,
    ResetScope,
    StatePatch,
    WorkflowState,
)
from waymark.state.phase_order import load_phase_order
from waymark.state.store import StateStore
from waymark.state.transitions import StateTransitions, TransitionResult
from waymark.state.validator import validate_state

__all__ = [
    "AdvanceTarget",
    "ConfirmationRequiredError",
    "EventType",
    "FieldChange",
    "HistoryEvent",
    "HistoryLog",
    "HistoryQueryResult",
    "InvalidParameterError",
    "ParsedLine",
    "Phase",
    "PhaseOrder",
    "PhaseOrderMissingError",
    "ResetScope",
    "StateError",
    "StateErrorCode",
    "StateNotInitializedError",
    "StateParseError",
    "StatePatch",
    "StateStorageError",
    "StateStore",
    "StateTransitions",
    "StateValidationError",
    "TransitionResult",
    "WorkflowState",
    "compute_diff",
    "diff_to_payload",
    "load_phase_order",
    "meaningful_changes",
    "validate_state",
]
