"""Set, Advance, and Reset: the only operations that mutate workflow state.

Each call is a self-contained read -> candidate -> validate -> diff ->
write -> append sequence. Nothing is written or logged unless the diff,
ignoring ``updated_at``, is non-empty (a fresh auto-init always commits).
There is no cross-process locking: concurrent writers race and the last
replace wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from waymark.state.diff import TIMESTAMP_FIELD, compute_diff, meaningful_changes
from waymark.state.errors import (
    ConfirmationRequiredError,
    InvalidParameterError,
    PhaseOrderMissingError,
    StateError,
    StateErrorCode,
    StateNotInitializedError,
    StateValidationError,
)
from waymark.state.history import HistoryLog
from waymark.state.models import (
    STATE_FIELDS,
    TASK_ID_PATTERN,
    AdvanceTarget,
    EventType,
    FieldChange,
    HistoryEvent,
    Phase,
    ResetScope,
    StatePatch,
    WorkflowState,
    create_default_state,
    utc_now,
)
from waymark.state.phase_order import load_phase_order
from waymark.state.store import StateStore
from waymark.state.validator import validate_state

_LOGGER = logging.getLogger(__name__)

_RESET_FIELDS: dict[ResetScope, tuple[str, ...]] = {
    ResetScope.ALL: STATE_FIELDS,
    ResetScope.FEATURE: ("current_feature", "phase", "phase_index", "current_task_id"),
    ResetScope.PHASE: ("phase", "phase_index", "current_task_id"),
    ResetScope.TASK: ("current_task_id",),
}
_PHASE_RESTART_SCOPES = frozenset({ResetScope.ALL, ResetScope.FEATURE, ResetScope.PHASE})


class TransitionResult(BaseModel):
    """Outcome of one transition call."""

    model_config = ConfigDict(frozen=True)

    changed: bool | None
    state: WorkflowState | None = None
    diff: dict[str, FieldChange] = Field(default_factory=dict)
    scope: ResetScope | None = None
    advance_type: AdvanceTarget | None = None
    confirmation_required: bool = False
    initialized: bool = False


class StateTransitions:
    """Phase state machine and patch operations over one project's state."""

    def __init__(
        self,
        *,
        store: StateStore,
        history: HistoryLog,
        phase_order_path: Path | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Wire transition dependencies.

        Args:
            store: State document store.
            history: History journal.
            phase_order_path: Optional phase order document location.
            clock: UTC time source.
        """
        self._store = store
        self._history = history
        self._phase_order_path = phase_order_path
        self._clock = clock

    def set_state(
        self,
        patch: StatePatch,
        *,
        reason: str | None = None,
        correlation_id: str | None = None,
        skip_validation: bool = False,
    ) -> TransitionResult:
        """Merge a patch over the current document, auto-initializing it.

        Args:
            patch: Fields to overwrite; only explicitly supplied ones apply.
            reason: Optional reason recorded on the event.
            correlation_id: Optional caller token recorded on the event.
            skip_validation: Bypass the validator (advisory for Set).

        Returns:
            Transition result with the persisted or unchanged document.

        Raises:
            StateValidationError: If validation is on and the candidate fails.
            StateParseError: If the persisted document is unreadable.
        """
        current = self._store.read()
        initialized = current is None
        base = current if current is not None else create_default_state(self._clock())

        supplied = patch.supplied_fields()
        candidate = _merge(base, supplied, self._next_timestamp(base))
        if not skip_validation:
            _require_valid(candidate)

        compared = {**supplied, TIMESTAMP_FIELD: candidate.to_file_dict()[TIMESTAMP_FIELD]}
        diff = meaningful_changes(compute_diff(base.to_file_dict(), compared))
        if not diff and not initialized:
            return TransitionResult(changed=False, state=base)

        event = HistoryEvent.build(
            EventType.STATE_SET,
            timestamp=candidate.updated_at,
            reason=reason,
            correlation_id=correlation_id,
            diff=diff,
        )
        self._commit(
            candidate,
            event,
            init_timestamp=base.updated_at if initialized else None,
            correlation_id=correlation_id,
        )
        return TransitionResult(
            changed=True, state=candidate, diff=diff, initialized=initialized
        )

    def advance(
        self,
        target: AdvanceTarget | str,
        *,
        next_task_id: str | None = None,
        next_phase: str | None = None,
        reason: str | None = None,
        correlation_id: str | None = None,
    ) -> TransitionResult:
        """Move to the next task or the next phase.

        Args:
            target: ``next-task`` or ``next-phase``.
            next_task_id: Task id for ``next-task``.
            next_phase: Explicit phase for ``next-phase``; derived from the
                phase order document when omitted.
            reason: Optional reason recorded on the event.
            correlation_id: Optional caller token recorded on the event.

        Returns:
            Transition result.

        Raises:
            InvalidParameterError: If target is not a supported advance kind.
            StateError: ``INVALID_TASK_ID`` or ``INVALID_PHASE`` for bad values.
            StateNotInitializedError: If no document exists.
            PhaseOrderMissingError: If the next phase cannot be derived.
        """
        kind = _parse_enum(AdvanceTarget, target, "target")
        task_id = (
            _require_task_id(next_task_id) if kind is AdvanceTarget.NEXT_TASK else None
        )
        current = self._require_state()

        updates: dict[str, Any]
        if task_id is not None:
            updates = {"current_task_id": task_id}
        else:
            resolved = self._resolve_next_phase(current, next_phase)
            updates = {"phase": resolved}
            # phase_index is carried forward, never derived from the ordering.
            if isinstance(current.phase_index, int):
                updates["phase_index"] = current.phase_index + 1

        candidate = _merge(current, updates, self._next_timestamp(current))
        _require_valid(candidate)
        diff = meaningful_changes(
            compute_diff(current.to_file_dict(), candidate.to_file_dict())
        )
        if not diff:
            return TransitionResult(changed=False, state=current, advance_type=kind)

        event = HistoryEvent.build(
            EventType.STATE_ADVANCE,
            timestamp=candidate.updated_at,
            reason=reason,
            correlation_id=correlation_id,
            advance_type=kind,
            diff=diff,
        )
        self._commit(candidate, event)
        return TransitionResult(
            changed=True, state=candidate, diff=diff, advance_type=kind
        )

    def reset(
        self,
        scope: ResetScope | str,
        *,
        confirm: bool = False,
        reason: str | None = None,
        correlation_id: str | None = None,
    ) -> TransitionResult:
        """Clear a scope of fields behind a two-step confirmation guard.

        Without ``confirm`` nothing is read or written and the result asks for
        confirmation.

        Args:
            scope: ``all``, ``feature``, ``phase``, or ``task``.
            confirm: Second step of the guard.
            reason: Mandatory when confirming.
            correlation_id: Optional caller token recorded on the event.

        Returns:
            Transition result.

        Raises:
            InvalidParameterError: If scope is unknown.
            ConfirmationRequiredError: If confirmed without a reason.
            StateNotInitializedError: If no document exists.
        """
        resolved_scope = _parse_enum(ResetScope, scope, "scope")
        if not confirm:
            return TransitionResult(
                changed=None, scope=resolved_scope, confirmation_required=True
            )
        if reason is None or not reason.strip():
            raise ConfirmationRequiredError(
                "A reason is required to confirm a state reset."
            )

        current = self._require_state()
        updates: dict[str, Any] = {field: None for field in _RESET_FIELDS[resolved_scope]}
        if resolved_scope in _PHASE_RESTART_SCOPES:
            updates["phase"] = Phase.SPEC.value

        candidate = _merge(current, updates, self._next_timestamp(current))
        _require_valid(candidate)
        diff = meaningful_changes(
            compute_diff(current.to_file_dict(), candidate.to_file_dict())
        )
        if not diff:
            return TransitionResult(changed=False, state=current, scope=resolved_scope)

        event = HistoryEvent.build(
            EventType.STATE_RESET,
            timestamp=candidate.updated_at,
            reason=reason.strip(),
            correlation_id=correlation_id,
            scope=resolved_scope,
            diff=diff,
        )
        self._commit(candidate, event)
        return TransitionResult(
            changed=True, state=candidate, diff=diff, scope=resolved_scope
        )

    def _require_state(self) -> WorkflowState:
        current = self._store.read()
        if current is None:
            raise StateNotInitializedError(
                f"No workflow state at {self._store.path}; set state first."
            )
        return current

    def _resolve_next_phase(self, current: WorkflowState, explicit: str | None) -> str:
        if explicit is not None and explicit.strip():
            resolved = explicit.strip()
        else:
            order = load_phase_order(self._phase_order_path)
            if order is None:
                raise PhaseOrderMissingError(
                    "No phase order document; pass next_phase explicitly."
                )
            following = order.following(current.phase)
            if following is None:
                raise PhaseOrderMissingError(
                    f"Cannot derive the phase after {current.phase!r} from the phase order."
                )
            resolved = following
        if resolved not in {phase.value for phase in Phase}:
            raise StateError(
                StateErrorCode.INVALID_PHASE,
                f"Unknown phase {resolved!r}.",
                data={"phase": resolved},
            )
        return resolved

    def _next_timestamp(self, previous: WorkflowState) -> datetime:
        # updated_at never moves backwards, even if the clock does.
        return max(self._clock(), previous.updated_at)

    def _commit(
        self,
        candidate: WorkflowState,
        event: HistoryEvent,
        *,
        init_timestamp: datetime | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._store.write_atomic(candidate)
        if init_timestamp is not None:
            self._history.append(
                HistoryEvent.build(
                    EventType.STATE_INIT,
                    timestamp=init_timestamp,
                    correlation_id=correlation_id,
                )
            )
        self._history.append(event)
        _LOGGER.info(
            "Committed %s (%d field(s) changed)",
            event.type.value,
            len(event.diff or {}),
        )


def _merge(
    base: WorkflowState, updates: Mapping[str, Any], timestamp: datetime
) -> WorkflowState:
    payload = base.to_file_dict()
    payload.update(updates)
    payload[TIMESTAMP_FIELD] = timestamp
    return WorkflowState.model_validate(payload)


def _require_valid(candidate: WorkflowState) -> None:
    issues = validate_state(candidate)
    if issues:
        raise StateValidationError(issues)


def _require_task_id(value: str | None) -> str:
    if value is None or not TASK_ID_PATTERN.fullmatch(value):
        raise StateError(
            StateErrorCode.INVALID_TASK_ID,
            f"next_task_id must match ^[A-Z0-9-]+$, got {value!r}.",
            data={"next_task_id": value},
        )
    return value


E = TypeVar("E", AdvanceTarget, ResetScope)


def _parse_enum(
    enum_type: type[E], value: E | str, name: str
) -> E:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise InvalidParameterError(
            f"Unsupported {name} {value!r}; expected one of: {allowed}.",
            data={name: str(value)},
        ) from exc
