"""Workflow state, patch, and history event models (pure data, no IO)."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Phase(StrEnum):
    """Workflow phase, declared in canonical order."""

    SPEC = "spec"
    TASKS = "tasks"
    IMPLEMENT = "implement"
    VERIFY = "verify"
    DEPLOY = "deploy"


TASK_ID_PATTERN = re.compile(r"^[A-Z0-9-]+$")
COMMIT_PATTERN = re.compile(r"^[a-f0-9]{7,40}$")


class EventType(StrEnum):
    """History journal event type."""

    STATE_INIT = "state_init"
    STATE_SET = "state_set"
    STATE_ADVANCE = "state_advance"
    STATE_RESET = "state_reset"


class AdvanceTarget(StrEnum):
    """Supported advance kinds."""

    NEXT_TASK = "next-task"
    NEXT_PHASE = "next-phase"


class ResetScope(StrEnum):
    """Supported reset scopes, widest first."""

    ALL = "all"
    FEATURE = "feature"
    PHASE = "phase"
    TASK = "task"


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class WorkflowState(BaseModel):
    """Singleton state document stored at .waymark/state.json.

    ``phase`` is kept as a plain string so that a document written with
    validation bypassed still loads; :func:`validate_state` enforces the enum.
    """

    model_config = ConfigDict(extra="ignore")

    current_feature: str | None = None
    phase: str | None = None
    phase_index: int | None = None
    current_task_id: str | None = None
    active_branch: str | None = None
    worktree_path: str | None = None
    last_commit: str | None = None
    updated_at: datetime
    notes: str | None = None
    locks: Any = None

    @field_validator("updated_at")
    @classmethod
    def _normalize_updated_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_file_dict(self) -> dict[str, Any]:
        """Serialize for JSON file."""
        return self.model_dump(mode="json")

    @classmethod
    def from_file_dict(cls, d: dict[str, Any]) -> WorkflowState:
        """Deserialize from JSON file."""
        return cls.model_validate(d)


# Every document field a patch or reset may touch; updated_at is owned by writes.
STATE_FIELDS: tuple[str, ...] = tuple(
    name for name in WorkflowState.model_fields if name != "updated_at"
)


def create_default_state(now: datetime | None = None) -> WorkflowState:
    """Create the empty document used when state is auto-initialized."""
    return WorkflowState(updated_at=now or utc_now())


class StatePatch(BaseModel):
    """Partial set of field assignments applied over a state document.

    Only fields the caller explicitly supplied are applied: an explicit
    ``None`` clears the field, an omitted field is left untouched.
    """

    model_config = ConfigDict(extra="forbid")

    current_feature: str | None = None
    phase: str | None = None
    phase_index: int | None = None
    current_task_id: str | None = None
    active_branch: str | None = None
    worktree_path: str | None = None
    last_commit: str | None = None
    notes: str | None = None
    locks: Any = None

    def supplied_fields(self) -> dict[str, Any]:
        """Return JSON-ready values for explicitly supplied fields only."""
        return self.model_dump(mode="json", include=set(self.model_fields_set))

    def is_empty(self) -> bool:
        """Return whether the patch assigns nothing."""
        return not self.model_fields_set


class FieldChange(BaseModel):
    """Old and new value of one changed field."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: Any = Field(default=None, alias="from")
    to: Any = None


class HistoryEvent(BaseModel):
    """One committed transition in .waymark/history.jsonl."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    type: EventType
    reason: str | None = None
    correlation_id: str | None = None
    scope: ResetScope | None = None
    advance_type: AdvanceTarget | None = None
    diff: dict[str, FieldChange] | None = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def build(
        cls,
        event_type: EventType,
        *,
        timestamp: datetime | None = None,
        reason: str | None = None,
        correlation_id: str | None = None,
        scope: ResetScope | None = None,
        advance_type: AdvanceTarget | None = None,
        diff: dict[str, FieldChange] | None = None,
    ) -> HistoryEvent:
        """Create an event, leaving absent optional fields unset.

        Unset fields are omitted from the journal line, so an empty diff
        never appears in the log.
        """
        fields: dict[str, Any] = {
            "timestamp": timestamp or utc_now(),
            "type": event_type,
            "reason": reason,
            "correlation_id": correlation_id,
            "scope": scope,
            "advance_type": advance_type,
            "diff": diff or None,
        }
        return cls(**{key: value for key, value in fields.items() if value is not None})

    def to_line(self) -> str:
        """Serialize as a single JSON line (no trailing newline)."""
        return self.model_dump_json(by_alias=True, exclude_unset=True)

    def changed_feature(self) -> str | None:
        """Return the new ``current_feature`` recorded by this event's diff."""
        if not self.diff or "current_feature" not in self.diff:
            return None
        value = self.diff["current_feature"].to
        return value if isinstance(value, str) else None


class PhaseOrder(BaseModel):
    """Ordered phase walk loaded from .waymark/phase_order.json."""

    model_config = ConfigDict(extra="forbid")

    phases: list[str] = Field(min_length=1)

    def following(self, current: str | None) -> str | None:
        """Return the phase after ``current``, or None if unknown or last."""
        if current is None or current not in self.phases:
            return None
        position = self.phases.index(current)
        if position + 1 >= len(self.phases):
            return None
        return self.phases[position + 1]
