"""Thin state tool handlers and their name-keyed registry."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from waymark.config import WaymarkConfig, load_project_config
from waymark.state import (
    HistoryLog,
    StateError,
    StateErrorCode,
    StatePatch,
    StateStore,
    StateTransitions,
    TransitionResult,
    diff_to_payload,
)
from waymark.tools.envelope import ToolEnvelope, ToolIssue, build_envelope

_LOGGER = logging.getLogger(__name__)


class StateGetArgs(BaseModel):
    """Arguments for ``state_get`` (none)."""

    model_config = ConfigDict(extra="forbid")


class StateSetArgs(BaseModel):
    """Arguments for ``state_set``."""

    model_config = ConfigDict(extra="forbid")

    patch: StatePatch
    reason: str | None = None
    correlation_id: str | None = None
    skip_validation: bool = False


class StateAdvanceArgs(BaseModel):
    """Arguments for ``state_advance``."""

    model_config = ConfigDict(extra="forbid")

    target: str
    next_task_id: str | None = None
    next_phase: str | None = None
    reason: str | None = None
    correlation_id: str | None = None


class StateResetArgs(BaseModel):
    """Arguments for ``state_reset``."""

    model_config = ConfigDict(extra="forbid")

    scope: str
    confirm: bool = False
    reason: str | None = None
    correlation_id: str | None = None


class StateHistoryArgs(BaseModel):
    """Arguments for ``state_history``."""

    model_config = ConfigDict(extra="forbid")

    limit: int | None = None
    since: str | None = None
    types: list[str] | None = None
    feature: str | None = None


@dataclass(frozen=True)
class _Outcome:
    """Handler output before it is wrapped in an envelope."""

    summary: str
    data: dict[str, Any]
    warnings: list[ToolIssue] = field(default_factory=list)


@dataclass(frozen=True)
class _ToolSpec:
    args_model: type[BaseModel]
    handler: Callable[[Any], _Outcome]


class StateToolbox:
    """Dispatch state tool calls for one project and wrap results."""

    def __init__(self, *, project_root: Path, config: WaymarkConfig | None = None) -> None:
        """Build store, journal, and transitions for a project.

        Args:
            project_root: Project directory holding the state directory.
            config: Optional config; loaded from the project when omitted.
        """
        self._config = config or load_project_config(project_root)
        self._store = StateStore(state_path=self._config.state_path(project_root))
        self._history = HistoryLog(
            history_path=self._config.history_path(project_root),
            default_limit=self._config.history.default_limit,
            max_limit=self._config.history.max_limit,
        )
        self._transitions = StateTransitions(
            store=self._store,
            history=self._history,
            phase_order_path=self._config.phase_order_path(project_root),
        )
        self._tools: dict[str, _ToolSpec] = {
            "state_get": _ToolSpec(StateGetArgs, self._state_get),
            "state_set": _ToolSpec(StateSetArgs, self._state_set),
            "state_advance": _ToolSpec(StateAdvanceArgs, self._state_advance),
            "state_reset": _ToolSpec(StateResetArgs, self._state_reset),
            "state_history": _ToolSpec(StateHistoryArgs, self._state_history),
        }

    @property
    def tool_names(self) -> tuple[str, ...]:
        """Registered tool names, sorted."""
        return tuple(sorted(self._tools))

    def invoke(self, tool: str, arguments: Mapping[str, Any] | None = None) -> ToolEnvelope:
        """Run one tool call and wrap its outcome.

        Args:
            tool: Registered tool name.
            arguments: Raw caller arguments.

        Returns:
            Envelope with status, summary, data, and issues.
        """
        started = time.perf_counter()
        spec = self._tools.get(tool)
        if spec is None:
            return self._failure(
                tool,
                started,
                StateErrorCode.INVALID_ARGUMENTS,
                f"Unknown tool '{tool}'.",
            )
        try:
            args = spec.args_model.model_validate(dict(arguments or {}))
        except ValidationError as exc:
            return self._failure(
                tool,
                started,
                StateErrorCode.INVALID_ARGUMENTS,
                f"Invalid arguments for {tool}: {exc.error_count()} error(s).",
                data={"validation_errors": exc.errors(include_url=False)},
            )
        try:
            outcome = spec.handler(args)
        except StateError as exc:
            _LOGGER.info("%s failed with %s: %s", tool, exc.code.value, exc)
            return self._failure(tool, started, exc.code, str(exc), data=exc.data)
        return build_envelope(
            tool=tool,
            summary=outcome.summary,
            started=started,
            settings=self._config.tool,
            data=outcome.data,
            warnings=outcome.warnings,
        )

    def _failure(
        self,
        tool: str,
        started: float,
        code: StateErrorCode,
        message: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> ToolEnvelope:
        return build_envelope(
            tool=tool,
            summary=f"{tool} failed: {message}",
            started=started,
            settings=self._config.tool,
            data=_jsonable(data or {}),
            errors=[ToolIssue(code=code.value, message=message)],
        )

    def _state_get(self, args: StateGetArgs) -> _Outcome:
        del args
        state = self._store.read()
        if state is None:
            return _Outcome(
                summary="Workflow state has not been initialized yet.",
                data={"initialized": False, "state": None},
                warnings=[
                    ToolIssue(
                        code=StateErrorCode.STATE_NOT_INITIALIZED.value,
                        message="No state document exists; call state_set to create one.",
                    )
                ],
            )
        return _Outcome(
            summary=_describe_position(state.to_file_dict()),
            data={"initialized": True, "state": state.to_file_dict()},
        )

    def _state_set(self, args: StateSetArgs) -> _Outcome:
        result = self._transitions.set_state(
            args.patch,
            reason=args.reason,
            correlation_id=args.correlation_id,
            skip_validation=args.skip_validation,
        )
        if not result.changed:
            summary = "State already matches the patch; nothing written."
        elif result.initialized:
            summary = f"Initialized state and updated {_field_list(result)}."
        else:
            summary = f"Updated {_field_list(result)}."
        return _Outcome(summary=summary, data=_result_payload(result))

    def _state_advance(self, args: StateAdvanceArgs) -> _Outcome:
        result = self._transitions.advance(
            args.target,
            next_task_id=args.next_task_id,
            next_phase=args.next_phase,
            reason=args.reason,
            correlation_id=args.correlation_id,
        )
        state = result.state.to_file_dict() if result.state else {}
        if not result.changed:
            summary = f"Advance {args.target} changed nothing; {_describe_position(state)}"
        else:
            summary = f"Advanced {args.target}; {_describe_position(state)}"
        return _Outcome(summary=summary, data=_result_payload(result))

    def _state_reset(self, args: StateResetArgs) -> _Outcome:
        result = self._transitions.reset(
            args.scope,
            confirm=args.confirm,
            reason=args.reason,
            correlation_id=args.correlation_id,
        )
        scope = result.scope.value if result.scope else args.scope
        if result.confirmation_required:
            return _Outcome(
                summary=f"Reset of scope '{scope}' needs confirmation; nothing changed.",
                data={"scope": scope, "confirmation_required": True},
                warnings=[
                    ToolIssue(
                        code=StateErrorCode.CONFIRMATION_REQUIRED.value,
                        message="Re-run with confirm=true and a reason to reset.",
                    )
                ],
            )
        if not result.changed:
            summary = f"Scope '{scope}' was already clear; nothing written."
        else:
            summary = f"Reset scope '{scope}' ({_field_list(result)})."
        return _Outcome(summary=summary, data=_result_payload(result))

    def _state_history(self, args: StateHistoryArgs) -> _Outcome:
        result = self._history.query(
            limit=args.limit,
            since=args.since,
            types=args.types,
            feature=args.feature,
        )
        warnings: list[ToolIssue] = []
        if result.invalid_lines:
            warnings.append(
                ToolIssue(
                    code=StateErrorCode.HISTORY_FILE_INVALID.value,
                    message=(
                        f"Skipped {result.invalid_lines} unreadable line(s) in "
                        f"{self._history.path.name}."
                    ),
                )
            )
        events = [
            event.model_dump(mode="json", by_alias=True, exclude_unset=True)
            for event in result.events
        ]
        return _Outcome(
            summary=f"Returned {len(events)} history event(s).",
            data={
                "events": events,
                "count": len(events),
                "invalid_lines": result.invalid_lines,
            },
            warnings=warnings,
        )


def _result_payload(result: TransitionResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "changed": result.changed,
        "diff": diff_to_payload(result.diff),
    }
    if result.state is not None:
        payload["state"] = result.state.to_file_dict()
    if result.scope is not None:
        payload["scope"] = result.scope.value
    if result.advance_type is not None:
        payload["advance_type"] = result.advance_type.value
    if result.initialized:
        payload["initialized"] = True
    return payload


def _field_list(result: TransitionResult) -> str:
    if not result.diff:
        return "no fields"
    return ", ".join(sorted(result.diff))


def _describe_position(state: Mapping[str, Any]) -> str:
    feature = state.get("current_feature") or "no feature"
    phase = state.get("phase") or "no phase"
    task = state.get("current_task_id") or "no task"
    return f"now at {feature} / {phase} / {task}."


def _jsonable(data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value if _is_plain(value) else str(value) for key, value in data.items()}


def _is_plain(value: object) -> bool:
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_plain(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(key, str) and _is_plain(item) for key, item in value.items())
    return False
