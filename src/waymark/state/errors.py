"""Deterministic workflow state error contracts."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path


class StateErrorCode(StrEnum):
    """Stable machine-readable error codes surfaced by state operations."""

    STATE_NOT_INITIALIZED = "STATE_NOT_INITIALIZED"
    INVALID_PHASE = "INVALID_PHASE"
    INVALID_TASK_ID = "INVALID_TASK_ID"
    PHASE_ORDER_MISSING = "PHASE_ORDER_MISSING"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    INVALID_STATE = "INVALID_STATE"
    HISTORY_FILE_INVALID = "HISTORY_FILE_INVALID"
    INVALID_ARGUMENTS = "INVALID_ARGUMENTS"
    STORAGE_FAILED = "STORAGE_FAILED"


class StateError(RuntimeError):
    """State operation failure with stable deterministic code."""

    def __init__(
        self,
        code: StateErrorCode,
        message: str,
        *,
        data: dict[str, object] | None = None,
    ) -> None:
        """Create state failure.

        Args:
            code: Stable state error code.
            message: Human-readable error message.
            data: Optional structured payload for diagnostics.
        """
        super().__init__(message)
        self.code = code
        self.data = data or {}


class StateNotInitializedError(StateError):
    """Raised when an operation needs a state document that does not exist."""

    def __init__(self, message: str = "Workflow state is not initialized.") -> None:
        super().__init__(StateErrorCode.STATE_NOT_INITIALIZED, message)


class StateValidationError(StateError):
    """Raised when a candidate state document fails validation."""

    def __init__(self, issues: list[str]) -> None:
        """Create validation failure.

        Args:
            issues: One message per failed check.
        """
        super().__init__(
            StateErrorCode.INVALID_STATE,
            "State validation failed: " + "; ".join(issues),
            data={"issues": list(issues)},
        )
        self.issues = list(issues)


class StateParseError(StateError):
    """Raised when the persisted state document cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(StateErrorCode.INVALID_STATE, message)


class InvalidParameterError(StateError):
    """Raised for a missing or out-of-range operation argument."""

    def __init__(self, message: str, *, data: dict[str, object] | None = None):
        super().__init__(StateErrorCode.INVALID_PARAMETER, message, data=data)


class ConfirmationRequiredError(StateError):
    """Raised when a destructive action skips the two-step guard."""

    def __init__(self, message: str) -> None:
        super().__init__(StateErrorCode.CONFIRMATION_REQUIRED, message)


class PhaseOrderMissingError(StateError):
    """Raised when the next phase cannot be resolved from the phase order."""

    def __init__(self, message: str) -> None:
        super().__init__(StateErrorCode.PHASE_ORDER_MISSING, message)


class StateStorageError(StateError):
    """Raised when the state directory cannot be read or written."""

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(
            StateErrorCode.STORAGE_FAILED, message, data={"path": str(path)}
        )
