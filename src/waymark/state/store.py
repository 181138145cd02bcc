"""Durable read/write of the singleton workflow state document."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from waymark.state.atomic_write import atomic_write_json
from waymark.state.errors import StateParseError, StateStorageError
from waymark.state.models import WorkflowState

_LOGGER = logging.getLogger(__name__)


class StateStore:
    """Read and atomically replace one project's state document."""

    def __init__(self, *, state_path: Path) -> None:
        """Store document location.

        Args:
            state_path: Canonical state document path.
        """
        self._state_path = state_path

    @property
    def path(self) -> Path:
        """Canonical state document path."""
        return self._state_path

    def exists(self) -> bool:
        """Return whether the state document has been written."""
        return self._state_path.is_file()

    def read(self) -> WorkflowState | None:
        """Load the persisted state document.

        Returns:
            Parsed state, or ``None`` when no document exists.

        Raises:
            StateParseError: If the bytes are not a valid state document.
            StateStorageError: If the document exists but cannot be read.
        """
        if not self.exists():
            return None
        try:
            raw = self._state_path.read_bytes()
        except OSError as exc:
            raise StateStorageError(
                f"Cannot read state document {self._state_path}: {exc}",
                path=self._state_path,
            ) from exc
        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StateParseError(
                f"Invalid state JSON in {self._state_path}: {exc}"
            ) from exc
        if not isinstance(decoded, dict):
            raise StateParseError(
                f"Invalid state payload in {self._state_path}: expected JSON object."
            )
        try:
            return WorkflowState.from_file_dict(decoded)
        except ValidationError as exc:
            raise StateParseError(
                f"Invalid state payload in {self._state_path}: {exc}"
            ) from exc

    def write_atomic(self, state: WorkflowState) -> Path:
        """Persist the full document via temp file and atomic replace.

        Args:
            state: Document to persist.

        Returns:
            Canonical document path.

        Raises:
            StateStorageError: If the document cannot be written.
        """
        try:
            path = atomic_write_json(self._state_path, state.to_file_dict())
        except OSError as exc:
            raise StateStorageError(
                f"Cannot write state document {self._state_path}: {exc}",
                path=self._state_path,
            ) from exc
        _LOGGER.debug("Wrote workflow state to %s", path)
        return path
