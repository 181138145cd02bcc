"""Loading of the optional phase order document."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from waymark.state.errors import PhaseOrderMissingError
from waymark.state.models import PhaseOrder


def load_phase_order(path: Path | None) -> PhaseOrder | None:
    """Load the ordered phase walk, if one is configured and present.

    Args:
        path: Phase order document path, or None when not configured.

    Returns:
        Parsed phase order, or None when the document does not exist.

    Raises:
        PhaseOrderMissingError: If the document exists but is unusable.
    """
    if path is None or not path.is_file():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PhaseOrderMissingError(f"Phase order file {path} is unreadable: {exc}") from exc
    try:
        return PhaseOrder.model_validate(payload)
    except ValidationError as exc:
        raise PhaseOrderMissingError(
            f"Phase order file {path} must be an object with a non-empty 'phases' list."
        ) from exc
