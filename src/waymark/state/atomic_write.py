"""Atomic JSON write with fsync for the state document."""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

_LOGGER = logging.getLogger(__name__)


def atomic_write_json(final_path: Path, data: dict[str, Any]) -> Path:
    """Write JSON to final_path atomically: temp -> fsync -> replace -> fsync dir.

    The temp file lives next to final_path so the replace is atomic. On any
    failure (serialization included) the temp file is removed and final_path
    keeps its previous bytes.

    Args:
        final_path: Destination path for the JSON file.
        data: JSON-serializable dict (e.g. from ``.to_file_dict()``).

    Returns:
        The destination path.
    """
    directory = final_path.parent
    directory.mkdir(parents=True, exist_ok=True)
    temp_path = directory / (
        f".{final_path.stem}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp"
    )
    try:
        content_bytes = (json.dumps(data, indent=2) + "\n").encode("utf-8")
        fd = os.open(
            str(temp_path),
            os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
            0o644,
        )
        try:
            os.write(fd, content_bytes)
            os.fsync(fd)
        finally:
            os.close(fd)
        os.replace(temp_path, final_path)
        try:
            dir_fd = os.open(str(directory), os.O_RDONLY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
        except OSError:
            pass  # e.g. Windows: directory fsync best-effort
    except (OSError, TypeError, ValueError):
        _LOGGER.warning("Atomic write to %s failed; previous file kept", final_path)
        raise
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)
    return final_path
