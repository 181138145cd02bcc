"""Project-level waymark config models and loading helpers."""

from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from waymark import __version__
from waymark.state.history import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from waymark.state.paths import (
    HISTORY_FILENAME,
    PHASE_ORDER_FILENAME,
    STATE_FILENAME,
    WAYMARK_DIR,
    find_config_path,
)


class HistorySettings(BaseModel):
    """History retrieval bounds."""

    model_config = ConfigDict(extra="forbid")

    default_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1)
    max_limit: int = Field(default=MAX_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT)

    @model_validator(mode="after")
    def _default_within_max(self) -> HistorySettings:
        if self.default_limit > self.max_limit:
            raise ValueError("default_limit must not exceed max_limit")
        return self


class ToolSettings(BaseModel):
    """Values stamped onto every tool envelope."""

    model_config = ConfigDict(extra="forbid")

    source: str = "waymark"
    version: str = __version__


class WaymarkConfig(BaseModel):
    """Root project configuration model."""

    model_config = ConfigDict(extra="forbid")

    state_dir: str = WAYMARK_DIR
    state_file: str = STATE_FILENAME
    history_file: str = HISTORY_FILENAME
    phase_order_file: str = PHASE_ORDER_FILENAME
    history: HistorySettings = HistorySettings()
    tool: ToolSettings = ToolSettings()

    def state_path(self, project_root: Path) -> Path:
        """Resolve the state document path under a project."""
        return project_root / self.state_dir / self.state_file

    def history_path(self, project_root: Path) -> Path:
        """Resolve the history journal path under a project."""
        return project_root / self.state_dir / self.history_file

    def phase_order_path(self, project_root: Path) -> Path:
        """Resolve the phase order document path under a project."""
        return project_root / self.state_dir / self.phase_order_file


class ConfigError(RuntimeError):
    """Raised when project config cannot be decoded or validated."""


def _decode_config_payload(path: Path) -> dict[str, object]:
    """Decode config payload from JSON or YAML.

    Args:
        path: Config file path.

    Returns:
        Parsed mapping payload.

    Raises:
        ConfigError: If decode fails or payload is not an object.
    """
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid config JSON: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError("Invalid config payload: root must be an object")
    return payload


def load_config(path: Path) -> WaymarkConfig:
    """Load config from disk, defaulting when missing.

    Args:
        path: Config file path.

    Returns:
        Parsed config payload, or defaults when file does not exist.

    Raises:
        ConfigError: If payload decode or validation fails.
    """
    if not path.exists():
        return WaymarkConfig()
    payload = _decode_config_payload(path)
    try:
        return WaymarkConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config payload: {exc}") from exc


def load_project_config(project_root: Path) -> WaymarkConfig:
    """Load ``.waymark/config.{yaml,yml,json}`` for a project, if present."""
    path = find_config_path(project_root)
    if path is None:
        return WaymarkConfig()
    return load_config(path)
