"""Tool response envelope: uniform wrapper around every tool result (pure data)."""

from __future__ import annotations

import socket
import time
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from waymark.config import ToolSettings
from waymark.state.models import utc_now

# SchemaId convention: waymark.<tool>.v<integer> (e.g. waymark.state_set.v1).
SCHEMA_VERSION = 1


class ToolStatus(StrEnum):
    """Normalized envelope status."""

    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class ToolIssue(BaseModel):
    """One warning or error with a stable machine-readable code."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    code: str
    message: str


class ToolAudit(BaseModel):
    """When, how long, and where a tool call ran."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    timestamp: datetime
    duration_ms: float
    source: str
    host: str


class ToolEnvelope(BaseModel):
    """Uniform tool result consumed verbatim by agent callers."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_id: str
    tool: str
    version: str
    status: ToolStatus
    summary: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[ToolIssue] = Field(default_factory=list)
    errors: list[ToolIssue] = Field(default_factory=list)
    audit: ToolAudit

    @property
    def ok(self) -> bool:
        """Whether the call produced no errors."""
        return self.status is not ToolStatus.ERROR


def derive_status(warnings: list[ToolIssue], errors: list[ToolIssue]) -> ToolStatus:
    """Error iff any errors, else warning iff any warnings, else ok."""
    if errors:
        return ToolStatus.ERROR
    if warnings:
        return ToolStatus.WARNING
    return ToolStatus.OK


def build_envelope(
    *,
    tool: str,
    summary: str,
    started: float,
    settings: ToolSettings,
    data: dict[str, Any] | None = None,
    warnings: list[ToolIssue] | None = None,
    errors: list[ToolIssue] | None = None,
) -> ToolEnvelope:
    """Assemble an envelope and stamp its audit block.

    Args:
        tool: Tool name.
        summary: One-sentence human-readable outcome.
        started: ``time.perf_counter()`` value taken when the call began.
        settings: Source and version stamped onto the envelope.
        data: Tool-specific payload.
        warnings: Non-fatal issues.
        errors: Fatal issues.

    Returns:
        Envelope with derived status.
    """
    warning_list = list(warnings or [])
    error_list = list(errors or [])
    return ToolEnvelope(
        schema_id=f"waymark.{tool}.v{SCHEMA_VERSION}",
        tool=tool,
        version=settings.version,
        status=derive_status(warning_list, error_list),
        summary=summary,
        data=data or {},
        warnings=warning_list,
        errors=error_list,
        audit=ToolAudit(
            timestamp=utc_now(),
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
            source=settings.source,
            host=socket.gethostname(),
        ),
    )
