"""Agent-facing state tools and their response envelope."""

from waymark.tools.envelope import (
    ToolAudit,
    ToolEnvelope,
    ToolIssue,
    ToolStatus,
    build_envelope,
    derive_status,
)
from waymark.tools.handlers import StateToolbox

__all__ = [
    "StateToolbox",
    "ToolAudit",
    "ToolEnvelope",
    "ToolIssue",
    "ToolStatus",
    "build_envelope",
    "derive_status",
]
