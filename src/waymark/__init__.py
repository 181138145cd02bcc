"""Waymark: durable workflow state for agent-driven development."""

__version__ = "0.1.0"
