"""Waymark CLI package."""
