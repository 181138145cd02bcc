"""Project configuration loading."""

from waymark.config.settings import (
    ConfigError,
    HistorySettings,
    ToolSettings,
    WaymarkConfig,
    load_config,
    load_project_config,
)

__all__ = [
    "ConfigError",
    "HistorySettings",
    "ToolSettings",
    "WaymarkConfig",
    "load_config",
    "load_project_config",
]
