"""Project-relative layout for the workflow state store. .waymark is the root."""

from pathlib import Path

WAYMARK_DIR = ".waymark"
STATE_FILENAME = "state.json"
HISTORY_FILENAME = "history.jsonl"
PHASE_ORDER_FILENAME = "phase_order.json"
CONFIG_FILENAMES = ("config.yaml", "config.yml", "config.json")


def get_waymark_root(project_root: Path) -> Path:
    """Return path to .waymark under the project."""
    return project_root / WAYMARK_DIR


def get_state_path(project_root: Path) -> Path:
    """Return path to .waymark/state.json."""
    return get_waymark_root(project_root) / STATE_FILENAME


def get_history_path(project_root: Path) -> Path:
    """Return path to .waymark/history.jsonl."""
    return get_waymark_root(project_root) / HISTORY_FILENAME


def get_phase_order_path(project_root: Path) -> Path:
    """Return path to .waymark/phase_order.json."""
    return get_waymark_root(project_root) / PHASE_ORDER_FILENAME


def find_config_path(project_root: Path) -> Path | None:
    """Return the first existing config file under .waymark, if any."""
    root = get_waymark_root(project_root)
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.exists():
            return candidate
    return None
