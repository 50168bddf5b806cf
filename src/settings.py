"""Configuration loading for tidings.

All user-editable settings (layout, history, timeouts, idle detection,
control socket, logging) live in a single JSON file for quick edits
without touching Python. ``TIDINGS_CONFIG`` (read through python-dotenv,
so it may sit in a ``.env`` file) points at a different file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from core.config import SchedulerConfig
from core.models import USEC_PER_SEC, Urgency

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Defaults mirror a stock desktop setup: low and normal notifications fade
# after ten seconds, critical ones stay until dismissed.
DEFAULT_TIMEOUTS = {
    Urgency.LOW: 10,
    Urgency.NORMAL: 10,
    Urgency.CRITICAL: 0,
}


def _default_socket_path() -> str:
    runtime_dir = os.getenv("XDG_RUNTIME_DIR") or "/tmp"
    return os.path.join(runtime_dir, "tidings.sock")


@dataclass(frozen=True)
class Settings:
    """Everything the app layer needs to wire the daemon."""

    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    # Microseconds per urgency; 0 means sticky.
    timeouts: dict[Urgency, int] = field(
        default_factory=lambda: {u: s * USEC_PER_SEC for u, s in DEFAULT_TIMEOUTS.items()}
    )
    idle_threshold: float = 120
    startup_notification: bool = False
    socket_path: str = field(default_factory=_default_socket_path)
    # Scripts run on first display, keyed by appname; "*" matches any app.
    scripts: dict[str, str] = field(default_factory=dict)
    logging: dict[str, Any] = field(default_factory=dict)

    def script_for(self, appname: str) -> Optional[str]:
        return self.scripts.get(appname) or self.scripts.get("*")


def _config_path(path: Optional[str]) -> str:
    if path:
        return path
    load_dotenv()
    return os.getenv("TIDINGS_CONFIG") or CONFIG_PATH


def _load_json_config(path: str) -> dict:
    """Load the JSON config; a missing file means "use defaults"."""

    if not os.path.exists(path):
        return {}

    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return data


def _int(raw: dict, key: str, default: int, minimum: Optional[int] = None) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Config key '{key}' must be an integer")
    if minimum is not None and value < minimum:
        raise ValueError(f"Config key '{key}' must be >= {minimum}")
    return value


def _number(raw: dict, key: str, default: float) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"Config key '{key}' must be a non-negative number")
    return value


def _bool(raw: dict, key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"Config key '{key}' must be true or false")
    return value


def _normalize_timeouts(raw: dict) -> dict[Urgency, int]:
    timeouts: dict[Urgency, int] = {}
    for urgency, default in DEFAULT_TIMEOUTS.items():
        name = urgency.name.lower()
        seconds = _number(raw, name, default)
        timeouts[urgency] = int(seconds * USEC_PER_SEC)
    return timeouts


def _normalize_age_threshold(raw: dict) -> Optional[int]:
    # -1 disables the "how long ago" indicator entirely.
    value = raw.get("show_age_threshold", 60)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Config key 'show_age_threshold' must be a number")
    if value < 0:
        return None
    return int(value * USEC_PER_SEC)


def _normalize_scripts(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in raw.items()
    ):
        raise ValueError("Config key 'scripts' must map appnames to script paths")
    return {key: os.path.expanduser(value) for key, value in raw.items()}


def load_settings(path: Optional[str] = None) -> Settings:
    """Read and validate the config file."""

    config = _load_json_config(_config_path(path))

    geometry = config.get("geometry", {}) or {}
    scheduler = SchedulerConfig(
        geometry_height=_int(geometry, "height", 0, minimum=0),
        indicate_hidden=_bool(config, "indicate_hidden", True),
        sticky_history=_bool(config, "sticky_history", True),
        history_length=_int(config, "history_length", 20, minimum=0),
        show_age_threshold=_normalize_age_threshold(config),
        sort=_bool(config, "sort", True),
    )

    control = config.get("control", {}) or {}
    socket_path = control.get("socket_path") or _default_socket_path()

    return Settings(
        scheduler=scheduler,
        timeouts=_normalize_timeouts(config.get("timeouts", {}) or {}),
        idle_threshold=_number(config, "idle_threshold", 120),
        startup_notification=_bool(config, "startup_notification", False),
        socket_path=os.path.expanduser(socket_path),
        scripts=_normalize_scripts(config.get("scripts")),
        logging=config.get("logging", {}) or {},
    )
