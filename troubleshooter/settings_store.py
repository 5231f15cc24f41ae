"""JSON-file persistence for per-user UI settings."""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

THEMES = ("system", "dark", "light")
PRESETS = ("", "network", "server", "script", "hardware")


def default_settings() -> Dict[str, Any]:
    return {
        "defaultPreset": "",
        "expandOnPreset": True,
        "rememberApproval": True,
        "defaultApproval": False,
        "theme": "system",
    }


def sanitize_settings(incoming: Any) -> Dict[str, Any]:
    """Keep only well-typed known settings, falling back to defaults for the rest."""
    settings = default_settings()
    if not isinstance(incoming, dict):
        return settings

    if isinstance(incoming.get("defaultPreset"), str):
        settings["defaultPreset"] = incoming["defaultPreset"]
    for key in ("expandOnPreset", "rememberApproval", "defaultApproval"):
        if isinstance(incoming.get(key), bool):
            settings[key] = incoming[key]
    if incoming.get("theme") in THEMES:
        settings["theme"] = incoming["theme"]

    if settings["defaultPreset"] not in PRESETS:
        settings["defaultPreset"] = ""
    return settings


def read_json_file(path: Path) -> Dict[str, Any]:
    """Read a JSON object, returning {} when the file is missing or not an object."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return {}
    return data if isinstance(data, dict) else {}


def write_json_file_atomic(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, ensure_ascii=False)
    tmp_path.replace(path)


class SettingsStore:
    """Settings for every user, kept in one JSON document keyed by username."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def get(self, username: str) -> Dict[str, Any]:
        with self._lock:
            stored = read_json_file(self._path)
        return sanitize_settings(stored.get(username) or {})

    def save(self, username: str, incoming: Any) -> Dict[str, Any]:
        settings = sanitize_settings(incoming)
        with self._lock:
            stored = read_json_file(self._path)
            stored[username] = settings
            write_json_file_atomic(self._path, stored)
        logger.info(f"Saved settings for {username}")
        return settings
