"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_SETTINGS: dict[str, Any] = {
    "library": {
        "root": "",
        "database": "",
    },
    "import": {
        "copy_mode": True,
        "auto_write_exif": False,
    },
    "exif": {
        "executable": "exiftool",
        "max_concurrency": 4,
        "timeout_seconds": 60,
    },
    "store": {
        "wait_timeout_seconds": 10,
        "import_wait_timeout_seconds": 30,
    },
    "logging": {
        "dir": "",
        "level": "INFO",
    },
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay `override` onto a copy of `base`."""
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access.

    Missing files fall back to `DEFAULT_SETTINGS`; values present in the file
    override the defaults key by key.
    """

    def __init__(self, settings_path: str | Path | None = None) -> None:
        self._path = Path(settings_path) if settings_path else None
        data: dict[str, Any] = {}
        if self._path is not None and self._path.exists():
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"settings file must contain a JSON object: {self._path}")
        elif self._path is not None:
            logger.info("Settings file not found, using defaults: {}", self._path)
        self._data = _merge(DEFAULT_SETTINGS, data)

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            logger.warning("Invalid integer setting {}, using {}", key, default)
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def set(self, key: str, value: Any) -> None:
        """Assign `value` to dotted `key`, creating intermediate objects."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def save(self) -> None:
        """Write the current settings back to the file they were loaded from."""
        if self._path is None:
            raise ValueError("settings were not loaded from a file")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
