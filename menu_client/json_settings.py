from __future__ import annotations

import itertools
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from menu_core.errors import SubscriptionTeardownError
from menu_core.ports import FAVORITES_KEY

_LOGGER = logging.getLogger("WindowMenu.Client.Settings")

SETTINGS_ENV = "WINDOW_MENU_SETTINGS"

DEFAULT_SETTINGS: Dict[str, Any] = {
    FAVORITES_KEY: [],
    "close-on-fav-launch": False,
    "close-on-list-activate": False,
    "close-on-list-close": False,
    "show-window-icon-list": True,
}


def resolve_settings_path(explicit: Optional[str] = None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    env_override = os.getenv(SETTINGS_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve()
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "window-menu" / "settings.json"


class JsonSettingsStore:
    """Settings store persisted as one JSON object.

    Writes go through a temporary file and an atomic replace. ``reload`` picks
    up edits made by other processes and notifies the keys whose values moved.
    """

    def __init__(self, path: Path, *, defaults: Optional[Dict[str, Any]] = None, logger: Optional[logging.Logger] = None) -> None:
        self._path = path
        self._defaults = dict(DEFAULT_SETTINGS if defaults is None else defaults)
        self._logger = logger or _LOGGER
        self._values: Dict[str, Any] = self._read()
        self._callbacks: Dict[int, Tuple[str, Callable[[], None]]] = {}
        self._ids = itertools.count(1)

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._values)

    def get_list(self, key: str) -> list[str]:
        value = self._values.get(key, self._defaults.get(key, []))
        if not isinstance(value, list):
            return []
        return [str(item) for item in value]

    def set_list(self, key: str, value: Sequence[str]) -> None:
        self._set(key, [str(item) for item in value])

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key, self._defaults.get(key, default))
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def set_bool(self, key: str, value: bool) -> None:
        self._set(key, bool(value))

    def on_change(self, key: str, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        self._callbacks[handle] = (key, callback)
        return handle

    def disconnect(self, handle: int) -> None:
        if self._callbacks.pop(handle, None) is None:
            raise SubscriptionTeardownError(f"settings handle {handle} is not connected")

    def reload(self) -> None:
        previous = self._values
        self._values = self._read()
        changed = [key for key in set(previous) | set(self._values) if previous.get(key) != self._values.get(key)]
        if changed:
            self._logger.debug("Settings reloaded; changed keys: %s", ", ".join(sorted(changed)))
        for key in sorted(changed):
            self._notify(key)

    def _set(self, key: str, value: Any) -> None:
        if self._values.get(key) == value:
            return
        self._values[key] = value
        self._write()
        self._notify(key)

    def _notify(self, key: str) -> None:
        for registered, callback in list(self._callbacks.values()):
            if registered == key:
                callback()

    def _read(self) -> Dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except (FileNotFoundError, OSError):
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._logger.warning("Ignoring malformed settings file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            self._logger.warning("Failed to write settings %s: %s", self._path, exc)
