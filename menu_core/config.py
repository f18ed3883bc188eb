"""Configuration helpers for the window menu."""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from menu_core.ports import SettingsStore

CLOSE_ON_FAV_LAUNCH_KEY = "close-on-fav-launch"
CLOSE_ON_LIST_ACTIVATE_KEY = "close-on-list-activate"
CLOSE_ON_LIST_CLOSE_KEY = "close-on-list-close"
SHOW_RUNNING_APPS_KEY = "show-window-icon-list"

OPTION_SETTING_KEYS = (
    CLOSE_ON_FAV_LAUNCH_KEY,
    CLOSE_ON_LIST_ACTIVATE_KEY,
    CLOSE_ON_LIST_CLOSE_KEY,
    SHOW_RUNNING_APPS_KEY,
)

PLACEHOLDER_TEXT = "No open windows"


@dataclass(frozen=True)
class MenuOptions:
    """Behaviour switches read at startup and refreshed from the settings store."""

    close_on_favorite_launch: bool = False
    close_on_list_activate: bool = False
    close_on_list_close: bool = False
    show_running_apps: bool = True
    coalesce_ms: int = 500
    reset_guard_ms: int = 150
    placeholder_text: str = PLACEHOLDER_TEXT
    log_retention: int = 5


def _int(value: Any, fallback: int, minimum: int = 0) -> int:
    if value is None:
        return fallback
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return fallback


def _bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def options_from_payload(data: Dict[str, Any], defaults: Optional[MenuOptions] = None) -> MenuOptions:
    defaults = defaults or MenuOptions()
    placeholder = data.get("placeholder_text")
    if not isinstance(placeholder, str) or not placeholder.strip():
        placeholder = defaults.placeholder_text
    return MenuOptions(
        close_on_favorite_launch=_bool(data.get(CLOSE_ON_FAV_LAUNCH_KEY), defaults.close_on_favorite_launch),
        close_on_list_activate=_bool(data.get(CLOSE_ON_LIST_ACTIVATE_KEY), defaults.close_on_list_activate),
        close_on_list_close=_bool(data.get(CLOSE_ON_LIST_CLOSE_KEY), defaults.close_on_list_close),
        show_running_apps=_bool(data.get(SHOW_RUNNING_APPS_KEY), defaults.show_running_apps),
        coalesce_ms=_int(data.get("coalesce_ms"), defaults.coalesce_ms),
        reset_guard_ms=_int(data.get("reset_guard_ms"), defaults.reset_guard_ms),
        placeholder_text=placeholder,
        log_retention=_int(data.get("log_retention"), defaults.log_retention, minimum=1),
    )


def load_menu_options(settings_path: Path) -> MenuOptions:
    """Read options from a JSON settings file, falling back to defaults."""
    defaults = MenuOptions()
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return defaults

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return defaults
    if not isinstance(data, dict):
        return defaults
    return options_from_payload(data, defaults)


def options_from_settings(store: SettingsStore, base: MenuOptions) -> MenuOptions:
    """Overlay the live boolean switches from the settings store onto ``base``."""
    return replace(
        base,
        close_on_favorite_launch=store.get_bool(CLOSE_ON_FAV_LAUNCH_KEY, base.close_on_favorite_launch),
        close_on_list_activate=store.get_bool(CLOSE_ON_LIST_ACTIVATE_KEY, base.close_on_list_activate),
        close_on_list_close=store.get_bool(CLOSE_ON_LIST_CLOSE_KEY, base.close_on_list_close),
        show_running_apps=store.get_bool(SHOW_RUNNING_APPS_KEY, base.show_running_apps),
    )
