"""Application lookup backed by XDG .desktop entries."""

from __future__ import annotations

import configparser
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from menu_core.errors import LookupMissError

_LOGGER = logging.getLogger("WindowMenu.Client.Apps")

DESKTOP_SUFFIX = ".desktop"
_FIELD_CODES = {"%f", "%F", "%u", "%U", "%d", "%D", "%n", "%N", "%i", "%c", "%k", "%v", "%m"}


@dataclass(frozen=True)
class DesktopApp:
    app_id: str
    name: str
    icon_name: Optional[str] = None
    wm_class: Optional[str] = None
    exec_line: Optional[str] = None


def default_data_dirs() -> List[Path]:
    data_home = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    data_dirs = os.environ.get("XDG_DATA_DIRS", "/usr/local/share:/usr/share")
    return [data_home] + [Path(entry) for entry in data_dirs.split(":") if entry]


def _normalize_id(app_id: str) -> str:
    return app_id if app_id.endswith(DESKTOP_SUFFIX) else app_id + DESKTOP_SUFFIX


def parse_desktop_file(path: Path, app_id: str) -> Optional[DesktopApp]:
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment]
    try:
        parser.read(path, encoding="utf-8")
    except (configparser.Error, OSError, UnicodeDecodeError) as exc:
        _LOGGER.debug("Skipping unreadable desktop entry %s: %s", path, exc)
        return None
    if not parser.has_section("Desktop Entry"):
        return None
    entry = parser["Desktop Entry"]
    if entry.get("Type", "Application") != "Application":
        return None
    if entry.get("Hidden", "false").lower() == "true":
        return None
    name = entry.get("Name") or Path(app_id).stem
    return DesktopApp(
        app_id=app_id,
        name=name,
        icon_name=entry.get("Icon") or None,
        wm_class=entry.get("StartupWMClass") or None,
        exec_line=entry.get("Exec") or None,
    )


class DesktopAppIndex:
    """Indexes installed applications and maps WM_CLASS values back to them."""

    def __init__(self, data_dirs: Optional[Iterable[Path]] = None, *, logger: Optional[logging.Logger] = None) -> None:
        self._data_dirs = list(data_dirs) if data_dirs is not None else default_data_dirs()
        self._logger = logger or _LOGGER
        self._apps: Dict[str, DesktopApp] = {}
        self._by_wm_class: Dict[str, DesktopApp] = {}
        self._by_stem: Dict[str, DesktopApp] = {}
        self._fallbacks: Dict[str, DesktopApp] = {}
        self._loaded = False

    def refresh(self) -> None:
        apps: Dict[str, DesktopApp] = {}
        for data_dir in self._data_dirs:
            root = data_dir / "applications"
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*" + DESKTOP_SUFFIX)):
                app_id = str(path.relative_to(root)).replace(os.sep, "-")
                if app_id in apps:
                    continue
                app = parse_desktop_file(path, app_id)
                if app is not None:
                    apps[app_id] = app
        self._apps = apps
        self._by_wm_class = {app.wm_class.lower(): app for app in apps.values() if app.wm_class}
        self._by_stem = {}
        for app in apps.values():
            stem = app.app_id[: -len(DESKTOP_SUFFIX)].lower()
            self._by_stem.setdefault(stem, app)
            self._by_stem.setdefault(stem.rsplit(".", 1)[-1], app)
        self._loaded = True
        self._logger.debug("Indexed %d desktop entries from %d data dirs", len(apps), len(self._data_dirs))

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.refresh()

    def lookup(self, app_id: str) -> Optional[DesktopApp]:
        self._ensure_loaded()
        return self._apps.get(_normalize_id(app_id)) or self._fallbacks.get(app_id)

    def app_for_wm_class(self, wm_class: Optional[str]) -> Optional[DesktopApp]:
        """Resolve a ``instance.Class`` pair as reported by ``wmctrl -x``."""
        if not wm_class or wm_class == "N/A":
            return None
        self._ensure_loaded()
        instance, _, klass = wm_class.partition(".")
        candidates = [value for value in (klass, instance) if value]
        for value in candidates:
            app = self._by_wm_class.get(value.lower())
            if app is not None:
                return app
        for value in candidates:
            app = self._by_stem.get(value.lower())
            if app is not None:
                return app
        label = klass or instance
        fallback_id = f"wmclass:{label}"
        app = self._fallbacks.get(fallback_id)
        if app is None:
            app = DesktopApp(app_id=fallback_id, name=label, icon_name=(instance or label).lower(), wm_class=label)
            self._fallbacks[fallback_id] = app
        return app

    def launch_command(self, app_id: str) -> Optional[List[str]]:
        app = self.lookup(app_id)
        if app is None:
            return None
        if app.app_id.endswith(DESKTOP_SUFFIX):
            return ["gtk-launch", app.app_id[: -len(DESKTOP_SUFFIX)]]
        if app.exec_line:
            return [part for part in shlex.split(app.exec_line) if part not in _FIELD_CODES]
        return None

    def launch(self, app_id: str) -> bool:
        if self.lookup(app_id) is None:
            raise LookupMissError(f"no installed application {app_id!r}")
        command = self.launch_command(app_id)
        if not command:
            self._logger.debug("No launch command for %s", app_id)
            return False
        try:
            subprocess.Popen(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except FileNotFoundError:
            self._logger.warning("Launcher %s not found; cannot start %s", command[0], app_id)
            return False
        self._logger.info("Launched %s via %s", app_id, command[0])
        return True
