from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from PyQt6.QtCore import QFileSystemWatcher, QPoint, QRect, QTimer
from PyQt6.QtGui import QAction, QIcon
from PyQt6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from menu_core import timeline
from menu_core.config import load_menu_options
from menu_core.key_bindings import BindingConfig, KeyBindings
from menu_core.lifecycle import MenuLifecycle
from menu_core.logging_utils import CLIENT_LOGGER_NAME, configure_logging
from menu_client.desktop_apps import DesktopAppIndex
from menu_client.json_settings import JsonSettingsStore, resolve_settings_path
from menu_client.popup_menu import QtPopupSurface
from menu_client.qt_scheduler import QtScheduler
from menu_client.wmctrl_windows import WmctrlWindowSystem

_CLIENT_LOGGER = logging.getLogger(CLIENT_LOGGER_NAME)

DEFAULT_POLL_MS = 750
MAX_FAVORITE_SHORTCUTS = 9


def resolve_keybindings_path(explicit: Optional[str], settings_path: Path) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    return settings_path.parent / "keybindings.json"


def _format_tooltip(apps: Sequence, shown: bool = True) -> str:
    if not shown:
        return "Window menu"
    if not apps:
        return "Window menu: no open windows"
    return "Window menu: " + ", ".join(app.name for app in apps)


def _tray_anchor(geometry: QRect) -> Optional[QPoint]:
    # Some tray hosts report an empty rect; the popup then opens at the cursor.
    if geometry.isEmpty():
        return None
    return geometry.bottomLeft()


def _build_tray_menu(app: QApplication, lifecycle: MenuLifecycle) -> QMenu:
    menu = QMenu()
    toggle_action = QAction("Show windows", menu)
    toggle_action.triggered.connect(lifecycle.toggle_popup)
    menu.addAction(toggle_action)

    favorites_menu = menu.addMenu("Favorites")

    def _populate_favorites() -> None:
        favorites_menu.clear()
        favorite_ids = tuple(timeline.read(lifecycle.favorite_ids))[:MAX_FAVORITE_SHORTCUTS]
        if not favorite_ids:
            empty = favorites_menu.addAction("No favorites")
            empty.setEnabled(False)
            return
        for index, app_id in enumerate(favorite_ids):
            action = favorites_menu.addAction(f"&{index + 1} {app_id}")
            action.triggered.connect(lambda _checked=False, i=index: lifecycle.activate_favorite(i))

    favorites_menu.aboutToShow.connect(_populate_favorites)

    enabled_action = QAction("Enabled", menu)
    enabled_action.setCheckable(True)
    enabled_action.setChecked(lifecycle.enabled)
    enabled_action.toggled.connect(lambda checked: lifecycle.enable() if checked else lifecycle.disable())
    menu.addAction(enabled_action)

    menu.addSeparator()
    quit_action = QAction("Quit", menu)
    quit_action.triggered.connect(app.quit)
    menu.addAction(quit_action)
    return menu


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Window menu tray client")
    parser.add_argument("--settings", help="Path to the settings JSON file")
    parser.add_argument("--keybindings", help="Path to the key bindings JSON file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--poll-ms", type=int, default=DEFAULT_POLL_MS, help="Window list polling interval")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    options = load_menu_options(settings_path)
    log_path = configure_logging(debug=True if args.debug else None, retention=options.log_retention)
    bindings_path = resolve_keybindings_path(args.keybindings, settings_path)
    try:
        bindings = KeyBindings(BindingConfig.load(bindings_path))
    except (OSError, ValueError) as exc:
        _CLIENT_LOGGER.warning("Falling back to default key bindings; %s unusable: %s", bindings_path, exc)
        bindings = KeyBindings()

    _CLIENT_LOGGER.info("Starting window menu (pid=%s)", os.getpid())
    _CLIENT_LOGGER.debug(
        "Resolved paths: settings=%s keybindings=%s log=%s",
        settings_path,
        bindings_path,
        log_path,
    )
    _CLIENT_LOGGER.debug(
        "Loaded options: coalesce_ms=%d reset_guard_ms=%d retention=%d",
        options.coalesce_ms,
        options.reset_guard_ms,
        options.log_retention,
    )

    app = QApplication(sys.argv if argv is None else [sys.argv[0], *argv])
    app.setQuitOnLastWindowClosed(False)
    if not QSystemTrayIcon.isSystemTrayAvailable():
        _CLIENT_LOGGER.warning("No system tray available; the menu can only be opened from its shortcuts")

    windows = WmctrlWindowSystem(DesktopAppIndex())
    windows.poll()
    settings = JsonSettingsStore(settings_path)
    watcher = QFileSystemWatcher([str(settings_path.parent)] if settings_path.parent.exists() else [])
    watcher.directoryChanged.connect(lambda _path: settings.reload())

    scheduler = QtScheduler()
    surface = QtPopupSurface()
    lifecycle = MenuLifecycle(
        windows,
        settings,
        surface,
        scheduler,
        options=options,
        bindings=bindings,
    )

    tray = QSystemTrayIcon(QIcon.fromTheme("preferences-system-windows"))
    tray_menu = _build_tray_menu(app, lifecycle)
    tray.setContextMenu(tray_menu)

    def _on_tray_activated(reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            surface.set_anchor(_tray_anchor(tray.geometry()))
            lifecycle.toggle_popup()

    tray.activated.connect(_on_tray_activated)

    def _refresh_tooltip(_value=None) -> None:
        tray.setToolTip(
            _format_tooltip(timeline.read(lifecycle.running_apps), timeline.read(lifecycle.show_running_apps))
        )

    tooltip_reactions = [
        timeline.observe(lifecycle.running_apps, _refresh_tooltip, fire_immediately=True),
        timeline.observe(lifecycle.show_running_apps, _refresh_tooltip),
    ]

    poll_timer = QTimer()
    poll_timer.setInterval(max(100, args.poll_ms))
    poll_timer.timeout.connect(windows.poll)

    lifecycle.enable()
    poll_timer.start()
    tray.show()
    app.aboutToQuit.connect(lifecycle.disable)

    exit_code = app.exec()
    poll_timer.stop()
    for reaction in tooltip_reactions:
        timeline.dispose(reaction)
    lifecycle.destroy()
    _CLIENT_LOGGER.info("Window menu exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":
    sys.exit(main())
