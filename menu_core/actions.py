from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from menu_core import timeline
from menu_core.favorites import FavoriteEntry, FavoritesState
from menu_core.focus_manager import FocusManager
from menu_core.ports import Window, WindowSystemPort
from menu_core.window_model import WindowGroup

_LOGGER = logging.getLogger("WindowMenu.Core.Actions")


class MenuActions:
    """Commands issued by rendered items, the keyboard router and shortcuts.

    Every window-system call tolerates entities that vanished between render
    and activation; such calls become no-ops.
    """

    def __init__(
        self,
        port: WindowSystemPort,
        favorites: FavoritesState,
        focus: FocusManager,
        *,
        options: Any,
        window_groups: Any,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._port = port
        self._favorites = favorites
        self._focus = focus
        self._options = options
        self._window_groups = window_groups
        self._logger = logger or _LOGGER

    # Favorites --------------------------------------------------------

    def select_favorite(self, index: int) -> None:
        self._favorites.select(index)

    def launch_favorite(self, entry: FavoriteEntry) -> None:
        self._favorites.request_launch(entry.app_id)
        if timeline.read(self._options).close_on_favorite_launch:
            self._focus.close()
        else:
            self._focus.reset_menu_state()

    def launch_selected_favorite(self) -> bool:
        entry = self._favorites.selected_favorite()
        if entry is None:
            return False
        self.launch_favorite(entry)
        return True

    def toggle_favorite(self, app_id: str) -> None:
        added = self._favorites.toggle_favorite(app_id)
        self._logger.info("%s favorite %s", "Added" if added else "Removed", app_id)

    def activate_favorite(self, index: int) -> None:
        """Shortcut entry point: raise the favorite's first window, or launch it."""
        visible = self._favorites.visible_favorites()
        if not 0 <= index < len(visible):
            self._logger.debug("No favorite at shortcut index %d", index)
            return
        entry = visible[index]
        for group in timeline.read(self._window_groups):
            if group.app_id == entry.app_id and group.windows:
                self._guarded("activate", self._port.activate_window, group.windows[0].window)
                return
        self._favorites.request_launch(entry.app_id)

    # Window list ------------------------------------------------------

    def activate_window(self, window: Window) -> None:
        self._guarded("activate", self._port.activate_window, window)
        self._after_activate()

    def activate_group(self, group: WindowGroup) -> None:
        windows = group.sorted_windows()
        if windows:
            self._guarded("activate", self._port.activate_window, windows[0])
        self._after_activate()

    def close_window(self, window: Window) -> None:
        self._guarded("close", self._port.close_window, window)
        self._after_close()

    def close_group(self, group: WindowGroup) -> None:
        for entry in group.windows:
            self._guarded("close", self._port.close_window, entry.window)
        self._after_close()

    def _after_activate(self) -> None:
        if timeline.read(self._options).close_on_list_activate:
            self._focus.close()

    def _after_close(self) -> None:
        if timeline.read(self._options).close_on_list_close:
            self._focus.close()
        else:
            self._focus.reset_menu_state()

    def _guarded(self, label: str, fn: Callable[[Any], None], target: Any) -> None:
        try:
            fn(target)
        except Exception as exc:
            self._logger.debug("Ignoring %s on stale window: %s", label, exc)
