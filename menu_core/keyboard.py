from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from menu_core.actions import MenuActions
from menu_core.favorites import FavoritesState
from menu_core.key_bindings import ACTIVATE, CLOSE, MOVE_LEFT, MOVE_RIGHT, SECONDARY_ACTIVATE, KeyBindings
from menu_core.menu_items import Activatable, Closable, Launchable, MenuItem
from menu_core.ports import PopupSurface
from menu_core.renderer import MenuRenderer

_LOGGER = logging.getLogger("WindowMenu.Core.Keyboard")

KEY_PRESS_SIGNAL = "key-press"


class FocusRegion(enum.Enum):
    FAVORITES_BAR = "favorites_bar"
    WINDOW_LIST = "window_list"


def region_for(item: Optional[MenuItem]) -> Optional[FocusRegion]:
    if item is None:
        return None
    if isinstance(item, Launchable):
        return FocusRegion.FAVORITES_BAR
    if isinstance(item, (Activatable, Closable)):
        return FocusRegion.WINDOW_LIST
    return None


class KeyboardRouter:
    """Maps key presses on the popup to selection, activation and close commands.

    ``handle_key`` returns True when the key was consumed; anything else is
    left to the popup's default navigation.
    """

    def __init__(
        self,
        surface: PopupSurface,
        renderer: MenuRenderer,
        favorites: FavoritesState,
        actions: MenuActions,
        *,
        bindings: Optional[KeyBindings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._surface = surface
        self._renderer = renderer
        self._favorites = favorites
        self._actions = actions
        self._bindings = bindings or KeyBindings()
        self._logger = logger or _LOGGER
        self._connection: Any = None

    @property
    def attached(self) -> bool:
        return self._connection is not None

    def attach(self) -> None:
        if self._connection is None:
            self._connection = self._surface.connect(KEY_PRESS_SIGNAL, self.handle_key)

    def detach(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            self._surface.disconnect(connection)
        except Exception as exc:
            self._logger.debug("Ignoring key handler disconnect failure: %s", exc)

    def handle_key(self, key: str) -> bool:
        action = self._bindings.action_for(key)
        if action is None:
            return False
        item = self._renderer.active_item()
        region = region_for(item)
        if region is FocusRegion.FAVORITES_BAR:
            return self._handle_favorites_bar(action)
        if region is FocusRegion.WINDOW_LIST:
            return self._handle_window_list(action, item)
        return False

    def _handle_favorites_bar(self, action: str) -> bool:
        if action == MOVE_LEFT:
            self._favorites.move_selection(-1)
            return True
        if action == MOVE_RIGHT:
            self._favorites.move_selection(1)
            return True
        if action == ACTIVATE:
            self._actions.launch_selected_favorite()
            return True
        return False

    def _handle_window_list(self, action: str, item: Any) -> bool:
        if action in (ACTIVATE, SECONDARY_ACTIVATE) and isinstance(item, Activatable):
            item.activate(self._actions)
            return True
        if action == CLOSE and isinstance(item, Closable):
            item.close(self._actions)
            return True
        return False
