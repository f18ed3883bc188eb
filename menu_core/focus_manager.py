from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from menu_core.favorites import FavoritesState
from menu_core.ports import PopupSurface, Scheduler

_LOGGER = logging.getLogger("WindowMenu.Core.Focus")

OPEN_STATE_SIGNAL = "open-state-changed"


class FocusManager:
    """Keeps popup focus and favorites selection in step with the open state."""

    def __init__(
        self,
        surface: PopupSurface,
        favorites: FavoritesState,
        scheduler: Scheduler,
        *,
        reset_guard_ms: Callable[[], int] = lambda: 150,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._surface = surface
        self._favorites = favorites
        self._scheduler = scheduler
        self._reset_guard_ms = reset_guard_ms
        self._logger = logger or _LOGGER
        self._open_connection: Any = None
        self._reopen_connection: Any = None
        self._guard_handle: Any = None
        self.resetting = False

    def attach(self) -> None:
        if self._open_connection is None:
            self._open_connection = self._surface.connect(OPEN_STATE_SIGNAL, self._on_open_state_changed)

    def detach(self) -> None:
        for name in ("_open_connection", "_reopen_connection"):
            connection = getattr(self, name)
            setattr(self, name, None)
            if connection is not None:
                self._disconnect(connection)
        if self._guard_handle is not None:
            handle, self._guard_handle = self._guard_handle, None
            try:
                self._scheduler.after_cancel(handle)
            except Exception as exc:
                self._logger.debug("Ignoring reset guard cancel failure: %s", exc)
        self.resetting = False

    def toggle(self) -> None:
        if self._surface.is_open():
            self._surface.close()
        else:
            self._surface.open()

    def close(self) -> None:
        if self._surface.is_open():
            self._surface.close()

    def reset_menu_state(self) -> None:
        """Close the popup and reopen it with the first item selected."""
        if self.resetting:
            return
        if not self._surface.is_open():
            self._favorites.reset_on_open()
            return
        self.resetting = True
        self._reopen_connection = self._surface.connect(OPEN_STATE_SIGNAL, self._on_reset_closed)
        self._surface.close()

    def _on_open_state_changed(self, is_open: bool) -> None:
        if is_open:
            self._surface.grab_key_focus()
            self._favorites.reset_on_open()
        else:
            self._favorites.reset_on_close()

    def _on_reset_closed(self, is_open: bool) -> None:
        if is_open:
            return
        connection, self._reopen_connection = self._reopen_connection, None
        if connection is not None:
            self._disconnect(connection)
        self._logger.debug("Reopening popup after reset")
        self._surface.open()
        self._surface.focus_first_item()
        self._guard_handle = self._scheduler.after(self._reset_guard_ms(), self._clear_resetting)

    def _clear_resetting(self) -> None:
        self._guard_handle = None
        self.resetting = False

    def _disconnect(self, connection: Any) -> None:
        try:
            self._surface.disconnect(connection)
        except Exception as exc:
            self._logger.debug("Ignoring popup disconnect failure: %s", exc)
