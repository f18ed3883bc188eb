from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from snarfx import Observable

from menu_core import timeline
from menu_core.errors import SubscriptionTeardownError
from menu_core.ports import FAVORITES_KEY, AppRef, SettingsStore, WindowSystemPort
from menu_core.timeline import LaunchRequest

_LOGGER = logging.getLogger("WindowMenu.Core.Favorites")


@dataclass(frozen=True)
class FavoriteEntry:
    """A favorite that resolved to an installed application.

    ``index`` is the entry's position among the visible favorites, which is
    the coordinate space of the selection cursor.
    """

    index: int
    app: AppRef

    @property
    def app_id(self) -> str:
        return self.app.app_id


def resolve_favorites(port: WindowSystemPort, favorite_ids: Iterable[str]) -> Tuple[FavoriteEntry, ...]:
    """Resolve favorite ids to applications, skipping the ones that do not resolve."""
    entries: List[FavoriteEntry] = []
    for app_id in favorite_ids:
        try:
            app = port.lookup_app(app_id)
        except Exception as exc:
            _LOGGER.debug("Favorite lookup failed for %s: %s", app_id, exc)
            app = None
        if app is None:
            continue
        entries.append(FavoriteEntry(index=len(entries), app=app))
    return tuple(entries)


def wrap_cursor(current: int, step: int, count: int) -> int:
    return ((current + step) % count + count) % count


class FavoritesState:
    """Favorites list, selection cursor and launch requests for one popup session.

    The cursor is an index into the visible favorites (``None`` when nothing
    is selected), so duplicate ids in the favorites list stay individually
    selectable.
    """

    def __init__(
        self,
        settings: SettingsStore,
        port: WindowSystemPort,
        *,
        favorite_ids: Optional[Observable] = None,
        selection_cursor: Optional[Observable] = None,
        launch_requested: Optional[Observable] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._port = port
        self._logger = logger or _LOGGER
        self.favorite_ids = favorite_ids if favorite_ids is not None else timeline.create(())
        self.selection_cursor = selection_cursor if selection_cursor is not None else timeline.create(None)
        self.launch_requested = launch_requested if launch_requested is not None else timeline.create(None)
        self._settings_handle: Any = None

    def connect(self) -> None:
        if self._settings_handle is None:
            self._settings_handle = self._settings.on_change(FAVORITES_KEY, self.reload)
        self.reload()

    def disconnect(self) -> None:
        handle, self._settings_handle = self._settings_handle, None
        if handle is None:
            return
        try:
            self._settings.disconnect(handle)
        except SubscriptionTeardownError as exc:
            self._logger.debug("Ignoring settings disconnect failure: %s", exc)

    def reload(self) -> None:
        try:
            ids = tuple(self._settings.get_list(FAVORITES_KEY))
        except Exception as exc:
            self._logger.debug("Could not read favorites: %s", exc)
            ids = ()
        timeline.write(self.favorite_ids, ids)
        self._clamp_cursor()

    # Queries ----------------------------------------------------------

    def visible_favorites(self) -> Tuple[FavoriteEntry, ...]:
        return resolve_favorites(self._port, timeline.read(self.favorite_ids))

    def selected_favorite(self) -> Optional[FavoriteEntry]:
        cursor = timeline.read(self.selection_cursor)
        if cursor is None:
            return None
        visible = self.visible_favorites()
        if not 0 <= cursor < len(visible):
            return None
        return visible[cursor]

    def is_favorite(self, app_id: str) -> bool:
        return app_id in timeline.read(self.favorite_ids)

    # Cursor -----------------------------------------------------------

    def move_selection(self, step: int) -> Optional[int]:
        count = len(self.visible_favorites())
        if count == 0:
            timeline.write(self.selection_cursor, None)
            return None
        current = timeline.read(self.selection_cursor)
        if current is None:
            current = 0 if step >= 0 else count
            step = 0 if step >= 0 else step
        cursor = wrap_cursor(current, step, count)
        timeline.write(self.selection_cursor, cursor)
        return cursor

    def select(self, index: int) -> None:
        count = len(self.visible_favorites())
        if 0 <= index < count:
            timeline.write(self.selection_cursor, index)

    def reset_on_open(self) -> None:
        timeline.write(self.selection_cursor, 0 if self.visible_favorites() else None)

    def reset_on_close(self) -> None:
        timeline.write(self.selection_cursor, None)

    def _clamp_cursor(self) -> None:
        cursor = timeline.read(self.selection_cursor)
        if cursor is None:
            return
        count = len(self.visible_favorites())
        timeline.write(self.selection_cursor, min(cursor, count - 1) if count else None)

    # Commands ---------------------------------------------------------

    def request_launch(self, app_id: str) -> LaunchRequest:
        request = LaunchRequest.next(app_id)
        self._logger.debug("Launch requested for %s", app_id)
        timeline.write(self.launch_requested, request)
        return request

    def toggle_favorite(self, app_id: str) -> bool:
        """Add or remove ``app_id``; returns True when it is now a favorite."""
        ids = list(timeline.read(self.favorite_ids))
        if app_id in ids:
            ids = [existing for existing in ids if existing != app_id]
            added = False
        else:
            ids.append(app_id)
            added = True
        self._settings.set_list(FAVORITES_KEY, ids)
        return added
