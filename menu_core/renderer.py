from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from snarfx import Observable

from menu_core import timeline
from menu_core.composition import MenuSnapshot
from menu_core.menu_items import (
    Activatable,
    Closable,
    FavoriteItem,
    FavoriteTogglable,
    GroupHeaderItem,
    ItemCommands,
    Launchable,
    MenuItem,
    PlaceholderItem,
    SeparatorItem,
    WindowRowItem,
    window_title,
)
from menu_core.ports import PopupSurface

_LOGGER = logging.getLogger("WindowMenu.Core.Renderer")


@dataclass
class RenderedEntry:
    item: MenuItem
    handle: Any
    connections: List[Any] = field(default_factory=list)


@dataclass
class RenderedItemSet:
    """The live items of one render pass."""

    entries: List[RenderedEntry] = field(default_factory=list)
    disposed: bool = False

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def items(self) -> List[MenuItem]:
        return [entry.item for entry in self.entries]

    def favorite_entries(self) -> List[RenderedEntry]:
        return [entry for entry in self.entries if isinstance(entry.item, FavoriteItem)]

    def entry_for_handle(self, handle: Any) -> Optional[RenderedEntry]:
        for entry in self.entries:
            if entry.handle is handle or entry.handle == handle:
                return entry
        return None


def build_items(snapshot: MenuSnapshot) -> List[MenuItem]:
    """Lay the snapshot out as a flat list of items in display order."""
    items: List[MenuItem] = [FavoriteItem(entry=entry) for entry in snapshot.favorites]
    if snapshot.has_favorites_bar and snapshot.has_window_list:
        items.append(SeparatorItem())
    favorite_ids = set(snapshot.favorite_ids)
    for group in snapshot.groups:
        items.append(GroupHeaderItem(group=group, is_favorite=group.app_id in favorite_ids))
        for window in group.sorted_windows():
            items.append(WindowRowItem(window=window, title=window_title(window)))
    if not snapshot.has_window_list:
        items.append(PlaceholderItem(text=snapshot.options.placeholder_text))
    return items


class MenuRenderer:
    """Rebuilds the popup contents from scratch for every snapshot.

    Exactly one rendered item set is live at a time; the previous set is
    disposed before any item of the next one is created.
    """

    def __init__(
        self,
        surface: PopupSurface,
        commands: ItemCommands,
        *,
        selection_cursor: Optional[Observable] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._surface = surface
        self._commands = commands
        self._selection_cursor = selection_cursor
        self._logger = logger or _LOGGER
        self._current: Optional[RenderedItemSet] = None
        self._highlighted: Optional[RenderedEntry] = None
        self.render_count = 0
        self.last_disposed_count = 0

    @property
    def current(self) -> Optional[RenderedItemSet]:
        return self._current

    def render(self, snapshot: MenuSnapshot) -> RenderedItemSet:
        if self._current is not None:
            self.release(self._current)

        rendered = RenderedItemSet()
        self._current = rendered
        for item in build_items(snapshot):
            try:
                handle = self._surface.add_item(item)
            except Exception as exc:
                self._logger.debug("Skipping menu item %r: %s", item, exc)
                continue
            entry = RenderedEntry(item=item, handle=handle)
            rendered.entries.append(entry)
            try:
                self._connect(entry)
            except Exception as exc:
                self._logger.debug("Menu item %r left partly connected: %s", item, exc)
        self.render_count += 1
        self._logger.debug(
            "Rendered menu: items=%d favorites=%d groups=%d disposed=%d",
            len(rendered),
            len(snapshot.favorites),
            len(snapshot.groups),
            self.last_disposed_count,
        )
        if self._selection_cursor is not None:
            self.apply_selection(timeline.read(self._selection_cursor))
        return rendered

    def render_scoped(self, snapshot: MenuSnapshot) -> Tuple[RenderedItemSet, Callable[[], None]]:
        """Render and hand back the set with the callable that releases it."""
        rendered = self.render(snapshot)
        return rendered, lambda: self.release(rendered)

    def release(self, rendered: RenderedItemSet) -> int:
        if rendered.disposed:
            return 0
        rendered.disposed = True
        for entry in rendered.entries:
            for connection in entry.connections:
                try:
                    self._surface.disconnect_item(entry.handle, connection)
                except Exception as exc:
                    self._logger.debug("Ignoring stale item connection: %s", exc)
            entry.connections.clear()
            try:
                self._surface.destroy_item(entry.handle)
            except Exception as exc:
                self._logger.debug("Ignoring stale item handle: %s", exc)
        count = len(rendered.entries)
        if rendered is self._current:
            self._current = None
            self._highlighted = None
        self.last_disposed_count = count
        return count

    def dispose(self) -> None:
        if self._current is not None:
            self.release(self._current)

    def apply_selection(self, cursor: Optional[int]) -> None:
        rendered = self._current
        previous, self._highlighted = self._highlighted, None
        if previous is not None:
            self._set_highlight(previous, False)
        if rendered is None or cursor is None:
            return
        favorites = rendered.favorite_entries()
        if not 0 <= cursor < len(favorites):
            return
        self._highlighted = favorites[cursor]
        self._set_highlight(self._highlighted, True)

    def active_item(self) -> Optional[MenuItem]:
        if self._current is None:
            return None
        try:
            handle = self._surface.active_item()
        except Exception as exc:
            self._logger.debug("No active item: %s", exc)
            return None
        if handle is None:
            return None
        entry = self._current.entry_for_handle(handle)
        return entry.item if entry is not None else None

    def _set_highlight(self, entry: RenderedEntry, highlighted: bool) -> None:
        try:
            self._surface.set_highlighted(entry.handle, highlighted)
        except Exception as exc:
            self._logger.debug("Ignoring highlight on stale item: %s", exc)

    def _connect(self, entry: RenderedEntry) -> None:
        item = entry.item
        commands = self._commands
        bindings: List[Tuple[str, Callable[[], None]]] = []
        if isinstance(item, Launchable):
            bindings.append(("activate", lambda: item.launch(commands)))
        elif isinstance(item, Activatable):
            bindings.append(("activate", lambda: item.activate(commands)))
        if isinstance(item, Closable):
            bindings.append(("close", lambda: item.close(commands)))
        if isinstance(item, FavoriteTogglable):
            bindings.append(("toggle-favorite", lambda: item.toggle_favorite(commands)))
        if isinstance(item, FavoriteItem):
            bindings.append(("hover", lambda: item.hover(commands)))
        for signal, callback in bindings:
            entry.connections.append(self._surface.connect_item(entry.handle, signal, callback))
