"""Item variants rendered into the popup and the capabilities they expose."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Union, runtime_checkable

from menu_core.favorites import FavoriteEntry
from menu_core.ports import AppRef, Window
from menu_core.window_model import WindowGroup

UNTITLED_WINDOW = "..."


class ItemCommands(Protocol):
    def launch_favorite(self, entry: FavoriteEntry) -> None: ...

    def select_favorite(self, index: int) -> None: ...

    def activate_window(self, window: Window) -> None: ...

    def activate_group(self, group: WindowGroup) -> None: ...

    def close_window(self, window: Window) -> None: ...

    def close_group(self, group: WindowGroup) -> None: ...

    def toggle_favorite(self, app_id: str) -> None: ...


@runtime_checkable
class Launchable(Protocol):
    def launch(self, commands: ItemCommands) -> None: ...


@runtime_checkable
class Activatable(Protocol):
    def activate(self, commands: ItemCommands) -> None: ...


@runtime_checkable
class Closable(Protocol):
    def close(self, commands: ItemCommands) -> None: ...


@runtime_checkable
class FavoriteTogglable(Protocol):
    def toggle_favorite(self, commands: ItemCommands) -> None: ...


@dataclass(frozen=True)
class FavoriteItem:
    entry: FavoriteEntry

    @property
    def index(self) -> int:
        return self.entry.index

    @property
    def app(self) -> AppRef:
        return self.entry.app

    def launch(self, commands: ItemCommands) -> None:
        commands.launch_favorite(self.entry)

    def hover(self, commands: ItemCommands) -> None:
        commands.select_favorite(self.entry.index)


@dataclass(frozen=True)
class GroupHeaderItem:
    group: WindowGroup
    is_favorite: bool

    @property
    def app(self) -> AppRef:
        return self.group.app

    def activate(self, commands: ItemCommands) -> None:
        commands.activate_group(self.group)

    def close(self, commands: ItemCommands) -> None:
        commands.close_group(self.group)

    def toggle_favorite(self, commands: ItemCommands) -> None:
        commands.toggle_favorite(self.group.app_id)


@dataclass(frozen=True)
class WindowRowItem:
    window: Window
    title: str

    def activate(self, commands: ItemCommands) -> None:
        commands.activate_window(self.window)

    def close(self, commands: ItemCommands) -> None:
        commands.close_window(self.window)


@dataclass(frozen=True)
class SeparatorItem:
    pass


@dataclass(frozen=True)
class PlaceholderItem:
    text: str


MenuItem = Union[FavoriteItem, GroupHeaderItem, WindowRowItem, SeparatorItem, PlaceholderItem]


def window_title(window: Window) -> str:
    try:
        title: Optional[str] = window.title
    except Exception:
        title = None
    return title or UNTITLED_WINDOW
