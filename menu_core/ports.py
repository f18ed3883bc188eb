"""Interfaces the menu engine expects from its host environment."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

AttributeCallback = Callable[[str], None]

# Attribute names passed to window attribute callbacks.
ATTR_TITLE = "title"
ATTR_POSITION = "position"

FAVORITES_KEY = "favorite-apps"


@runtime_checkable
class Window(Protocol):
    """A top-level window owned by the window system.

    Attribute reads on a window that has gone away may raise
    ``StaleReferenceError``.
    """

    @property
    def stable_id(self) -> int: ...

    @property
    def title(self) -> Optional[str]: ...

    @property
    def frame_top(self) -> int: ...

    @property
    def skip_taskbar(self) -> bool: ...


class AppRef(Protocol):
    @property
    def app_id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def icon_name(self) -> Optional[str]: ...


class WindowSystemPort(Protocol):
    def list_windows(self) -> Sequence[Window]: ...

    def window_owner_app(self, window: Window) -> Optional[AppRef]: ...

    def lookup_app(self, app_id: str) -> Optional[AppRef]: ...

    def on_window_attribute_changed(self, window: Window, callback: AttributeCallback) -> Any: ...

    def on_window_set_changed(self, callback: Callable[[], None]) -> Any: ...

    def disconnect(self, handle: Any) -> None: ...

    def activate_window(self, window: Window) -> None: ...

    def close_window(self, window: Window) -> None: ...

    def launch_app(self, app_id: str) -> None: ...


class SettingsStore(Protocol):
    def get_list(self, key: str) -> list[str]: ...

    def set_list(self, key: str, value: Sequence[str]) -> None: ...

    def get_bool(self, key: str, default: bool = False) -> bool: ...

    def on_change(self, key: str, callback: Callable[[], None]) -> Any: ...

    def disconnect(self, handle: Any) -> None: ...


class PopupSurface(Protocol):
    """The transient popup that hosts rendered menu items.

    Item signals: ``activate``, ``close``, ``toggle-favorite`` and ``hover``;
    callbacks take no arguments. Surface signals: ``open-state-changed``
    (callback receives the new open state) and ``key-press`` (callback
    receives a key name and returns True when it consumed the key).
    """

    def add_item(self, item: Any) -> Any: ...

    def destroy_item(self, handle: Any) -> None: ...

    def connect_item(self, handle: Any, signal: str, callback: Callable[[], None]) -> Any: ...

    def disconnect_item(self, handle: Any, connection: Any) -> None: ...

    def set_highlighted(self, handle: Any, highlighted: bool) -> None: ...

    def active_item(self) -> Any: ...

    def open(self) -> None: ...

    def close(self) -> None: ...

    def is_open(self) -> bool: ...

    def grab_key_focus(self) -> None: ...

    def focus_first_item(self) -> None: ...

    def connect(self, signal: str, callback: Callable[..., Any]) -> Any: ...

    def disconnect(self, connection: Any) -> None: ...


class Scheduler(Protocol):
    def after(self, delay_ms: int, callback: Callable[[], None]) -> Any: ...

    def after_cancel(self, handle: Any) -> None: ...
