"""QMenu-based popup surface for the window menu."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import QPoint, QSize, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QAction, QCursor, QIcon, QKeySequence
from PyQt6.QtWidgets import QHBoxLayout, QLabel, QMenu, QToolButton, QWidget, QWidgetAction

from menu_core.errors import StaleReferenceError
from menu_core.menu_items import FavoriteItem, GroupHeaderItem, PlaceholderItem, SeparatorItem, WindowRowItem

_LOGGER = logging.getLogger("WindowMenu.Client.Popup")

_KEY_NAMES: Dict[int, str] = {
    Qt.Key.Key_Left.value: "Left",
    Qt.Key.Key_Right.value: "Right",
    Qt.Key.Key_Up.value: "Up",
    Qt.Key.Key_Down.value: "Down",
    Qt.Key.Key_Return.value: "Return",
    Qt.Key.Key_Enter.value: "KP_Enter",
    Qt.Key.Key_Space.value: "space",
    Qt.Key.Key_Backspace.value: "BackSpace",
    Qt.Key.Key_Escape.value: "Escape",
    Qt.Key.Key_Tab.value: "Tab",
}


def key_name(key: int) -> str:
    name = _KEY_NAMES.get(int(key))
    if name is not None:
        return name
    return QKeySequence(int(key)).toString()


class _RowWidget(QWidget):
    """Menu row that reports clicks itself so the menu is not auto-closed."""

    activated = pyqtSignal()
    close_requested = pyqtSignal()
    favorite_toggled = pyqtSignal()

    def __init__(self, text: str, icon_name: Optional[str], *, closable: bool, star: Optional[bool] = None, indent: int = 0) -> None:
        super().__init__()
        layout = QHBoxLayout(self)
        layout.setContentsMargins(8 + indent, 2, 4, 2)
        if icon_name:
            icon_label = QLabel(self)
            icon_label.setPixmap(QIcon.fromTheme(icon_name).pixmap(16, 16))
            layout.addWidget(icon_label)
        label = QLabel(text, self)
        label.setTextFormat(Qt.TextFormat.PlainText)
        layout.addWidget(label, 1)
        if star is not None:
            star_button = QToolButton(self)
            star_button.setAutoRaise(True)
            star_button.setText("★" if star else "☆")
            star_button.setToolTip("Remove from favorites" if star else "Add to favorites")
            star_button.clicked.connect(self.favorite_toggled.emit)
            layout.addWidget(star_button)
        if closable:
            close_button = QToolButton(self)
            close_button.setAutoRaise(True)
            close_button.setIcon(QIcon.fromTheme("window-close"))
            close_button.setToolTip("Close")
            close_button.clicked.connect(self.close_requested.emit)
            layout.addWidget(close_button)

    def mouseReleaseEvent(self, event) -> None:  # noqa: N802 - Qt override
        if event.button() == Qt.MouseButton.LeftButton:
            self.activated.emit()
            event.accept()
            return
        super().mouseReleaseEvent(event)


class _FavoriteButton(QToolButton):
    hovered = pyqtSignal()

    def __init__(self, name: str, icon_name: Optional[str], parent: QWidget) -> None:
        super().__init__(parent)
        self.setAutoRaise(True)
        self.setCheckable(True)
        self.setToolTip(name)
        icon = QIcon.fromTheme(icon_name) if icon_name else QIcon()
        if icon.isNull():
            self.setText(name[:2])
        else:
            self.setIcon(icon)
        self.setIconSize(QSize(24, 24))

    def enterEvent(self, event) -> None:  # noqa: N802 - Qt override
        self.hovered.emit()
        super().enterEvent(event)


@dataclass
class _Entry:
    item: Any
    action: Optional[QAction]
    widget: Optional[QWidget]
    callbacks: Dict[int, Tuple[str, Callable[[], None]]] = field(default_factory=dict)


class QtPopupSurface(QMenu):
    """Popup surface: item handles are ints, signals are plain callbacks."""

    def __init__(self, parent: Optional[QWidget] = None, *, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(parent)
        self._logger = logger or _LOGGER
        self._ids = itertools.count(1)
        self._entries: Dict[int, _Entry] = {}
        self._signals: Dict[int, Tuple[str, Callable[..., Any]]] = {}
        self._bar_action: Optional[QWidgetAction] = None
        self._bar_widget: Optional[QWidget] = None
        self._bar_handles: List[int] = []
        self._highlighted: Optional[int] = None
        self._anchor: Optional[QPoint] = None

    # Items ------------------------------------------------------------

    def add_item(self, item: Any) -> int:
        handle = next(self._ids)
        if isinstance(item, FavoriteItem):
            self._entries[handle] = _Entry(item=item, action=None, widget=self._add_favorite_button(handle, item))
        elif isinstance(item, SeparatorItem):
            self._entries[handle] = _Entry(item=item, action=self.addSeparator(), widget=None)
        elif isinstance(item, PlaceholderItem):
            action = self.addAction(item.text)
            action.setEnabled(False)
            self._entries[handle] = _Entry(item=item, action=action, widget=None)
        elif isinstance(item, GroupHeaderItem):
            row = _RowWidget(item.app.name, item.app.icon_name, closable=True, star=item.is_favorite)
            self._entries[handle] = _Entry(item=item, action=self._add_row(row), widget=row)
            self._wire_row(handle, row)
            row.favorite_toggled.connect(lambda: self._emit_item(handle, "toggle-favorite"))
        elif isinstance(item, WindowRowItem):
            row = _RowWidget(item.title, None, closable=True, indent=16)
            self._entries[handle] = _Entry(item=item, action=self._add_row(row), widget=row)
            self._wire_row(handle, row)
        else:
            raise TypeError(f"Unsupported menu item {item!r}")
        return handle

    def destroy_item(self, handle: int) -> None:
        entry = self._entries.pop(handle, None)
        if entry is None:
            raise StaleReferenceError(f"menu item {handle} already destroyed")
        entry.callbacks.clear()
        if self._highlighted == handle:
            self._highlighted = None
        if isinstance(entry.item, FavoriteItem):
            self._remove_favorite_button(handle, entry.widget)
            return
        if entry.action is not None:
            self.removeAction(entry.action)
            entry.action.deleteLater()
        if entry.widget is not None:
            entry.widget.deleteLater()

    def connect_item(self, handle: int, signal: str, callback: Callable[[], None]) -> int:
        entry = self._entries.get(handle)
        if entry is None:
            raise StaleReferenceError(f"menu item {handle} does not exist")
        connection = next(self._ids)
        entry.callbacks[connection] = (signal, callback)
        return connection

    def disconnect_item(self, handle: int, connection: int) -> None:
        entry = self._entries.get(handle)
        if entry is None:
            raise StaleReferenceError(f"menu item {handle} does not exist")
        entry.callbacks.pop(connection, None)

    def set_highlighted(self, handle: int, highlighted: bool) -> None:
        entry = self._entries.get(handle)
        if entry is None:
            raise StaleReferenceError(f"menu item {handle} does not exist")
        if isinstance(entry.widget, QToolButton):
            entry.widget.setChecked(highlighted)
        if highlighted:
            self._highlighted = handle
        elif self._highlighted == handle:
            self._highlighted = None

    def active_item(self) -> Optional[int]:
        action = self.activeAction()
        if action is None:
            return None
        if action is self._bar_action:
            if self._highlighted in self._bar_handles:
                return self._highlighted
            return self._bar_handles[0] if self._bar_handles else None
        for handle, entry in self._entries.items():
            if entry.action is action:
                return handle
        return None

    # Popup state ------------------------------------------------------

    def open(self) -> None:
        if self.isVisible():
            return
        self.popup(self._anchor if self._anchor is not None else QCursor.pos())

    def set_anchor(self, point: Optional[QPoint]) -> None:
        self._anchor = point

    def close(self) -> bool:  # type: ignore[override]
        if self.isVisible():
            self.hide()
        return True

    def is_open(self) -> bool:
        return self.isVisible()

    def grab_key_focus(self) -> None:
        self.activateWindow()
        self.setFocus(Qt.FocusReason.PopupFocusReason)

    def focus_first_item(self) -> None:
        for action in self.actions():
            if action.isEnabled() and not action.isSeparator():
                self.setActiveAction(action)
                return

    def connect(self, signal: str, callback: Callable[..., Any]) -> int:
        connection = next(self._ids)
        self._signals[connection] = (signal, callback)
        return connection

    def disconnect(self, connection: int) -> None:  # type: ignore[override]
        if self._signals.pop(connection, None) is None:
            raise StaleReferenceError(f"popup connection {connection} is not connected")

    # Qt overrides -----------------------------------------------------

    def showEvent(self, event) -> None:  # noqa: N802 - Qt override
        super().showEvent(event)
        self._emit("open-state-changed", True)

    def hideEvent(self, event) -> None:  # noqa: N802 - Qt override
        super().hideEvent(event)
        QTimer.singleShot(0, lambda: self._emit("open-state-changed", False))

    def keyPressEvent(self, event) -> None:  # noqa: N802 - Qt override
        name = key_name(event.key())
        handled = False
        for signal, callback in list(self._signals.values()):
            if signal != "key-press":
                continue
            try:
                handled = bool(callback(name)) or handled
            except Exception:
                self._logger.exception("Key handler failed for %s", name)
        if handled:
            event.accept()
            return
        super().keyPressEvent(event)

    # Internal helpers -------------------------------------------------

    def _emit(self, signal: str, *args: Any) -> None:
        for name, callback in list(self._signals.values()):
            if name == signal:
                callback(*args)

    def _emit_item(self, handle: int, signal: str) -> None:
        entry = self._entries.get(handle)
        if entry is None:
            return
        for name, callback in list(entry.callbacks.values()):
            if name == signal:
                callback()

    def _add_row(self, row: QWidget) -> QWidgetAction:
        action = QWidgetAction(self)
        action.setDefaultWidget(row)
        self.addAction(action)
        return action

    def _wire_row(self, handle: int, row: _RowWidget) -> None:
        row.activated.connect(lambda: self._emit_item(handle, "activate"))
        row.close_requested.connect(lambda: self._emit_item(handle, "close"))

    def _favorites_bar(self) -> QWidget:
        if self._bar_widget is not None:
            return self._bar_widget
        bar = QWidget()
        layout = QHBoxLayout(bar)
        layout.setContentsMargins(8, 4, 8, 4)
        layout.addStretch(1)
        self._bar_widget = bar
        self._bar_action = self._add_row(bar)
        return bar

    def _add_favorite_button(self, handle: int, item: FavoriteItem) -> QToolButton:
        bar = self._favorites_bar()
        button = _FavoriteButton(item.app.name, item.app.icon_name, bar)
        button.clicked.connect(lambda: self._emit_item(handle, "activate"))
        button.hovered.connect(lambda: self._emit_item(handle, "hover"))
        layout = bar.layout()
        layout.insertWidget(layout.count() - 1, button)
        self._bar_handles.append(handle)
        return button

    def _remove_favorite_button(self, handle: int, widget: Optional[QWidget]) -> None:
        if handle in self._bar_handles:
            self._bar_handles.remove(handle)
        if widget is not None:
            widget.deleteLater()
        if not self._bar_handles and self._bar_action is not None:
            self.removeAction(self._bar_action)
            self._bar_action.deleteLater()
            self._bar_action = None
            self._bar_widget = None
