from __future__ import annotations

import itertools
import logging
import subprocess
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from menu_core.errors import StaleReferenceError
from menu_core.ports import ATTR_POSITION, ATTR_TITLE
from menu_client.desktop_apps import DesktopApp, DesktopAppIndex

_LOGGER = logging.getLogger("WindowMenu.Client.Windows")

SKIP_TASKBAR_STATE = "_NET_WM_STATE_SKIP_TASKBAR"

Runner = Callable[[Sequence[str]], subprocess.CompletedProcess]


def _run(args: Sequence[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        list(args),
        check=False,
        capture_output=True,
        text=True,
        timeout=1.0,
    )


class WmctrlWindow:
    """A window listed by ``wmctrl``; attribute reads fail once it is gone."""

    def __init__(self, window_id: int, *, title: str, frame_top: int, wm_class: str, skip_taskbar: bool) -> None:
        self._window_id = window_id
        self._title = title
        self._frame_top = frame_top
        self._wm_class = wm_class
        self._skip_taskbar = skip_taskbar
        self.gone = False

    def _check(self) -> None:
        if self.gone:
            raise StaleReferenceError(f"window 0x{self._window_id:08x} no longer exists")

    @property
    def stable_id(self) -> int:
        self._check()
        return self._window_id

    @property
    def hex_id(self) -> str:
        return f"0x{self._window_id:08x}"

    @property
    def title(self) -> str:
        self._check()
        return self._title

    @property
    def frame_top(self) -> int:
        self._check()
        return self._frame_top

    @property
    def skip_taskbar(self) -> bool:
        self._check()
        return self._skip_taskbar

    @property
    def wm_class(self) -> str:
        self._check()
        return self._wm_class

    def __repr__(self) -> str:
        return f"WmctrlWindow({self.hex_id}, {self._wm_class!r})"


def parse_wmctrl_listing(output: str) -> List[Tuple[int, int, str, str]]:
    """Parse ``wmctrl -lGx`` output into ``(id, y, wm_class, title)`` rows."""
    rows: List[Tuple[int, int, str, str]] = []
    for line in output.splitlines():
        fields = line.split(None, 8)
        if len(fields) < 8:
            continue
        if len(fields) == 8:
            fields.append("")
        win_id_hex, desktop, _x, y, _w, _h, wm_class, _host, title = fields
        try:
            win_id = int(win_id_hex, 16)
            y_val = int(y)
            int(desktop)
        except ValueError:
            continue
        rows.append((win_id, y_val, wm_class, title.strip()))
    return rows


class WmctrlWindowSystem:
    """Window system port for X11 desktops driven by ``wmctrl`` polling.

    ``poll`` diffs the current window list against the previous one and fires
    set-changed and per-window title/position callbacks. The launcher calls it
    from a QTimer.
    """

    def __init__(
        self,
        apps: Optional[DesktopAppIndex] = None,
        *,
        runner: Runner = _run,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._apps = apps or DesktopAppIndex()
        self._runner = runner
        self._logger = logger or _LOGGER
        self._windows: Dict[int, WmctrlWindow] = {}
        self._attribute_handles: Dict[int, Tuple[WmctrlWindow, Callable[[str], None]]] = {}
        self._set_handles: Dict[int, Callable[[], None]] = {}
        self._skip_cache: Dict[int, bool] = {}
        self._ids = itertools.count(1)
        self._wmctrl_missing = False
        self._xprop_missing = False

    @property
    def available(self) -> bool:
        return not self._wmctrl_missing

    # Polling ----------------------------------------------------------

    def poll(self) -> bool:
        """Refresh the window list; returns True when the set of windows changed."""
        rows = self._list_rows()
        if rows is None:
            return False
        seen: Dict[int, Tuple[int, str, str]] = {win_id: (y, wm_class, title) for win_id, y, wm_class, title in rows}
        set_changed = False
        attribute_events: List[Tuple[WmctrlWindow, str]] = []

        for win_id in list(self._windows):
            if win_id not in seen:
                window = self._windows.pop(win_id)
                window.gone = True
                self._skip_cache.pop(win_id, None)
                self._drop_handles_for(window)
                set_changed = True

        for win_id, (y, wm_class, title) in seen.items():
            window = self._windows.get(win_id)
            if window is None:
                self._windows[win_id] = WmctrlWindow(
                    win_id,
                    title=title,
                    frame_top=y,
                    wm_class=wm_class,
                    skip_taskbar=self._skip_taskbar(win_id),
                )
                set_changed = True
                continue
            if window._title != title:
                window._title = title
                attribute_events.append((window, ATTR_TITLE))
            if window._frame_top != y:
                window._frame_top = y
                attribute_events.append((window, ATTR_POSITION))

        if set_changed:
            self._logger.debug("Window set changed: %d windows", len(self._windows))
            for callback in list(self._set_handles.values()):
                callback()
        for window, attribute in attribute_events:
            if window.gone:
                continue
            for target, callback in list(self._attribute_handles.values()):
                if target is window:
                    callback(attribute)
        return set_changed

    def _list_rows(self) -> Optional[List[Tuple[int, int, str, str]]]:
        if self._wmctrl_missing:
            return None
        try:
            result = self._runner(["wmctrl", "-lGx"])
        except FileNotFoundError:
            self._wmctrl_missing = True
            self._logger.warning("wmctrl binary not found; window list will stay empty")
            return None
        except subprocess.SubprocessError as exc:
            self._logger.debug("wmctrl invocation failed: %s", exc)
            return None
        if result.returncode != 0:
            self._logger.debug("wmctrl returned non-zero status: %s", result.returncode)
            return None
        return parse_wmctrl_listing(result.stdout)

    def _skip_taskbar(self, win_id: int) -> bool:
        cached = self._skip_cache.get(win_id)
        if cached is not None:
            return cached
        value = False
        if not self._xprop_missing:
            try:
                result = self._runner(["xprop", "-id", f"0x{win_id:08x}", "_NET_WM_STATE"])
            except FileNotFoundError:
                self._xprop_missing = True
                self._logger.info("xprop not found; skip-taskbar windows will be listed")
                result = None
            except subprocess.SubprocessError:
                result = None
            if result is not None and result.returncode == 0:
                value = SKIP_TASKBAR_STATE in (result.stdout or "")
        self._skip_cache[win_id] = value
        return value

    def _drop_handles_for(self, window: WmctrlWindow) -> None:
        for handle in [h for h, (target, _cb) in self._attribute_handles.items() if target is window]:
            del self._attribute_handles[handle]

    # Port -------------------------------------------------------------

    def list_windows(self) -> List[WmctrlWindow]:
        return list(self._windows.values())

    def window_owner_app(self, window: WmctrlWindow) -> Optional[DesktopApp]:
        return self._apps.app_for_wm_class(window.wm_class)

    def lookup_app(self, app_id: str) -> Optional[DesktopApp]:
        return self._apps.lookup(app_id)

    def on_window_attribute_changed(self, window: WmctrlWindow, callback: Callable[[str], None]) -> int:
        window._check()
        handle = next(self._ids)
        self._attribute_handles[handle] = (window, callback)
        return handle

    def on_window_set_changed(self, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        self._set_handles[handle] = callback
        return handle

    def disconnect(self, handle: int) -> None:
        if self._attribute_handles.pop(handle, None) is not None:
            return
        if self._set_handles.pop(handle, None) is not None:
            return
        raise StaleReferenceError(f"signal handle {handle} is not connected")

    def activate_window(self, window: WmctrlWindow) -> None:
        self._window_command("-ia", window)

    def close_window(self, window: WmctrlWindow) -> None:
        self._window_command("-ic", window)

    def launch_app(self, app_id: str) -> None:
        self._apps.launch(app_id)

    def _window_command(self, flag: str, window: WmctrlWindow) -> None:
        window._check()
        if self._wmctrl_missing:
            return
        try:
            result = self._runner(["wmctrl", flag, window.hex_id])
        except FileNotFoundError:
            self._wmctrl_missing = True
            self._logger.warning("wmctrl binary not found; window commands disabled")
            return
        except subprocess.SubprocessError as exc:
            self._logger.debug("wmctrl %s %s failed: %s", flag, window.hex_id, exc)
            return
        if result.returncode != 0:
            raise StaleReferenceError(f"wmctrl {flag} failed for {window.hex_id}")
