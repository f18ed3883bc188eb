from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from snarfx import Observable

from menu_core import timeline
from menu_core.ports import ATTR_POSITION, AppRef, Scheduler, Window, WindowSystemPort

_LOGGER = logging.getLogger("WindowMenu.Core.WindowModel")

DEFAULT_COALESCE_MS = 500


@dataclass(frozen=True)
class TrackedWindow:
    window: Window
    first_seen: float


@dataclass(frozen=True, eq=False)
class WindowGroup:
    """Windows of one application, in the order they were enumerated.

    Groups are rebuilt on every model update and compare by identity, so a
    fresh rebuild always publishes a new snapshot.
    """

    app: AppRef
    windows: Tuple[TrackedWindow, ...]

    @property
    def app_id(self) -> str:
        return self.app.app_id

    @property
    def earliest_seen(self) -> float:
        return min((entry.first_seen for entry in self.windows), default=0.0)

    def sorted_windows(self) -> List[Window]:
        """Windows ordered top to bottom by their frame's top edge."""
        return [entry.window for entry in sorted(self.windows, key=lambda entry: _frame_top(entry.window))]


def _frame_top(window: Window) -> int:
    try:
        return int(window.frame_top)
    except Exception:
        return 0


@dataclass
class WindowRecord:
    """Arena slot for one tracked window."""

    record_id: int
    window: Window
    app: AppRef
    first_seen: float
    handle: Any = field(default=None)


class WindowModel:
    """Tracks live windows grouped by owning application.

    Subscribes to every tracked window's attribute changes and to the window
    system's set-changed signal. Title changes and set changes rebuild
    immediately; position changes rebuild at most once per coalescing
    interval and changes inside the interval are dropped.
    """

    def __init__(
        self,
        port: WindowSystemPort,
        *,
        scheduler: Scheduler,
        groups: Optional[Observable] = None,
        coalesce_ms: int = DEFAULT_COALESCE_MS,
        time_source: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._port = port
        self._scheduler = scheduler
        self._groups = groups if groups is not None else timeline.create(())
        self._coalesce_ms = max(0, int(coalesce_ms))
        self._time = time_source
        self._logger = logger or _LOGGER

        self._records: Dict[int, WindowRecord] = {}
        self._first_seen: Dict[int, float] = {}
        self._set_handle: Any = None
        self._throttle_handle: Any = None
        self._started = False
        self._destroyed = False
        self.rebuild_count = 0

    @property
    def window_groups(self) -> Observable:
        return self._groups

    @property
    def subscription_count(self) -> int:
        return sum(1 for record in self._records.values() if record.handle is not None)

    @property
    def tracked_window_ids(self) -> List[int]:
        return list(self._records.keys())

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def enumerate(self) -> List[WindowGroup]:
        return list(timeline.read(self._groups))

    def start(self) -> None:
        if self._started or self._destroyed:
            return
        self._started = True
        self._set_handle = self._port.on_window_set_changed(self._on_window_set_changed)
        self.rebuild()

    def rebuild(self) -> None:
        if self._destroyed:
            return
        self._drain_subscriptions()

        now = self._time()
        records: Dict[int, WindowRecord] = {}
        order: List[str] = []
        members: Dict[str, List[TrackedWindow]] = {}
        apps: Dict[str, AppRef] = {}

        for window in self._list_windows():
            try:
                if window.skip_taskbar:
                    continue
                stable_id = int(window.stable_id)
                app = self._port.window_owner_app(window)
            except Exception as exc:
                self._logger.debug("Skipping window that vanished during rebuild: %s", exc)
                continue
            if app is None:
                continue
            first_seen = self._first_seen.get(stable_id)
            if first_seen is None:
                first_seen = now
            records[stable_id] = WindowRecord(record_id=stable_id, window=window, app=app, first_seen=first_seen)
            app_id = app.app_id
            if app_id not in members:
                order.append(app_id)
                members[app_id] = []
                apps[app_id] = app
            members[app_id].append(TrackedWindow(window=window, first_seen=first_seen))

        self._first_seen = {stable_id: record.first_seen for stable_id, record in records.items()}
        self._records = records
        for record in records.values():
            self._subscribe(record)

        groups = tuple(WindowGroup(app=apps[app_id], windows=tuple(members[app_id])) for app_id in order)
        self.rebuild_count += 1
        self._logger.debug(
            "Window model rebuilt: groups=%d windows=%d subscriptions=%d",
            len(groups),
            len(records),
            self.subscription_count,
        )
        timeline.write(self._groups, groups)

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        if self._throttle_handle is not None:
            handle, self._throttle_handle = self._throttle_handle, None
            try:
                self._scheduler.after_cancel(handle)
            except Exception as exc:
                self._logger.debug("Ignoring throttle cancel failure: %s", exc)
        if self._set_handle is not None:
            handle, self._set_handle = self._set_handle, None
            self._disconnect(handle)
        self._drain_subscriptions()
        self._records.clear()
        self._first_seen.clear()
        self._logger.debug("Window model destroyed")

    # Internal helpers -------------------------------------------------

    def _list_windows(self) -> List[Window]:
        try:
            return list(self._port.list_windows())
        except Exception as exc:
            self._logger.debug("Window enumeration failed: %s", exc)
            return []

    def _subscribe(self, record: WindowRecord) -> None:
        try:
            record.handle = self._port.on_window_attribute_changed(
                record.window,
                lambda attribute, record_id=record.record_id: self._on_attribute_changed(record_id, attribute),
            )
        except Exception as exc:
            self._logger.debug("Could not subscribe to window %s: %s", record.record_id, exc)
            record.handle = None

    def _drain_subscriptions(self) -> None:
        for record in self._records.values():
            handle, record.handle = record.handle, None
            if handle is not None:
                self._disconnect(handle)

    def _disconnect(self, handle: Any) -> None:
        try:
            self._port.disconnect(handle)
        except Exception as exc:
            self._logger.debug("Ignoring stale signal handle %r: %s", handle, exc)

    def _on_window_set_changed(self) -> None:
        self.rebuild()

    def _on_attribute_changed(self, record_id: int, attribute: str) -> None:
        if self._destroyed or record_id not in self._records:
            return
        if attribute != ATTR_POSITION:
            self.rebuild()
            return
        if self._throttle_handle is not None:
            return
        self.rebuild()
        if not self._destroyed:
            self._throttle_handle = self._scheduler.after(self._coalesce_ms, self._release_throttle)

    def _release_throttle(self) -> None:
        self._throttle_handle = None
