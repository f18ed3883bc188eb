from __future__ import annotations

import itertools
from typing import Callable, Dict, Optional

from PyQt6.QtCore import QObject, QTimer


class QtScheduler(QObject):
    """after/after_cancel pair backed by single-shot QTimers."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timers: Dict[int, QTimer] = {}
        self._ids = itertools.count(1)

    def after(self, delay_ms: int, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setInterval(max(0, int(delay_ms)))
        timer.timeout.connect(lambda: self._fire(handle, callback))
        self._timers[handle] = timer
        timer.start()
        return handle

    def after_cancel(self, handle: int) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

    def pending(self) -> int:
        return len(self._timers)

    def _fire(self, handle: int, callback: Callable[[], None]) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        callback()
