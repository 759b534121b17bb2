# core/scheduling.py
from __future__ import annotations

import time
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer


class TimerHandle:
    """
    Cancellable handle around one QTimer.
    Once cancel() returns, the callback will never run again, even if a
    timeout was already queued on the event loop.
    """

    def __init__(self, timer: QTimer, repeating: bool):
        self._timer: Optional[QTimer] = timer
        self._repeating = repeating
        self._cancelled = False
        self._fired = False

    @property
    def active(self) -> bool:
        if self._cancelled:
            return False
        return self._repeating or not self._fired

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._release()

    def _fire(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            return
        if not self._repeating:
            self._fired = True
            self._release()
        callback()

    def _release(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()
            self._timer = None


class QtScheduler(QObject):
    """
    One-shot and fixed-interval timers that always fire on the thread owning
    this object (the GUI thread in the app).
    """

    def __init__(self, parent: Optional[QObject] = None, clock: Callable[[], float] = time.monotonic):
        super().__init__(parent)
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        return self._schedule(delay_s, callback, repeating=False)

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        return self._schedule(interval_s, callback, repeating=True)

    def _schedule(self, seconds: float, callback: Callable[[], None], *, repeating: bool) -> TimerHandle:
        timer = QTimer(self)
        timer.setSingleShot(not repeating)
        timer.setInterval(max(0, int(round(seconds * 1000))))

        handle = TimerHandle(timer, repeating)
        timer.timeout.connect(lambda: handle._fire(callback))
        timer.start()
        return handle
