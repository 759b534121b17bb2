# player/query_worker.py
from __future__ import annotations

import itertools
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Qt, Signal, Slot

QueryCallback = Callable[[Any, Optional[BaseException]], None]


class _QuerySignals(QObject):
    finished = Signal(int, object, object)  # ticket, result | None, error | None


class _QueryTask(QRunnable):
    def __init__(self, ticket: int, fn: Callable[[], Any], signals: _QuerySignals):
        super().__init__()
        self.ticket = ticket
        self.fn = fn
        self.signals = signals

    def run(self):
        # Worker thread: never touch published state here, only hand the outcome back.
        try:
            result = self.fn()
        except Exception as e:
            self.signals.finished.emit(self.ticket, None, e)
            return
        self.signals.finished.emit(self.ticket, result, None)


class QueryRunner(QObject):
    """
    Runs a blocking call on a QThreadPool worker and delivers
    on_done(result, error) back on the thread that owns this runner.
    """

    def __init__(self, parent: Optional[QObject] = None, pool: Optional[QThreadPool] = None):
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._tickets = itertools.count(1)
        self._pending: dict[int, tuple[_QuerySignals, QueryCallback]] = {}

    def submit(self, fn: Callable[[], Any], on_done: QueryCallback) -> None:
        ticket = next(self._tickets)
        signals = _QuerySignals()
        signals.finished.connect(self._on_task_finished, Qt.ConnectionType.QueuedConnection)
        self._pending[ticket] = (signals, on_done)
        self._pool.start(_QueryTask(ticket, fn, signals))

    @Slot(int, object, object)
    def _on_task_finished(self, ticket: int, result: Any, error: Any) -> None:
        entry = self._pending.pop(ticket, None)
        if entry is None:
            return
        signals, on_done = entry
        signals.deleteLater()
        on_done(result, error)
