from __future__ import annotations

from collections import deque
from typing import Any, Callable

import pytest

from core.models import PlayerState, RawSnapshot
from player.media_service import MediaQueryService


class FakeHandle:
    def __init__(self, scheduler: "ManualScheduler", due: float, callback: Callable[[], None], interval: float | None):
        self.scheduler = scheduler
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self.fired = 0

    @property
    def active(self) -> bool:
        return not self.cancelled and (self.interval is not None or self.fired == 0)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Clock + timers advanced by hand."""

    def __init__(self, start: float = 100.0):
        self.time = start
        self.handles: list[FakeHandle] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self, self.time + delay_s, callback, None)
        self.handles.append(handle)
        return handle

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self, self.time + interval_s, callback, interval_s)
        self.handles.append(handle)
        return handle

    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if h.active]

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [h for h in self.pending() if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.time = max(self.time, handle.due)
            handle.fired += 1
            if handle.interval is not None:
                handle.due += handle.interval
                if handle.due <= self.time:
                    # like QTimer, missed ticks are not replayed
                    handle.due = self.time + handle.interval
            handle.callback()
        self.time = target

    def run_due(self) -> None:
        self.advance(0.0)


class InlineRunner:
    """Runs the query synchronously, as if the worker answered instantly."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn: Callable[[], Any], on_done: Callable[[Any, Any], None]) -> None:
        self.submitted += 1
        try:
            result = fn()
        except Exception as e:
            on_done(None, e)
            return
        on_done(result, None)


class DeferredRunner:
    """Holds queries until the test completes them, to simulate slow IPC."""

    def __init__(self):
        self.queue: deque[tuple[Callable[[], Any], Callable[[Any, Any], None]]] = deque()

    def submit(self, fn, on_done) -> None:
        self.queue.append((fn, on_done))

    def complete_next(self) -> None:
        fn, on_done = self.queue.popleft()
        try:
            result = fn()
        except Exception as e:
            on_done(None, e)
            return
        on_done(result, None)


class ScriptedService(MediaQueryService):
    """Returns whatever the test set as `next`; exceptions are raised."""

    def __init__(self, next_result: Any = None):
        self.next = next_result if next_result is not None else RawSnapshot(state=PlayerState.STOPPED)
        self.commands: list[Any] = []
        self.command_error: Exception | None = None
        self.queries = 0
        self.closed = False

    def query(self) -> RawSnapshot:
        self.queries += 1
        if isinstance(self.next, Exception):
            raise self.next
        return self.next

    def send_command(self, command) -> None:
        self.commands.append(command)
        if self.command_error is not None:
            raise self.command_error

    def close(self) -> None:
        self.closed = True


def raw(title="Song A", artist="X", album="Album", state=PlayerState.PLAYING, position="10", duration="200", artwork=None):
    return RawSnapshot(
        title=title,
        artist=artist,
        album=album,
        artwork_ref=artwork,
        state=state,
        position=position,
        duration=duration,
    )


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def runner():
    return InlineRunner()


@pytest.fixture
def service():
    return ScriptedService()


@pytest.fixture(scope="session", autouse=True)
def qt_core_app():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
