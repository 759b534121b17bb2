from core.scheduling import QtScheduler


def test_call_later_handle_cancel_prevents_callback():
    calls = []
    scheduler = QtScheduler(clock=lambda: 42.0)
    handle = scheduler.call_later(10.0, lambda: calls.append("fired"))
    assert handle.active

    handle.cancel()
    handle.cancel()
    assert not handle.active

    # even a timeout that was already queued must not get through
    handle._fire(lambda: calls.append("fired"))
    assert calls == []


def test_single_shot_fires_once():
    calls = []
    scheduler = QtScheduler()
    handle = scheduler.call_later(10.0, lambda: None)

    handle._fire(lambda: calls.append(1))
    assert calls == [1]
    assert not handle.active


def test_repeating_handle_stays_active_until_cancelled():
    calls = []
    scheduler = QtScheduler()
    handle = scheduler.call_every(0.2, lambda: None)

    handle._fire(lambda: calls.append(1))
    handle._fire(lambda: calls.append(1))
    assert calls == [1, 1]
    assert handle.active

    handle.cancel()
    assert not handle.active


def test_now_uses_injected_clock():
    assert QtScheduler(clock=lambda: 7.5).now() == 7.5
