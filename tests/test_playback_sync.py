import pytest

from conftest import DeferredRunner, raw
from core.config import SyncConfig
from core.models import EMPTY, PlayerState
from player.media_service import CommandError, PlayPause, QueryError, SeekTo, TargetNotRunning
from player.playback_sync import PlaybackSyncCore


class Recorder:
    def __init__(self, sync: PlaybackSyncCore):
        self.snapshots = []
        self.availability = []
        self.tracks = []
        self.started = []
        sync.snapshot_changed.connect(lambda s: self.snapshots.append(s))
        sync.availability_changed.connect(lambda a: self.availability.append(a))
        sync.track_changed.connect(lambda t: self.tracks.append(t))
        sync.playback_started.connect(lambda t: self.started.append(t))


@pytest.fixture
def sync(service, scheduler, runner):
    core = PlaybackSyncCore(service, SyncConfig(), scheduler=scheduler, runner=runner)
    yield core
    core.stop()


@pytest.fixture
def rec(sync):
    return Recorder(sync)


def test_start_polls_immediately_and_publishes(sync, rec, service, runner):
    service.next = raw()
    sync.start()

    assert runner.submitted == 1
    assert sync.snapshot.title == "Song A"
    assert sync.snapshot.position == 10.0
    assert sync.available is True
    assert rec.availability == [True]
    assert [t.title for t in rec.tracks] == ["Song A"]
    assert len(rec.started) == 1


def test_start_is_idempotent(sync, service, runner, scheduler):
    service.next = raw()
    sync.start()
    sync.start()

    assert runner.submitted == 1
    assert len([h for h in scheduler.pending() if h.interval is not None]) == 1


def test_estimate_between_queries_then_same_track_is_not_a_track_change(sync, rec, service, scheduler):
    service.next = raw(position="10", duration="200")
    sync.start()

    scheduler.time += 5.0  # no poll ran in between
    assert sync.current_position() == pytest.approx(15.0)

    service.next = raw(position="16", duration="200")
    scheduler.run_due()

    assert sync.snapshot.position == pytest.approx(16.0)
    assert len(rec.tracks) == 1


def test_unchanged_snapshot_inside_refresh_window_only_moves_position(sync, rec, service, scheduler):
    service.next = raw(position="10")
    sync.start()

    service.next = raw(position="16")
    scheduler.advance(0.2)

    assert sync.snapshot.position == pytest.approx(10.2)
    assert sync.snapshot.title == "Song A"
    assert len(rec.tracks) == 1


def test_playing_track_is_interpolated_every_tick(sync, rec, service, scheduler):
    service.next = raw(position="10")
    sync.start()
    published_before = len(rec.snapshots)

    scheduler.advance(1.0)

    assert sync.snapshot.position == pytest.approx(11.0)
    assert len(rec.snapshots) == published_before + 5


def test_interpolation_never_passes_duration(sync, service, scheduler):
    service.next = raw(position="199.5", duration="200")
    sync.start()

    scheduler.advance(1.0)

    assert sync.snapshot.position == 200.0
    assert sync.snapshot.progress == 1.0


def test_paused_unchanged_publishes_nothing(sync, rec, service, scheduler):
    service.next = raw(state=PlayerState.PAUSED, position="42")
    sync.start()
    published = len(rec.snapshots)

    scheduler.advance(5.0)

    assert len(rec.snapshots) == published
    assert sync.snapshot.position == 42.0


def test_ground_truth_is_accepted_after_forced_refresh_interval(sync, service, scheduler):
    service.next = raw(position="10")
    sync.start()

    service.next = raw(position="50")
    scheduler.advance(1.0)
    assert sync.snapshot.position == pytest.approx(11.0)

    scheduler.advance(1.5)
    assert 50.0 <= sync.snapshot.position <= 50.5


def test_not_running_blanks_and_flips_availability(sync, rec, service, scheduler):
    service.next = raw()
    sync.start()

    service.next = TargetNotRunning("gone")
    scheduler.advance(0.2)

    assert sync.snapshot is EMPTY
    assert sync.available is False
    assert rec.availability == [True, False]


def test_not_running_state_tag_is_treated_like_the_error(sync, service, scheduler):
    service.next = raw()
    sync.start()

    service.next = raw(state=PlayerState.NOT_RUNNING)
    scheduler.advance(0.2)

    assert sync.snapshot is EMPTY
    assert sync.available is False


def test_not_running_from_the_start(sync, rec, service):
    service.next = TargetNotRunning("never started")
    sync.start()

    assert sync.snapshot is EMPTY
    assert sync.available is False
    assert rec.availability == []
    assert rec.snapshots == []


def test_app_coming_back_is_a_track_change(sync, rec, service, scheduler):
    service.next = raw()
    sync.start()
    service.next = TargetNotRunning("gone")
    scheduler.advance(0.2)

    service.next = raw()
    scheduler.advance(0.2)

    assert sync.available is True
    assert sync.snapshot.title == "Song A"
    assert len(rec.tracks) == 2


def test_stopped_player_publishes_empty_but_stays_available(sync, service, scheduler):
    service.next = raw()
    sync.start()

    service.next = raw(state=PlayerState.STOPPED)
    scheduler.advance(0.2)

    assert sync.snapshot is EMPTY
    assert sync.available is True


@pytest.mark.parametrize("error", [QueryError("ipc hiccup"), RuntimeError("backend bug")])
def test_transient_failure_keeps_previous_snapshot(sync, rec, service, scheduler, error):
    service.next = raw(state=PlayerState.PAUSED)
    sync.start()
    before = sync.snapshot
    published = len(rec.snapshots)

    service.next = error
    scheduler.advance(0.2)

    assert sync.snapshot is before
    assert sync.available is True
    assert len(rec.snapshots) == published

    # the loop keeps going
    service.next = raw(title="Song B", state=PlayerState.PAUSED)
    scheduler.advance(0.2)
    assert sync.snapshot.title == "Song B"


def test_track_changed_only_on_identity_change(sync, rec, service, scheduler):
    service.next = raw()
    sync.start()

    service.next = raw(state=PlayerState.PAUSED)
    scheduler.advance(0.2)
    assert sync.snapshot.is_playing is False
    assert len(rec.tracks) == 1

    service.next = raw(title="Song B")
    scheduler.advance(0.2)
    assert [t.title for t in rec.tracks] == ["Song A", "Song B"]


def test_playback_started_when_resuming(sync, rec, service, scheduler):
    service.next = raw(state=PlayerState.PAUSED)
    sync.start()
    assert rec.started == []

    service.next = raw(state=PlayerState.PLAYING)
    scheduler.advance(0.2)

    assert len(rec.started) == 1
    assert len(rec.tracks) == 1


def test_toggle_sends_command_and_waits_for_confirmation(sync, service, scheduler):
    service.next = raw()
    sync.start()

    service.next = raw(state=PlayerState.PAUSED)
    sync.toggle_playback()

    assert service.commands == [PlayPause()]
    assert sync.snapshot.is_playing is True

    scheduler.advance(0.1)
    assert sync.snapshot.is_playing is False


def test_failed_command_is_not_raised(sync, service, scheduler):
    service.next = raw()
    sync.start()
    service.command_error = CommandError("nope")

    sync.toggle_playback()
    sync.seek(20)

    queries = service.queries
    scheduler.advance(0.2)
    assert service.queries > queries


def test_seek_rebases_immediately_then_reconciles(sync, service, scheduler):
    service.next = raw(position="10")
    sync.start()

    sync.seek(50)

    assert service.commands == [SeekTo(50.0)]
    assert sync.snapshot.position == 50.0
    assert sync.current_position() == 50.0

    service.next = raw(position="50.3")
    scheduler.advance(0.2)

    assert sync.snapshot.position == pytest.approx(50.3)


def test_seek_is_clamped_to_track(sync, service):
    service.next = raw(position="10", duration="200")
    sync.start()

    sync.seek(500)
    sync.seek(-4)

    assert service.commands == [SeekTo(200.0), SeekTo(0.0)]


def test_seek_while_paused_does_not_drift(sync, service, scheduler):
    service.next = raw(state=PlayerState.PAUSED, position="10")
    sync.start()

    sync.seek(80)
    service.next = raw(state=PlayerState.PAUSED, position="80")
    scheduler.advance(1.0)

    assert sync.snapshot.position == 80.0


def test_stop_halts_polling(sync, service, scheduler):
    service.next = raw()
    sync.start()
    sync.stop()
    sync.stop()
    queries = service.queries

    scheduler.advance(2.0)
    sync.force_refresh()

    assert service.queries == queries
    assert sync.is_running is False


def test_stop_cancels_pending_confirmation(sync, service, scheduler):
    service.next = raw()
    sync.start()
    sync.toggle_playback()
    sync.stop()
    queries = service.queries

    scheduler.advance(1.0)

    assert service.queries == queries


def test_shutdown_closes_service(sync, service):
    sync.start()
    sync.shutdown()
    assert service.closed is True


# --- slow queries ---

@pytest.fixture
def slow():
    return DeferredRunner()


@pytest.fixture
def slow_sync(service, scheduler, slow):
    core = PlaybackSyncCore(service, SyncConfig(), scheduler=scheduler, runner=slow)
    yield core
    core.stop()


def test_ticks_do_not_overlap_an_outstanding_query(slow_sync, slow, service, scheduler):
    service.next = raw()
    slow_sync.start()
    scheduler.advance(0.6)

    assert len(slow.queue) == 1


def test_force_refresh_queues_after_outstanding_query(slow_sync, slow, service):
    service.next = raw()
    slow_sync.start()
    slow_sync.force_refresh()
    slow_sync.force_refresh()
    assert len(slow.queue) == 1

    slow.complete_next()
    assert slow_sync.snapshot.title == "Song A"
    assert len(slow.queue) == 1

    slow.complete_next()
    assert len(slow.queue) == 0


def test_result_arriving_after_stop_is_dropped(slow_sync, slow, service):
    rec = Recorder(slow_sync)
    service.next = raw()
    slow_sync.start()
    slow_sync.stop()

    slow.complete_next()

    assert slow_sync.snapshot is EMPTY
    assert slow_sync.available is False
    assert rec.snapshots == [] and rec.availability == []


def test_restart_while_query_outstanding_polls_after_it(slow_sync, slow, service):
    service.next = raw()
    slow_sync.start()
    slow_sync.stop()
    slow_sync.start()
    assert len(slow.queue) == 1

    slow.complete_next()  # stale, dropped
    assert slow_sync.snapshot is EMPTY
    assert len(slow.queue) == 1

    slow.complete_next()
    assert slow_sync.snapshot.title == "Song A"
