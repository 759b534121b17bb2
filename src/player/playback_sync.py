# src/player/playback_sync.py
from __future__ import annotations

import logging
from typing import Any, Optional

from PySide6.QtCore import QObject, Signal

from core.config import SyncConfig
from core.models import EMPTY, PlayerState, RawSnapshot, TrackSnapshot, snapshot_from_raw
from core.scheduling import QtScheduler, TimerHandle
from .interpolator import PositionInterpolator
from .media_service import (
    MediaCommand,
    MediaQueryService,
    MediaServiceError,
    PlayPause,
    QueryError,
    SeekTo,
    TargetNotRunning,
)
from .query_worker import QueryRunner

logger = logging.getLogger(__name__)


class PlaybackSyncCore(QObject):
    """
    Mirrors the external player's state into one published TrackSnapshot.

    Polls the service on a fixed cadence, accepts ground truth when something
    visible changed (or it went stale), and interpolates the position in
    between so the progress bar moves smoothly without querying every frame.
    All state lives on the thread owning this object; only service.query()
    runs elsewhere (through the runner).
    """

    snapshot_changed = Signal(object)      # TrackSnapshot
    availability_changed = Signal(bool)
    track_changed = Signal(object)         # TrackSnapshot, new title/artist only
    playback_started = Signal(object)      # TrackSnapshot

    def __init__(
        self,
        service: MediaQueryService,
        config: Optional[SyncConfig] = None,
        scheduler: Any = None,
        runner: Any = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.service = service
        self.config = config or SyncConfig()

        # Both are swappable so tests can drive time and threading by hand.
        self._scheduler = scheduler or QtScheduler(self)
        self._runner = runner or QueryRunner(self)

        self.snapshot: TrackSnapshot = EMPTY
        self.available: bool = False

        self._interpolator = PositionInterpolator()
        self._last_accepted_at: float | None = None

        self._running = False
        self._generation = 0
        self._poll_handle: TimerHandle | None = None
        self._confirm_handle: TimerHandle | None = None

        # single in-flight guard + at most one queued follow-up
        self._in_flight = False
        self._queued_poll = False
        self._queued_accept = False

    # ----------------------------
    # Lifecycle
    # ----------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._generation += 1
        logger.info("Starting playback sync (poll every %.0f ms)", self.config.poll_interval_s * 1000)

        self._poll_handle = self._scheduler.call_every(self.config.poll_interval_s, self._poll)
        self._poll(queue=True)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        # Results of queries already in flight carry the old generation and get dropped.
        self._generation += 1
        self._queued_poll = False
        self._queued_accept = False

        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        if self._confirm_handle is not None:
            self._confirm_handle.cancel()
            self._confirm_handle = None

        logger.info("Playback sync stopped")

    def shutdown(self) -> None:
        self.stop()
        self.service.close()

    # ----------------------------
    # Commands
    # ----------------------------

    def force_refresh(self) -> None:
        if not self._running:
            logger.debug("force_refresh ignored, sync is stopped")
            return
        self._poll(accept=True, queue=True)

    def toggle_playback(self) -> None:
        # No local flip: the confirmed snapshot decides what is shown.
        self._send(PlayPause())
        self._schedule_confirmation(self.config.toggle_confirm_delay_s)

    def seek(self, position: float) -> None:
        position = max(0.0, float(position))
        if self.snapshot.duration > 0:
            position = min(position, self.snapshot.duration)

        self._send(SeekTo(position))

        self._interpolator.rebase(position, self._scheduler.now())
        if not self.snapshot.is_empty and self.snapshot.duration > 0:
            self._publish(self.snapshot.with_position(position))

        self._schedule_confirmation(self.config.seek_confirm_delay_s)

    def current_position(self) -> float:
        """Interpolated position right now, for consumers that render faster than the poll rate."""
        return self._interpolator.estimate(
            self._scheduler.now(), self.snapshot.duration, self.snapshot.is_playing
        )

    def _send(self, command: MediaCommand) -> None:
        try:
            self.service.send_command(command)
        except MediaServiceError as e:
            # Left to the next refresh to correct whatever we assumed.
            logger.warning("Command %r failed: %s", command, e)

    def _schedule_confirmation(self, delay_s: float) -> None:
        if self._confirm_handle is not None:
            self._confirm_handle.cancel()
        self._confirm_handle = self._scheduler.call_later(delay_s, self._on_confirmation_due)

    def _on_confirmation_due(self) -> None:
        self._confirm_handle = None
        self.force_refresh()

    # ----------------------------
    # Polling
    # ----------------------------

    def _poll(self, *, accept: bool = False, queue: bool = False) -> None:
        """
        accept: take the answer as ground truth even if nothing visible changed.
        queue:  if a query is already out, run one more right after it instead of skipping.
        """
        if not self._running:
            return

        if self._in_flight:
            if queue:
                self._queued_poll = True
                self._queued_accept = self._queued_accept or accept
            return

        self._in_flight = True
        generation = self._generation
        self._runner.submit(
            self.service.query,
            lambda result, error: self._on_query_done(generation, accept, result, error),
        )

    def _on_query_done(self, generation: int, accept: bool, result: Any, error: Any) -> None:
        self._in_flight = False

        if generation == self._generation and self._running:
            self._apply(result, error, accept)
        else:
            logger.debug("Dropping query result from a stopped poll loop")

        if self._queued_poll and self._running:
            queued_accept = self._queued_accept
            self._queued_poll = False
            self._queued_accept = False
            self._poll(accept=queued_accept)

    def _apply(self, raw: Optional[RawSnapshot], error: Optional[BaseException], accept: bool) -> None:
        now = self._scheduler.now()

        if isinstance(error, TargetNotRunning) or (
            error is None and raw is not None and raw.state is PlayerState.NOT_RUNNING
        ):
            self._apply_not_running(now)
            return

        if error is not None or raw is None:
            if error is None or isinstance(error, QueryError):
                logger.debug("Query failed, keeping last snapshot: %s", error)
            else:
                logger.warning(
                    "Unexpected error querying %s", type(self.service).__name__, exc_info=error
                )
            return

        self._set_available(True)

        fresh = snapshot_from_raw(raw)
        current = self.snapshot
        new_track = not fresh.same_identity(current)
        changed = new_track or fresh.is_playing != current.is_playing
        stale = (
            self._last_accepted_at is None
            or now - self._last_accepted_at > self.config.forced_refresh_interval_s
        )

        if changed or stale or accept:
            self._last_accepted_at = now
            self._interpolator.rebase(fresh.position, now)
            self._publish(fresh)

            if new_track:
                logger.info("Track changed: %s - %s", fresh.artist, fresh.title)
                self.track_changed.emit(fresh)
            if fresh.is_playing and not current.is_playing:
                self.playback_started.emit(fresh)
            return

        if fresh.is_playing:
            position = self._interpolator.estimate(now, current.duration, True)
            self._publish(current.with_position(position))

    def _apply_not_running(self, now: float) -> None:
        self._set_available(False)
        self._last_accepted_at = None
        self._interpolator.rebase(0.0, now)
        self._publish(EMPTY)

    # ----------------------------
    # Publication
    # ----------------------------

    def _set_available(self, available: bool) -> None:
        if self.available == available:
            return
        self.available = available
        logger.info("Media app %s", "available" if available else "not running")
        self.availability_changed.emit(available)

    def _publish(self, snapshot: TrackSnapshot) -> None:
        if snapshot == self.snapshot:
            return
        self.snapshot = snapshot
        self.snapshot_changed.emit(snapshot)
