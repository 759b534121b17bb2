# core/models.py
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from core.utils import clamp, coerce_seconds

NO_TRACK_TITLE = "No track playing"


class PlayerState(Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    NOT_RUNNING = "not_running"

    @classmethod
    def parse(cls, raw: str | None) -> "PlayerState":
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.STOPPED


@dataclass(frozen=True)
class RawSnapshot:
    """What a media backend reports, before any cleanup."""
    title: str = ""
    artist: str = ""
    album: str = ""
    artwork_ref: str | None = None
    state: PlayerState = PlayerState.STOPPED
    position: str | None = None   # raw seconds, may be missing/garbage
    duration: str | None = None


@dataclass(frozen=True)
class TrackSnapshot:
    title: str
    artist: str
    album: str
    artwork_ref: Optional[str]
    is_playing: bool
    position: float   # seconds
    duration: float   # seconds

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 0.0
        return clamp(self.position / self.duration, 0.0, 1.0)

    @property
    def is_empty(self) -> bool:
        return self == EMPTY

    def same_identity(self, other: TrackSnapshot) -> bool:
        return self.title == other.title and self.artist == other.artist

    def with_position(self, position: float) -> TrackSnapshot:
        position = max(0.0, float(position))
        if self.duration > 0:
            position = min(position, self.duration)
        return replace(self, position=position)


EMPTY = TrackSnapshot(
    title=NO_TRACK_TITLE,
    artist="",
    album="",
    artwork_ref=None,
    is_playing=False,
    position=0.0,
    duration=0.0,
)


def snapshot_from_raw(raw: RawSnapshot) -> TrackSnapshot:
    """
    Build the published snapshot from a backend result.
    Stopped/not-running players map to EMPTY; bad numbers default to 0.
    """
    if raw.state in (PlayerState.STOPPED, PlayerState.NOT_RUNNING):
        return EMPTY

    return TrackSnapshot(
        title=(raw.title or "").strip() or "Unknown Track",
        artist=(raw.artist or "").strip() or "Unknown Artist",
        album=(raw.album or "").strip() or "Unknown Album",
        artwork_ref=(raw.artwork_ref or "").strip() or None,
        is_playing=raw.state is PlayerState.PLAYING,
        position=coerce_seconds(raw.position),
        duration=coerce_seconds(raw.duration),
    )
