from __future__ import annotations


class PositionInterpolator:
    """
    Keeps the last confirmed position and the time it was confirmed at, and
    advances it with wall-clock time while the track is playing.
    """

    def __init__(self, position: float = 0.0, now: float = 0.0):
        self.base_position = float(position)
        self.base_timestamp = float(now)

    def rebase(self, position: float, now: float) -> None:
        self.base_position = max(0.0, float(position))
        self.base_timestamp = float(now)

    def estimate(self, now: float, duration: float, is_playing: bool) -> float:
        if not is_playing:
            return self.base_position
        elapsed = max(0.0, now - self.base_timestamp)
        return min(self.base_position + elapsed, duration)
