# src/player/media_service.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from core.models import RawSnapshot


class MediaServiceError(Exception):
    pass


class QueryError(MediaServiceError):
    """Transient failure while asking the media app for its state."""


class TargetNotRunning(QueryError):
    """The media app is not running (or not reachable at all)."""


class CommandError(MediaServiceError):
    pass


@dataclass(frozen=True)
class PlayPause:
    pass


@dataclass(frozen=True)
class SeekTo:
    seconds: float


MediaCommand = Union[PlayPause, SeekTo]


class MediaQueryService(ABC):
    """
    The external media application, seen from the sync core.

    query() may block on IPC for an unpredictable time and is always called
    off the GUI thread. send_command() is called on the GUI thread.
    """

    @abstractmethod
    def query(self) -> RawSnapshot:
        """Returns the current state or raises QueryError / TargetNotRunning."""

    @abstractmethod
    def send_command(self, command: MediaCommand) -> None:
        """Raises CommandError if the app rejects or never receives the command."""

    def close(self) -> None:
        pass
