# ui/visibility.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional

from PySide6.QtCore import QObject, Signal

from core.config import VisibilityConfig
from core.scheduling import QtScheduler, TimerHandle

logger = logging.getLogger(__name__)

FULL_OPACITY = 1.0
HIDDEN_OPACITY = 0.0


class OverlayMode(Enum):
    ACTIVE = auto()
    IDLE = auto()
    HIDDEN = auto()
    DISMISSED = auto()


@dataclass
class VisibilityState:
    mode: OverlayMode = OverlayMode.ACTIVE
    opacity: float = FULL_OPACITY
    dismissed: bool = False
    last_interaction: float = 0.0


class VisibilityController(QObject):
    """
    Decides how prominent the overlay is.

    ACTIVE on interaction, IDLE (dimmed) after a quiet period, HIDDEN on
    request, DISMISSED for a fixed time after which it always comes back ACTIVE.
    Only one idle timer and one dismiss timer are ever pending.
    """

    opacity_changed = Signal(float)
    dismissed_changed = Signal(bool)

    def __init__(
        self,
        config: Optional[VisibilityConfig] = None,
        scheduler: Any = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.config = config or VisibilityConfig()
        self._scheduler = scheduler or QtScheduler(self)

        self._state = VisibilityState(last_interaction=self._scheduler.now())
        self._idle_timer: TimerHandle | None = None
        self._dismiss_timer: TimerHandle | None = None

    # --- read-only view for the presentation layer ---

    @property
    def opacity(self) -> float:
        return self._state.opacity

    @property
    def dismissed(self) -> bool:
        return self._state.dismissed

    @property
    def last_interaction(self) -> float:
        return self._state.last_interaction

    @property
    def mode(self) -> OverlayMode:
        return self._state.mode

    # --- transitions ---

    def show_window(self) -> None:
        if self._state.dismissed:
            return
        self._state.mode = OverlayMode.ACTIVE
        self._set_opacity(FULL_OPACITY)
        self.reset_hide_timer()

    def reset_hide_timer(self) -> None:
        if self._state.dismissed:
            return
        self._state.last_interaction = self._scheduler.now()
        self._cancel_idle_timer()
        self._idle_timer = self._scheduler.call_later(self.config.idle_delay_s, self._on_idle_timeout)

    def hide_window(self) -> None:
        self._cancel_idle_timer()
        if not self._state.dismissed:
            self._state.mode = OverlayMode.HIDDEN
        self._set_opacity(HIDDEN_OPACITY)

    def dismiss_for_one_minute(self) -> None:
        self._cancel_idle_timer()
        self._cancel_dismiss_timer()

        self._state.mode = OverlayMode.DISMISSED
        self._set_dismissed(True)
        logger.info("Overlay dismissed for %.0f s", self.config.dismiss_duration_s)
        self._dismiss_timer = self._scheduler.call_later(
            self.config.dismiss_duration_s, self._on_dismiss_timeout
        )

    def shutdown(self) -> None:
        self._cancel_idle_timer()
        self._cancel_dismiss_timer()

    # --- timer callbacks ---

    def _on_idle_timeout(self) -> None:
        self._idle_timer = None
        if self._state.mode is OverlayMode.ACTIVE:
            self._state.mode = OverlayMode.IDLE
            self._set_opacity(self.config.idle_opacity)

    def _on_dismiss_timeout(self) -> None:
        self._dismiss_timer = None
        self._set_dismissed(False)
        self.show_window()

    # --- helpers ---

    def _cancel_idle_timer(self) -> None:
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _cancel_dismiss_timer(self) -> None:
        if self._dismiss_timer is not None:
            self._dismiss_timer.cancel()
            self._dismiss_timer = None

    def _set_opacity(self, opacity: float) -> None:
        if self._state.opacity == opacity:
            return
        self._state.opacity = opacity
        self.opacity_changed.emit(opacity)

    def _set_dismissed(self, dismissed: bool) -> None:
        if self._state.dismissed == dismissed:
            return
        self._state.dismissed = dismissed
        self.dismissed_changed.emit(dismissed)
