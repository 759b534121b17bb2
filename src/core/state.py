from __future__ import annotations
from dataclasses import dataclass, field
from PySide6.QtCore import QObject

from core.config import BackendConfig, SyncConfig, VisibilityConfig


@dataclass(frozen=True)
class AppConfig:
    sync: SyncConfig = field(default_factory=SyncConfig)
    visibility: VisibilityConfig = field(default_factory=VisibilityConfig)
    backend: BackendConfig = field(default_factory=lambda: BackendConfig(name="mpv"))

    @classmethod
    def from_env(cls) -> AppConfig:
        return cls(
            sync=SyncConfig.from_env(),
            visibility=VisibilityConfig.from_env(),
            backend=BackendConfig.from_env(),
        )


class AppState(QObject):
    """Holds the long-lived objects the overlay window talks to."""

    def __init__(self, config: AppConfig | None = None):
        super().__init__()
        self.config = config or AppConfig()
        self.service = None      # MediaQueryService
        self.sync = None         # PlaybackSyncCore
        self.visibility = None   # VisibilityController

    def shutdown(self) -> None:
        if self.visibility is not None:
            self.visibility.shutdown()
        if self.sync is not None:
            self.sync.shutdown()
