import logging
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from core.config import debug_enabled
from core.state import AppConfig, AppState
from player.media_service import MediaQueryService
from player.mpv_ipc import MpvIpcService
from player.playback_sync import PlaybackSyncCore
from player.spotify_applescript import SpotifyAppleScriptService
from ui.overlay_window import OverlayWindow
from ui.visibility import VisibilityController

logger = logging.getLogger("nowplaying")

SCREEN_PADDING = 20


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug_enabled() else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_service(config: AppConfig) -> MediaQueryService:
    if config.backend.name == "spotify":
        return SpotifyAppleScriptService()
    return MpvIpcService(config.backend.mpv_ipc_endpoint)


def init_app_state() -> AppState:
    app_state = AppState(AppConfig.from_env())

    app_state.service = create_service(app_state.config)
    logger.info("Using %s backend", app_state.config.backend.name)

    app_state.sync = PlaybackSyncCore(app_state.service, app_state.config.sync, parent=app_state)
    app_state.visibility = VisibilityController(app_state.config.visibility, parent=app_state)
    return app_state


def place_bottom_right(window: OverlayWindow) -> None:
    screen = QApplication.primaryScreen()
    if screen is None:
        return
    area = screen.availableGeometry()
    window.move(
        area.right() - window.width() - SCREEN_PADDING,
        area.bottom() - window.height() - SCREEN_PADDING,
    )


def main() -> int:
    configure_logging()
    qt_app = QApplication(sys.argv)

    app_state = init_app_state()
    overlay = OverlayWindow(app_state.sync, app_state.visibility)
    place_bottom_right(overlay)
    overlay.show()

    qt_app.aboutToQuit.connect(app_state.shutdown)
    app_state.sync.start()
    app_state.visibility.show_window()

    return qt_app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
