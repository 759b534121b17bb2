# ui/overlay_window.py
from __future__ import annotations

from PySide6.QtCore import Qt, QSize, QByteArray
from PySide6.QtGui import QIcon, QPixmap, QPainter
from PySide6.QtWidgets import QWidget, QHBoxLayout, QVBoxLayout, QLabel, QToolButton, QSlider
from PySide6.QtSvg import QSvgRenderer

from core.models import TrackSnapshot
from core.utils import format_time

SLIDER_SCALE = 1000  # slider works in ms, snapshots in seconds


def _svg_icon(path_d: str, size: int = 20, color: str = "#e5e7eb") -> QIcon:
    svg = f"""
    <svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" viewBox="0 0 24 24">
      <path d="{path_d}" fill="{color}"/>
    </svg>
    """.strip()

    renderer = QSvgRenderer(QByteArray(svg.encode("utf-8")))
    pm = QPixmap(size, size)
    pm.fill(Qt.transparent)

    p = QPainter(pm)
    renderer.render(p)
    p.end()

    return QIcon(pm)


SVG_PLAY = "M8 5v14l11-7L8 5z"
SVG_PAUSE = "M6 5h4v14H6V5zm8 0h4v14h-4V5z"


class OverlayWindow(QWidget):
    """
    Small always-on-top card showing what the external player is doing.
    Hover keeps it bright, leaving starts the idle countdown, double-click dismisses it.
    """

    def __init__(self, sync, visibility, parent=None):
        super().__init__(parent)
        self.sync = sync
        self.visibility = visibility

        self._dragging_slider = False

        self.setWindowFlags(Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground)
        self.setFixedSize(380, 100)

        card = QWidget(self)
        card.setObjectName("OverlayCard")
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(card)

        root = QHBoxLayout(card)
        root.setContentsMargins(12, 10, 12, 10)
        root.setSpacing(10)

        # --- play button ---
        self._icons = {
            "play": _svg_icon(SVG_PLAY, 22),
            "pause": _svg_icon(SVG_PAUSE, 22),
        }
        self.btn_play = QToolButton()
        self.btn_play.setObjectName("BtnPlay")
        self.btn_play.setIcon(self._icons["play"])
        self.btn_play.setIconSize(QSize(22, 22))
        self.btn_play.setToolTip("Play/Pause")

        # --- labels ---
        self.lbl_title = QLabel()
        self.lbl_title.setObjectName("Title")
        self.lbl_artist = QLabel()
        self.lbl_time = QLabel("0:00")
        self.lbl_dur = QLabel("0:00")

        # --- slider ---
        self.slider = QSlider(Qt.Orientation.Horizontal)
        self.slider.setRange(0, 0)

        text_col = QVBoxLayout()
        text_col.setSpacing(2)
        text_col.addWidget(self.lbl_title)
        text_col.addWidget(self.lbl_artist)

        time_row = QHBoxLayout()
        time_row.addWidget(self.lbl_time)
        time_row.addWidget(self.slider, 1)
        time_row.addWidget(self.lbl_dur)
        text_col.addLayout(time_row)

        root.addWidget(self.btn_play)
        root.addLayout(text_col, 1)

        # --- signals ---
        self.btn_play.clicked.connect(self._on_play_clicked)
        self.slider.sliderPressed.connect(self._on_slider_pressed)
        self.slider.sliderMoved.connect(self._on_slider_moved)
        self.slider.sliderReleased.connect(self._on_slider_released)

        self.sync.snapshot_changed.connect(self._on_snapshot)
        self.sync.availability_changed.connect(self._on_availability)
        self.sync.track_changed.connect(lambda _t: self.visibility.show_window())
        self.sync.playback_started.connect(lambda _t: self.visibility.show_window())

        self.visibility.opacity_changed.connect(self.setWindowOpacity)
        self.visibility.dismissed_changed.connect(self._on_dismissed)

        self._on_snapshot(self.sync.snapshot)
        self._on_availability(self.sync.available)
        self.setWindowOpacity(self.visibility.opacity)
        self._apply_styles()

    # --- user interaction ---

    def enterEvent(self, event):
        self.visibility.show_window()
        super().enterEvent(event)

    def leaveEvent(self, event):
        self.visibility.reset_hide_timer()
        super().leaveEvent(event)

    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self.visibility.show_window()
            handle = self.windowHandle()
            if handle is not None:
                handle.startSystemMove()
        super().mousePressEvent(event)

    def mouseDoubleClickEvent(self, event):
        self.visibility.dismiss_for_one_minute()
        super().mouseDoubleClickEvent(event)

    def _on_play_clicked(self):
        self.sync.toggle_playback()
        self.visibility.show_window()

    def _on_slider_pressed(self):
        self._dragging_slider = True
        self.visibility.show_window()

    def _on_slider_moved(self, value: int):
        # show preview time while dragging
        self.lbl_time.setText(format_time(value / SLIDER_SCALE))

    def _on_slider_released(self):
        self._dragging_slider = False
        self.sync.seek(self.slider.value() / SLIDER_SCALE)
        self.visibility.show_window()

    # --- sync / visibility updates ---

    def _on_snapshot(self, snapshot: TrackSnapshot):
        self.lbl_title.setText(snapshot.title)
        if snapshot.album:
            self.lbl_artist.setText(f"{snapshot.artist} — {snapshot.album}")
        else:
            self.lbl_artist.setText(snapshot.artist)

        self.btn_play.setIcon(self._icons["pause" if snapshot.is_playing else "play"])
        self.btn_play.setToolTip("Pause" if snapshot.is_playing else "Play")

        self.slider.setRange(0, int(snapshot.duration * SLIDER_SCALE))
        self.lbl_dur.setText(format_time(snapshot.duration))
        if not self._dragging_slider:
            self.slider.setValue(int(snapshot.position * SLIDER_SCALE))
            self.lbl_time.setText(format_time(snapshot.position))

    def _on_availability(self, available: bool):
        self.btn_play.setEnabled(available)
        self.slider.setEnabled(available)
        if not available:
            self.lbl_artist.setText("Player not running")

    def _on_dismissed(self, dismissed: bool):
        if dismissed:
            self.hide()
        else:
            self.show()

    def _apply_styles(self):
        self.setStyleSheet("""
        QWidget#OverlayCard {
            background-color: rgba(2, 6, 23, 230);
            border: 1px solid #111827;
            border-radius: 14px;
        }

        QToolButton#BtnPlay {
            background: #111827;
            border: 1px solid #1f2937;
            border-radius: 999px;
            padding: 8px;
        }
        QToolButton#BtnPlay:hover {
            border-color: #38bdf8;
            background: #020617;
        }

        QSlider::groove:horizontal {
            height: 4px;
            background: #0f172a;
            border-radius: 2px;
        }
        QSlider::handle:horizontal {
            width: 10px;
            height: 10px;
            margin: -3px 0;
            border-radius: 5px;
            background: #38bdf8;
        }
        QSlider::sub-page:horizontal {
            background: #38bdf8;
            border-radius: 2px;
        }

        QLabel {
            color: #9ca3af;
            font-size: 11px;
        }
        QLabel#Title {
            color: #e5e7eb;
            font-size: 13px;
            font-weight: 600;
        }
        """)
