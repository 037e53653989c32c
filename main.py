
"""
Video Dataset Preparation Tool (PySide6)

Scrub through a video frame by frame and save the frames you want as
sequentially numbered PNGs (image_0001.png, image_0002.png, ...).

Prerequisites:
- Python 3.8+ recommended.
- Install dependencies: `pip install -e .`

Run the application:
- `python main.py [video] [--config PATH] [--log-level LEVEL]`

Controls:
- Space / left click on the video: play or pause
- Left / Right arrow: step one frame back / forward
- S / right click on the video: save the current frame
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from PySide6.QtCore import (
    QEvent,
    QObject,
    QPropertyAnimation,
    QSize,
    Qt,
    QTimer,
)
from PySide6.QtGui import QCloseEvent, QColor, QImage, QPalette, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QFormLayout,
    QGraphicsOpacityEffect,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSizePolicy,
    QSlider,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from input_router import InputRouter
from playback import Frame, OpenFailed, PlaybackCursor
from save_sequencer import NoDirectorySelected, SaveSequencer, WriteFailed
from session_config import SessionConfig, default_config_path, load_config, save_config
from video_source import VideoMetadata

logger = logging.getLogger(__name__)

APP_NAME = "Video Dataset Preparation Tool"

SAVED_MESSAGE_MS = 3000
FLASH_MS = 300
OVERLAY_FADE_IN_MS = 120
OVERLAY_HOLD_MS = 450
OVERLAY_FADE_OUT_MS = 350

CHIP_STYLE = (
    "QLabel {{ background: {color}; color: white; border-radius: 6px; padding: 2px 6px; }}"
)
CHIP_IDLE = CHIP_STYLE.format(color="#4287f5")
CHIP_FLASH = CHIP_STYLE.format(color="#2ecc71")


class VideoDatasetPrepApp(QMainWindow):
    """Main window: video preview, navigation controls and frame saving."""

    def __init__(self, config_path: Path, initial_video: Optional[str] = None) -> None:
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.resize(1200, 800)
        self._apply_dark_theme()

        self.config_path = config_path
        config = load_config(config_path)
        self._last_video_path = config.last_video

        self.playback = PlaybackCursor(parent=self)
        self.sequencer = SaveSequencer(config.save_dir, parent=self)

        self._build_ui()
        self._build_overlay()
        self.router = InputRouter(self.playback, self.save_current_frame, self.preview_label)
        self._connect_signals()

        self._update_controls_enabled(False)
        self._set_next_image_text(self.sequencer.next_index)
        if self._last_video_path:
            self.video_path_label.setText(self._last_video_path)
        if self.sequencer.directory:
            self.save_dir_label.setText(self.sequencer.directory)

        # Keys are handled app-wide so focused buttons never swallow them.
        app = QApplication.instance()
        if app is not None:
            app.installEventFilter(self)
        self.preview_label.installEventFilter(self)

        if initial_video:
            self.load_video(initial_video)
        elif self._last_video_path and os.path.exists(self._last_video_path):
            self.load_video(self._last_video_path)

    def _apply_dark_theme(self) -> None:
        """Set a simple dark palette for a modern look."""
        dark_palette = QPalette()
        dark_palette.setColor(QPalette.Window, QColor(40, 40, 40))
        dark_palette.setColor(QPalette.WindowText, Qt.white)
        dark_palette.setColor(QPalette.Base, QColor(30, 30, 30))
        dark_palette.setColor(QPalette.AlternateBase, QColor(45, 45, 45))
        dark_palette.setColor(QPalette.ToolTipBase, Qt.white)
        dark_palette.setColor(QPalette.ToolTipText, Qt.white)
        dark_palette.setColor(QPalette.Text, Qt.white)
        dark_palette.setColor(QPalette.Button, QColor(60, 60, 60))
        dark_palette.setColor(QPalette.ButtonText, Qt.white)
        dark_palette.setColor(QPalette.Highlight, QColor(90, 120, 200))
        dark_palette.setColor(QPalette.HighlightedText, Qt.black)
        self.setPalette(dark_palette)

    def _build_ui(self) -> None:
        """Construct all widgets and layouts."""
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)

        # Source and destination
        paths_layout = QFormLayout()
        video_row = QHBoxLayout()
        self.video_path_label = QLabel("-")
        self.btn_open = QPushButton("Select Video")
        video_row.addWidget(self.video_path_label, stretch=4)
        video_row.addWidget(self.btn_open)
        dir_row = QHBoxLayout()
        self.save_dir_label = QLabel("-")
        self.btn_choose_dir = QPushButton("Select Save Directory")
        dir_row.addWidget(self.save_dir_label, stretch=4)
        dir_row.addWidget(self.btn_choose_dir)
        paths_layout.addRow("Video", video_row)
        paths_layout.addRow("Save to", dir_row)
        main_layout.addLayout(paths_layout)

        # Preview area
        self.preview_label = QLabel("Open a video to begin.")
        self.preview_label.setAlignment(Qt.AlignCenter)
        self.preview_label.setMinimumSize(QSize(640, 360))
        self.preview_label.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.preview_label.setContextMenuPolicy(Qt.NoContextMenu)
        self.preview_label.setStyleSheet("QLabel { background-color: #222; border: 1px solid #444; }")
        self.preview_label.setToolTip("Left click: Play/Pause | Right click: Save frame")
        main_layout.addWidget(self.preview_label, stretch=2)

        # Timeline
        timeline_layout = QHBoxLayout()
        self.slider = QSlider(Qt.Horizontal)
        self.slider.setMinimum(0)
        self.slider.setMaximum(0)
        self.slider.setSingleStep(1)
        self.frame_info_label = QLabel("Frame: 0 / 0")
        timeline_layout.addWidget(self.slider, stretch=4)
        timeline_layout.addWidget(self.frame_info_label)
        main_layout.addLayout(timeline_layout)

        # Navigation controls
        controls_layout = QHBoxLayout()
        self.btn_prev = QPushButton("Prev Frame")
        self.btn_play = QPushButton("Play")
        self.btn_next = QPushButton("Next Frame")
        self.btn_reload = QPushButton("Reload")
        self.btn_save = QPushButton("Save Frame")
        self.next_image_label = QLabel()
        self.next_image_label.setStyleSheet(CHIP_IDLE)
        controls_layout.addWidget(self.btn_prev)
        controls_layout.addWidget(self.btn_play)
        controls_layout.addWidget(self.btn_next)
        controls_layout.addWidget(self.btn_reload)
        controls_layout.addStretch(1)
        controls_layout.addWidget(self.btn_save)
        controls_layout.addWidget(self.next_image_label)
        main_layout.addLayout(controls_layout)

        # Metadata panel
        metadata_group = QGroupBox("Video Metadata")
        metadata_form = QFormLayout(metadata_group)
        self.meta_resolution_label = QLabel("-")
        self.meta_fps_label = QLabel("-")
        self.meta_framecount_label = QLabel("-")
        self.meta_duration_label = QLabel("-")
        metadata_form.addRow("Resolution", self.meta_resolution_label)
        metadata_form.addRow("FPS", self.meta_fps_label)
        metadata_form.addRow("Total Frames", self.meta_framecount_label)
        metadata_form.addRow("Duration (s)", self.meta_duration_label)
        main_layout.addWidget(metadata_group)

        # Status bar
        self.status = QStatusBar()
        self.setStatusBar(self.status)
        self.status.showMessage("Idle")

        self.flash_timer = QTimer(self)
        self.flash_timer.setSingleShot(True)
        self.flash_timer.timeout.connect(lambda: self.next_image_label.setStyleSheet(CHIP_IDLE))

        self.btn_play.setFocus()

    def _build_overlay(self) -> None:
        """Centered play/pause glyph drawn over the preview."""
        self.overlay_icon = QLabel(self.preview_label)
        self.overlay_icon.setAttribute(Qt.WA_TransparentForMouseEvents)
        self.overlay_icon.setAlignment(Qt.AlignCenter)
        self.overlay_icon.setStyleSheet(
            "QLabel { color: white; font: 700 72px 'Segoe UI', 'Ubuntu', sans-serif;"
            " background: transparent; }"
        )
        self.overlay_effect = QGraphicsOpacityEffect(self.overlay_icon)
        self.overlay_effect.setOpacity(0.0)
        self.overlay_icon.setGraphicsEffect(self.overlay_effect)
        self.overlay_icon.hide()

        self.overlay_fade = QPropertyAnimation(self.overlay_effect, b"opacity", self)
        self.overlay_fade.finished.connect(self._on_overlay_fade_finished)

        self.overlay_hold_timer = QTimer(self)
        self.overlay_hold_timer.setSingleShot(True)
        self.overlay_hold_timer.timeout.connect(self._fade_overlay_out)

    def _connect_signals(self) -> None:
        self.btn_open.clicked.connect(self.open_video)
        self.btn_choose_dir.clicked.connect(self.choose_save_dir)
        self.btn_play.clicked.connect(self.playback.toggle)
        self.btn_reload.clicked.connect(self.playback.restart)
        self.btn_prev.clicked.connect(lambda: self.playback.pause_and_step(-1))
        self.btn_next.clicked.connect(lambda: self.playback.pause_and_step(+1))
        self.btn_save.clicked.connect(self.save_current_frame)

        self.slider.sliderPressed.connect(self.playback.begin_scrub)
        self.slider.sliderMoved.connect(self.playback.scrub_to)
        self.slider.sliderReleased.connect(self.slider_released)
        self.slider.valueChanged.connect(self.slider_value_changed)

        self.playback.video_opened.connect(self._on_video_opened)
        self.playback.frame_changed.connect(self._on_frame_changed)
        self.playback.position_changed.connect(self._on_position_changed)
        self.playback.info_changed.connect(self._on_info_changed)
        self.playback.play_state_changed.connect(self._on_play_state_changed)

        self.sequencer.next_index_changed.connect(self._set_next_image_text)
        self.sequencer.frame_saved.connect(self._on_frame_saved)

    # ----------------------------------------------------------------------
    # Video loading and navigation
    # ----------------------------------------------------------------------
    def open_video(self) -> None:
        """Open a video file via dialog."""
        start_dir = (
            str(Path(self._last_video_path).parent) if self._last_video_path else str(Path.home())
        )
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Select Video",
            start_dir,
            "Videos (*.mp4 *.avi *.mkv *.mov *.m4v *.webm);;All Files (*)",
        )
        if not file_path:
            return
        self.load_video(file_path)

    def load_video(self, path: str) -> None:
        """Open ``path`` in the cursor and remember it for the next session."""
        try:
            self.playback.open(path)
        except OpenFailed as exc:
            self._update_controls_enabled(False)
            self.video_path_label.setText("-")
            self.preview_label.clear()
            self.preview_label.setText("Open a video to begin.")
            for label in (
                self.meta_resolution_label,
                self.meta_fps_label,
                self.meta_framecount_label,
                self.meta_duration_label,
            ):
                label.setText("-")
            QMessageBox.warning(self, "Error", str(exc))
            return

        self._last_video_path = path
        self.video_path_label.setText(path)
        self._update_controls_enabled(True)
        self.status.showMessage("Video loaded.")
        self.persist_config()

    def slider_released(self) -> None:
        """Seek to the frame the slider was released at."""
        self.playback.end_scrub(self.slider.value())

    def slider_value_changed(self, value: int) -> None:
        """Follow clicks on the groove and keyboard paging, not drags."""
        if self.slider.isSliderDown() or value == self.playback.current_index:
            return
        self.playback.seek_to(value)

    def _on_video_opened(self, metadata: VideoMetadata) -> None:
        last = max(0, metadata.frame_count - 1)
        blocked = self.slider.blockSignals(True)
        self.slider.setMaximum(last)
        self.slider.setValue(0)
        self.slider.blockSignals(blocked)
        self.slider.setPageStep(max(1, metadata.frame_count // 20))
        self.update_metadata_display(metadata)

    def update_metadata_display(self, metadata: VideoMetadata) -> None:
        """Display video metadata in the panel."""
        self.meta_resolution_label.setText(f"{metadata.width} x {metadata.height}")
        self.meta_fps_label.setText(f"{metadata.fps:.2f}")
        self.meta_framecount_label.setText(str(metadata.frame_count))
        self.meta_duration_label.setText(f"{metadata.duration_sec:.2f}")

    def _on_frame_changed(self, frame: Frame) -> None:
        self._display_frame(frame.image)

    def _on_position_changed(self, index: int) -> None:
        # Programmatic moves must not loop back into a seek.
        blocked = self.slider.blockSignals(True)
        self.slider.setValue(index)
        self.slider.blockSignals(blocked)

    def _on_info_changed(self, index: int, frame_count: int) -> None:
        self.frame_info_label.setText(f"Frame: {index} / {frame_count}")

    def _on_play_state_changed(self, playing: bool) -> None:
        self.btn_play.setText("Pause" if playing else "Play")
        self.status.showMessage("Playing" if playing else "Paused")
        self.show_overlay_glyph("▶" if playing else "⏸")

    def _display_frame(self, frame: np.ndarray) -> None:
        """Render the frame into the preview label."""
        if frame.ndim == 2:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
        elif frame.shape[2] == 4:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2RGB)
        else:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        height, width, channels = rgb_frame.shape
        bytes_per_line = channels * width
        qimage = QImage(rgb_frame.data, width, height, bytes_per_line, QImage.Format_RGB888)
        pixmap = QPixmap.fromImage(qimage)
        scaled = pixmap.scaled(self.preview_label.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation)
        self.preview_label.setPixmap(scaled)

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        """Ensure the preview and overlay follow the window size."""
        super().resizeEvent(event)
        self._center_overlay()
        frame = self.playback.current_frame
        if frame is not None:
            self._display_frame(frame.image)

    # ----------------------------------------------------------------------
    # Saving
    # ----------------------------------------------------------------------
    def choose_save_dir(self) -> None:
        """Select the directory exported frames are written to."""
        directory = QFileDialog.getExistingDirectory(
            self,
            "Select Save Directory",
            self.sequencer.directory or str(Path.home()),
        )
        if directory:
            self.set_save_dir(directory)

    def set_save_dir(self, directory: str) -> None:
        """Point the sequencer at ``directory`` and remember it."""
        self.sequencer.set_directory(directory)
        self.save_dir_label.setText(directory)
        self.persist_config()

    def save_current_frame(self) -> None:
        """Write the displayed frame as the next numbered image."""
        frame = self.playback.current_frame
        if frame is None:
            return
        try:
            self.sequencer.save(frame.image)
        except NoDirectorySelected as exc:
            QMessageBox.information(self, "Save directory required", str(exc))
            return
        except WriteFailed as exc:
            logger.warning("%s", exc)
            QMessageBox.warning(self, "Save failed", f"Could not save image.\n{exc}")
            return
        self.persist_config()

    def _on_frame_saved(self, filename: str) -> None:
        self.flash_next_image_label()
        self.status.showMessage(f"Saved: {filename}", SAVED_MESSAGE_MS)

    def _set_next_image_text(self, index: int) -> None:
        self.next_image_label.setText(f"Next image: {self.sequencer.next_filename}")
        self.next_image_label.setToolTip(f"Next index: {index}")

    # ----------------------------------------------------------------------
    # Visual feedback
    # ----------------------------------------------------------------------
    def flash_next_image_label(self) -> None:
        """Briefly turn the next-image chip green."""
        self.next_image_label.setStyleSheet(CHIP_FLASH)
        self.flash_timer.start(FLASH_MS)

    def show_overlay_glyph(self, glyph: str) -> None:
        """Fade a large glyph in over the preview, hold it, then fade it out."""
        self.overlay_icon.setText(glyph)
        self._center_overlay()
        self.overlay_icon.show()

        self.overlay_fade.stop()
        self.overlay_fade.setDuration(OVERLAY_FADE_IN_MS)
        self.overlay_fade.setStartValue(0.0)
        self.overlay_fade.setEndValue(1.0)
        self.overlay_fade.start()
        self.overlay_hold_timer.start(OVERLAY_HOLD_MS)

    def _fade_overlay_out(self) -> None:
        self.overlay_fade.stop()
        self.overlay_fade.setDuration(OVERLAY_FADE_OUT_MS)
        self.overlay_fade.setStartValue(1.0)
        self.overlay_fade.setEndValue(0.0)
        self.overlay_fade.start()

    def _on_overlay_fade_finished(self) -> None:
        if self.overlay_effect.opacity() == 0.0:
            self.overlay_icon.hide()

    def _center_overlay(self) -> None:
        self.overlay_icon.adjustSize()
        size = self.overlay_icon.size()
        parent_size = self.preview_label.size()
        self.overlay_icon.move(
            (parent_size.width() - size.width()) // 2,
            (parent_size.height() - size.height()) // 2,
        )

    # ----------------------------------------------------------------------
    # Input and lifecycle
    # ----------------------------------------------------------------------
    def eventFilter(self, obj: QObject, event: QEvent) -> bool:  # type: ignore[override]
        """Route mouse clicks on the preview and keys anywhere in this window."""
        if event.type() == QEvent.MouseButtonPress and obj is self.preview_label:
            if self.router.on_click(event.button(), obj):
                return True
        if event.type() == QEvent.KeyPress and self._owns_key_input():
            if self.router.on_key(event.key()):
                return True
        return super().eventFilter(obj, event)

    def _owns_key_input(self) -> bool:
        """Keys are only routed while this window, not a dialog, is active."""
        return QApplication.activeWindow() is self

    def persist_config(self) -> None:
        """Write the session config; failures are logged, never fatal."""
        config = SessionConfig(
            last_video=self._last_video_path,
            save_dir=self.sequencer.directory,
            next_image=self.sequencer.next_index,
        )
        try:
            save_config(self.config_path, config)
        except OSError as exc:
            logger.warning("Could not write config %s: %s", self.config_path, exc)

    def _update_controls_enabled(self, enabled: bool) -> None:
        """Enable/disable navigation controls depending on whether a video is open."""
        controls = [
            self.btn_prev,
            self.btn_next,
            self.btn_play,
            self.btn_reload,
            self.btn_save,
            self.slider,
        ]
        for widget in controls:
            widget.setEnabled(enabled)
        # Always allow choosing inputs so the app is usable when nothing is loaded.
        self.btn_open.setEnabled(True)
        self.btn_choose_dir.setEnabled(True)

    def closeEvent(self, event: QCloseEvent) -> None:  # type: ignore[override]
        """Stop playback, release the video and remember the session."""
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self)
        self.playback.close()
        self.persist_config()
        super().closeEvent(event)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=APP_NAME)
    parser.add_argument("video", nargs="?", help="Video to open at startup")
    parser.add_argument("--config", type=Path, default=None, help="Config file to use")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Entry point to launch the application."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = QApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)
    config_path = args.config or default_config_path()
    logger.info("Using config %s", config_path)

    window = VideoDatasetPrepApp(config_path, initial_video=args.video)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
