"""Shared fakes for decoder and timer so the core runs without a GUI."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
import pytest

# Widgets need a platform plugin; tests never open a real display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from playback import PlaybackCursor
from video_source import VideoSource


def make_frames(count: int, width: int = 6, height: int = 4) -> List[np.ndarray]:
    """Frames whose pixel value equals their index, so reads can be identified."""
    return [np.full((height, width, 3), i % 256, dtype=np.uint8) for i in range(count)]


class FakeCapture:
    """Mimics the subset of ``cv2.VideoCapture`` used by ``VideoSource``."""

    def __init__(
        self,
        frames: Optional[List[np.ndarray]] = None,
        fps: float = 25.0,
        keyframe_interval: int = 1,
        openable: bool = True,
    ) -> None:
        self.frames = frames if frames is not None else make_frames(10)
        self.fps = fps
        self.keyframe_interval = keyframe_interval
        self.openable = openable
        self.fail_reads = False
        self.opened_paths: List[str] = []
        self.released = 0
        self._opened = False
        self._pos = 0

    def open(self, path: str) -> bool:
        self.opened_paths.append(path)
        self._opened = self.openable
        self._pos = 0
        return self._opened

    def isOpened(self) -> bool:
        return self._opened

    def get(self, prop: int) -> float:
        if prop == cv2.CAP_PROP_FRAME_COUNT:
            return float(len(self.frames))
        if prop == cv2.CAP_PROP_FPS:
            return float(self.fps)
        if prop == cv2.CAP_PROP_POS_FRAMES:
            return float(self._pos)
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            return float(self.frames[0].shape[1]) if self.frames else 0.0
        if prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(self.frames[0].shape[0]) if self.frames else 0.0
        return 0.0

    def set(self, prop: int, value: float) -> bool:
        if prop == cv2.CAP_PROP_POS_FRAMES:
            # Land on the preceding keyframe, like an imprecise codec seek.
            index = int(value)
            self._pos = index - index % self.keyframe_interval
            return True
        return False

    def read(self):
        if not self._opened or self.fail_reads or self._pos >= len(self.frames):
            return False, None
        frame = self.frames[self._pos]
        self._pos += 1
        return True, frame

    def release(self) -> None:
        self.released += 1
        self._opened = False


class _FakeSignal:
    def __init__(self) -> None:
        self._slots = []

    def connect(self, slot) -> None:
        self._slots.append(slot)

    def emit(self) -> None:
        for slot in list(self._slots):
            slot()


class FakeTimer:
    """Stand-in for ``QTimer``; ``fire()`` delivers one timeout if running."""

    def __init__(self) -> None:
        self.timeout = _FakeSignal()
        self.interval: Optional[int] = None
        self.active = False

    def setInterval(self, ms: int) -> None:
        self.interval = ms

    def start(self, ms: Optional[int] = None) -> None:
        if ms is not None:
            self.interval = ms
        self.active = True

    def stop(self) -> None:
        self.active = False

    def isActive(self) -> bool:
        return self.active

    def fire(self) -> None:
        if self.active:
            self.timeout.emit()


class Recorder:
    """Collects every emission of the cursor's signals."""

    def __init__(self, cursor: PlaybackCursor) -> None:
        self.opened = []
        self.frames = []
        self.positions = []
        self.infos = []
        self.play_states = []
        cursor.video_opened.connect(lambda metadata: self.opened.append(metadata))
        cursor.frame_changed.connect(lambda frame: self.frames.append(frame))
        cursor.position_changed.connect(lambda index: self.positions.append(index))
        cursor.info_changed.connect(lambda index, count: self.infos.append((index, count)))
        cursor.play_state_changed.connect(lambda playing: self.play_states.append(playing))

    def clear(self) -> None:
        for items in (self.opened, self.frames, self.positions, self.infos, self.play_states):
            items.clear()


class CursorHarness:
    def __init__(self, capture: FakeCapture) -> None:
        self.capture = capture
        self.timer = FakeTimer()
        self.source = VideoSource(capture_factory=lambda: capture)
        self.cursor = PlaybackCursor(source=self.source, timer=self.timer)
        self.events = Recorder(self.cursor)


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def make_harness():
    """Build a cursor wired to a fake capture and fake timer."""

    def _make(**capture_kwargs) -> CursorHarness:
        return CursorHarness(FakeCapture(**capture_kwargs))

    return _make


@pytest.fixture
def harness(make_harness) -> CursorHarness:
    """Cursor over a 10-frame, 25 fps fake video, already opened."""
    h = make_harness()
    h.cursor.open("clip.mp4")
    h.events.clear()
    return h


def write_mjpg_clip(path: Path, count: int, fps: float = 10.0, size=(32, 24)) -> bool:
    """Write ``count`` flat-colored frames; False when MJPG cannot be encoded here."""
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, size)
    if not writer.isOpened():
        return False
    width, height = size
    for i in range(count):
        writer.write(np.full((height, width, 3), (i * 25) % 256, dtype=np.uint8))
    writer.release()
    return True


@pytest.fixture
def mjpg_clip(tmp_path: Path):
    """Path to a small MJPG clip, skipping when the codec or decoder is missing."""

    def _make(count: int = 10) -> Path:
        path = tmp_path / "clip.avi"
        if not write_mjpg_clip(path, count):
            pytest.skip("MJPG writer not available in this OpenCV build")
        cap = cv2.VideoCapture(str(path))
        try:
            if not cap.isOpened() or int(cap.get(cv2.CAP_PROP_FRAME_COUNT)) != count:
                pytest.skip("MJPG clip cannot be decoded in this OpenCV build")
        finally:
            cap.release()
        return path

    return _make


@pytest.fixture(scope="session")
def qapp():
    """One QApplication for every widget test."""
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app
