"""Thin adapter around ``cv2.VideoCapture`` used by the playback cursor."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class VideoMetadata:
    """Container for basic video metadata."""

    path: str
    width: int
    height: int
    fps: float
    frame_count: int
    duration_sec: float


class VideoSource:
    """
    Owns a single capture handle and exposes the few calls the cursor needs.

    The capture factory defaults to ``cv2.VideoCapture``; anything with the same
    ``open/isOpened/get/set/read/release`` surface can be substituted.
    """

    def __init__(self, capture_factory: Callable[[], object] = cv2.VideoCapture) -> None:
        self._capture_factory = capture_factory
        self._capture = None
        self.path: str = ""

    def open(self, path: str) -> bool:
        """Release any previous handle and open ``path``."""
        self.release()
        cap = self._capture_factory()
        try:
            opened = bool(cap.open(path)) and cap.isOpened()
        except cv2.error as exc:
            logger.warning("Decoder rejected %s: %s", path, exc)
            opened = False
        if not opened:
            cap.release()
            return False
        self._capture = cap
        self.path = path
        return True

    def is_opened(self) -> bool:
        """True while a capture handle is open."""
        return self._capture is not None and self._capture.isOpened()

    def frame_count(self) -> int:
        """Frame count reported by the container, 0 when unknown."""
        if not self.is_opened():
            return 0
        return max(0, int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0))

    def fps(self) -> float:
        """Frame rate as reported; may be 0 for broken streams."""
        if not self.is_opened():
            return 0.0
        return float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0)

    def position(self) -> int:
        """Index of the frame the next ``read_next`` call will deliver."""
        if not self.is_opened():
            return 0
        return int(self._capture.get(cv2.CAP_PROP_POS_FRAMES) or 0)

    def seek(self, index: int) -> None:
        """Position the decoder so the next read delivers ``index``."""
        if self.is_opened():
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, index)

    def read_next(self) -> Optional[np.ndarray]:
        """Decode the next frame, or return None at end-of-stream."""
        if not self.is_opened():
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return frame

    def metadata(self) -> VideoMetadata:
        fps = self.fps()
        frame_count = self.frame_count()
        width = height = 0
        if self.is_opened():
            width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        duration = frame_count / fps if fps > 0 else 0.0
        return VideoMetadata(
            path=self.path,
            width=width,
            height=height,
            fps=fps,
            frame_count=frame_count,
            duration_sec=duration,
        )

    def release(self) -> None:
        """Close the capture handle, if any."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        self.path = ""
