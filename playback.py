"""Frame cursor over an opened video: seeking, stepping and timed playback."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PySide6.QtCore import QObject, QTimer, Signal

from video_source import VideoSource

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0


class OpenFailed(Exception):
    """Raised when a video path cannot be opened by the decoder."""


class PlayState(enum.Enum):
    UNOPENED = "unopened"
    PAUSED = "paused"
    PLAYING = "playing"


@dataclass
class Frame:
    """A decoded BGR image and the index it was read at."""

    image: np.ndarray
    index: int


class PlaybackCursor(QObject):
    """
    Single owner of the decoder, the current frame and the play state.

    Emits:
        video_opened (VideoMetadata): After a successful open.
        frame_changed (Frame): Whenever a new frame becomes current.
        position_changed (int): Index the timeline slider should show. Not
            emitted while the user is scrubbing.
        info_changed (int, int): Current index and frame count, after every
            seek or tick, including failed reads.
        play_state_changed (bool): Playing on/off.
    """

    video_opened = Signal(object)
    frame_changed = Signal(object)
    position_changed = Signal(int)
    info_changed = Signal(int, int)
    play_state_changed = Signal(bool)

    def __init__(
        self,
        source: Optional[VideoSource] = None,
        timer=None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._source = source if source is not None else VideoSource()
        self._timer = timer if timer is not None else QTimer(self)
        self._timer.timeout.connect(self.tick)

        self._state = PlayState.UNOPENED
        self._frame_count = 0
        self._fps = DEFAULT_FPS
        self._current_index: Optional[int] = None
        self._current_frame: Optional[Frame] = None
        self._scrubbing = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> PlayState:
        return self._state

    @property
    def is_opened(self) -> bool:
        return self._state is not PlayState.UNOPENED

    @property
    def is_playing(self) -> bool:
        return self._state is PlayState.PLAYING

    @property
    def is_scrubbing(self) -> bool:
        return self._scrubbing

    @property
    def current_index(self) -> Optional[int]:
        return self._current_index

    @property
    def current_frame(self) -> Optional[Frame]:
        return self._current_frame

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def interval_ms(self) -> int:
        """Tick cadence derived from the stream frame rate."""
        # Half-up rounding: 80 fps ticks every 13 ms.
        return max(1, int(1000 / self._fps + 0.5))

    @property
    def path(self) -> str:
        return self._source.path

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------
    def open(self, path: str) -> None:
        """Open ``path`` and show its first frame, paused."""
        # No tick may run against a half-swapped session.
        self.set_playing(False)
        self._reset()

        if not self._source.open(path):
            logger.warning("Failed to open video %s", path)
            self.info_changed.emit(0, 0)
            raise OpenFailed(f"Failed to open video: {path}")

        fps = self._source.fps()
        self._fps = fps if fps > 0 else DEFAULT_FPS
        self._frame_count = self._source.frame_count()
        self._current_index = 0
        self._state = PlayState.PAUSED
        self._timer.setInterval(self.interval_ms)

        metadata = self._source.metadata()
        metadata.fps = self._fps
        logger.info(
            "Opened %s (%d frames @ %.2f fps)", path, self._frame_count, self._fps
        )
        self.video_opened.emit(metadata)
        self.seek_to(0)

    def close(self) -> None:
        """Stop playback and release the decoder."""
        self.set_playing(False)
        self._reset()

    def _reset(self) -> None:
        self._source.release()
        self._state = PlayState.UNOPENED
        self._frame_count = 0
        self._fps = DEFAULT_FPS
        self._current_index = None
        self._current_frame = None
        self._scrubbing = False

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def seek_to(self, target: int, sync_slider: bool = True) -> None:
        """Decode the frame at ``target`` (clamped) and make it current."""
        if not self.is_opened:
            return

        target = max(0, min(int(target), max(0, self._frame_count - 1)))
        self._source.seek(target)
        image = self._source.read_next()
        if image is not None:
            # The decoder may land elsewhere than asked; its position wins.
            self._accept(image, sync_slider)
        self.info_changed.emit(self._current_index, self._frame_count)

    def step_relative(self, delta: int) -> None:
        """Seek ``delta`` frames away from the current one."""
        if not self.is_opened:
            return
        self.seek_to(self._current_index + delta)

    def pause_and_step(self, delta: int) -> None:
        """Pause, then move ``delta`` frames from the current one."""
        if not self.is_opened:
            return
        self.set_playing(False)
        self.step_relative(delta)

    def restart(self) -> None:
        """Rewind to the first frame and start playing."""
        if not self.is_opened:
            return
        self.set_playing(False)
        self.seek_to(0)
        self.set_playing(True)

    # ------------------------------------------------------------------
    # Scrubbing
    # ------------------------------------------------------------------
    def begin_scrub(self) -> None:
        """The slider is held: pause and stop syncing it."""
        self._scrubbing = True
        self.set_playing(False)

    def scrub_to(self, value: int) -> None:
        """Follow the dragged slider without moving it."""
        self.seek_to(value, sync_slider=False)

    def end_scrub(self, value: int) -> None:
        """Release the slider and resync the decoder to where it was let go."""
        self._scrubbing = False
        self.seek_to(value)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    def set_playing(self, on: bool) -> None:
        """Start or stop the tick timer; stopping takes effect immediately."""
        if on:
            if not self.is_opened or self._frame_count <= 0:
                return
            self._timer.start(self.interval_ms)
            self._state = PlayState.PLAYING
        else:
            self._timer.stop()
            if self._state is not PlayState.PLAYING:
                return
            self._state = PlayState.PAUSED
        self.play_state_changed.emit(on)

    def toggle(self) -> None:
        """Switch between playing and paused."""
        if not self.is_opened:
            return
        self.set_playing(not self.is_playing)

    def tick(self) -> None:
        """Advance playback by one sequentially decoded frame."""
        if not self.is_playing:
            return
        image = self._source.read_next()
        if image is None:
            logger.debug("End of stream at frame %s", self._current_index)
            self.set_playing(False)
            return
        self._accept(image, sync_slider=True)
        self.info_changed.emit(self._current_index, self._frame_count)

    def _accept(self, image: np.ndarray, sync_slider: bool) -> None:
        # After a read the decoder points at the following frame.
        index = max(0, self._source.position() - 1)
        self._current_index = index
        self._current_frame = Frame(image=image, index=index)
        self.frame_changed.emit(self._current_frame)
        if sync_slider and not self._scrubbing:
            self.position_changed.emit(index)
