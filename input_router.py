"""App-wide key and mouse bindings, independent of which widget has focus."""
from __future__ import annotations

from typing import Callable

from PySide6.QtCore import Qt

from playback import PlaybackCursor


class InputRouter:
    """
    Maps raw key codes and mouse clicks onto cursor and save actions.

    Bindings:
        Space: play/pause
        Left/Right: pause and step one frame
        S: save current frame
        Left click on the video area: play/pause
        Right click on the video area: save current frame

    Handlers return True when the event was consumed.
    """

    def __init__(
        self,
        cursor: PlaybackCursor,
        save_frame: Callable[[], None],
        video_target: object = None,
    ) -> None:
        self.cursor = cursor
        self.save_frame = save_frame
        self.video_target = video_target

    def on_key(self, key) -> bool:
        try:
            key = Qt.Key(key)
        except ValueError:
            return False

        if key == Qt.Key.Key_Space:
            self.cursor.toggle()
        elif key == Qt.Key.Key_S:
            self.save_frame()
        elif key == Qt.Key.Key_Left:
            self.cursor.pause_and_step(-1)
        elif key == Qt.Key.Key_Right:
            self.cursor.pause_and_step(+1)
        else:
            return False
        return True

    def on_click(self, button, target: object) -> bool:
        if target is not self.video_target:
            return False
        if button == Qt.MouseButton.LeftButton:
            self.cursor.toggle()
            return True
        if button == Qt.MouseButton.RightButton:
            self.save_frame()
            return True
        return False
