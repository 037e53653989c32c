"""Sequential numbering and writing of exported frames."""
from __future__ import annotations

import logging
import os
from typing import Optional

import cv2
import numpy as np
from PySide6.QtCore import QObject, Signal

from dir_scanner import largest_number_in_dir

logger = logging.getLogger(__name__)

FILENAME_PATTERN = "image_{index:04d}.png"


class SaveError(Exception):
    """Base class for failures while exporting a frame."""


class NoDirectorySelected(SaveError):
    """Raised when a save is attempted before a save directory was chosen."""


class WriteFailed(SaveError):
    """Raised when the image could not be written; the counter is not advanced."""


class SaveSequencer(QObject):
    """
    Keeps the next image index in line with what is on disk.

    Emits:
        next_index_changed (int): After every rescan or successful save.
        frame_saved (str): Filename of each image written.
    """

    next_index_changed = Signal(int)
    frame_saved = Signal(str)

    def __init__(self, directory: str = "", parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._directory = directory
        self._next_index = 1
        self.rescan()

    @property
    def directory(self) -> str:
        return self._directory

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def next_filename(self) -> str:
        return FILENAME_PATTERN.format(index=self._next_index)

    def set_directory(self, directory: str) -> int:
        """Switch to a new save directory and derive the counter from it."""
        self._directory = directory
        logger.info("Save directory set to %s", directory or "<none>")
        return self.rescan()

    def rescan(self) -> int:
        """Recompute the next index from the files currently in the directory."""
        if not self._directory:
            self._next_index = 1
        else:
            self._next_index = largest_number_in_dir(self._directory) + 1
        self.next_index_changed.emit(self._next_index)
        return self._next_index

    def save(self, image: np.ndarray) -> str:
        """Write ``image`` as the next numbered PNG and return its filename."""
        if not self._directory:
            raise NoDirectorySelected("Please select a save directory first.")

        try:
            os.makedirs(self._directory, exist_ok=True)
        except OSError as exc:
            raise WriteFailed(f"Cannot create directory {self._directory}: {exc}") from exc

        # Other tools may have added or removed files since the last save.
        self.rescan()
        filename = FILENAME_PATTERN.format(index=self._next_index)
        out_path = os.path.join(self._directory, filename)

        try:
            ok = cv2.imwrite(out_path, image)
        except cv2.error as exc:
            raise WriteFailed(f"Could not save {out_path}: {exc}") from exc
        if not ok:
            raise WriteFailed(f"Could not save {out_path}.")

        self._next_index += 1
        logger.info("Saved %s", out_path)
        self.next_index_changed.emit(self._next_index)
        self.frame_saved.emit(filename)
        return filename
