"""Find the highest number already used by image files in a directory."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Union

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp")

_DIGIT_RUN = re.compile(r"[0-9]+")


def numbers_in_name(name: str) -> List[int]:
    """Return every run of digits in ``name`` with its last extension removed."""
    stem = Path(name).stem
    return [int(run) for run in _DIGIT_RUN.findall(stem)]


def _is_candidate(entry: os.DirEntry) -> bool:
    if entry.is_symlink() or not entry.is_file():
        return False
    if not entry.name.lower().endswith(IMAGE_EXTENSIONS):
        return False
    return os.access(entry.path, os.R_OK)


def largest_number_in_dir(directory: Union[str, Path]) -> int:
    """
    Largest integer embedded in any image filename under ``directory``.

    Every digit run of every matching name is a candidate, so ``img_10_v2.png``
    contributes both 10 and 2. Returns 0 when the directory is missing or no
    name carries digits.
    """
    if not directory or not os.path.isdir(directory):
        return 0

    largest = 0
    with os.scandir(directory) as entries:
        for entry in entries:
            if not _is_candidate(entry):
                continue
            for number in numbers_in_name(entry.name):
                largest = max(largest, number)
    return largest
