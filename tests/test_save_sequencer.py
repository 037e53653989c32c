"""Tests for save_sequencer."""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

import save_sequencer
from save_sequencer import NoDirectorySelected, SaveSequencer, WriteFailed


@pytest.fixture
def image() -> np.ndarray:
    return np.full((8, 8, 3), 128, dtype=np.uint8)


def test_no_directory_means_index_one():
    sequencer = SaveSequencer()
    assert sequencer.next_index == 1
    assert sequencer.next_filename == "image_0001.png"


def test_initial_index_follows_directory(tmp_path: Path):
    (tmp_path / "frame3.png").write_bytes(b"")
    (tmp_path / "img_10_v2.png").write_bytes(b"")
    sequencer = SaveSequencer(str(tmp_path))
    assert sequencer.next_index == 11


def test_three_saves_number_sequentially(tmp_path: Path, image):
    sequencer = SaveSequencer(str(tmp_path))
    names = [sequencer.save(image) for _ in range(3)]

    assert names == ["image_0001.png", "image_0002.png", "image_0003.png"]
    assert sequencer.next_index == 4
    assert sorted(p.name for p in tmp_path.iterdir()) == names
    saved = cv2.imread(str(tmp_path / "image_0002.png"))
    assert saved.shape == (8, 8, 3)


def test_save_without_directory_creates_nothing(tmp_path: Path, image, monkeypatch):
    monkeypatch.chdir(tmp_path)
    sequencer = SaveSequencer()
    saved = []
    sequencer.frame_saved.connect(lambda name: saved.append(name))

    with pytest.raises(NoDirectorySelected):
        sequencer.save(image)

    assert list(tmp_path.iterdir()) == []
    assert sequencer.next_index == 1
    assert saved == []


def test_missing_directory_is_created(tmp_path: Path, image):
    target = tmp_path / "out" / "frames"
    sequencer = SaveSequencer(str(target))
    assert sequencer.save(image) == "image_0001.png"
    assert (target / "image_0001.png").is_file()


def test_rescan_before_save_sees_external_files(tmp_path: Path, image):
    sequencer = SaveSequencer(str(tmp_path))
    sequencer.save(image)
    (tmp_path / "image_0042.png").write_bytes(b"")

    assert sequencer.save(image) == "image_0043.png"
    assert sequencer.next_index == 44


def test_indices_beyond_four_digits_are_not_truncated(tmp_path: Path, image):
    (tmp_path / "image_9999.png").write_bytes(b"")
    sequencer = SaveSequencer(str(tmp_path))
    assert sequencer.save(image) == "image_10000.png"


def test_write_failure_keeps_counter(tmp_path: Path, image, monkeypatch):
    monkeypatch.setattr(save_sequencer.cv2, "imwrite", lambda path, img: False)
    sequencer = SaveSequencer(str(tmp_path))

    with pytest.raises(WriteFailed):
        sequencer.save(image)
    assert sequencer.next_index == 1


def test_encoder_error_is_write_failure(tmp_path: Path, image, monkeypatch):
    def broken(path, img):
        raise cv2.error("encoder exploded")

    monkeypatch.setattr(save_sequencer.cv2, "imwrite", broken)
    sequencer = SaveSequencer(str(tmp_path))

    with pytest.raises(WriteFailed):
        sequencer.save(image)
    assert sequencer.next_index == 1


def test_directory_blocked_by_file_is_write_failure(tmp_path: Path, image):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")
    sequencer = SaveSequencer(str(blocker / "frames"))

    with pytest.raises(WriteFailed):
        sequencer.save(image)


def test_switching_to_emptier_directory_resets(tmp_path: Path):
    full = tmp_path / "full"
    empty = tmp_path / "empty"
    full.mkdir()
    empty.mkdir()
    (full / "image_0020.png").write_bytes(b"")

    sequencer = SaveSequencer(str(full))
    assert sequencer.next_index == 21
    assert sequencer.set_directory(str(empty)) == 1
    assert sequencer.directory == str(empty)


def test_signals_on_save(tmp_path: Path, image):
    sequencer = SaveSequencer(str(tmp_path))
    indices, names = [], []
    sequencer.next_index_changed.connect(lambda index: indices.append(index))
    sequencer.frame_saved.connect(lambda name: names.append(name))

    sequencer.save(image)

    assert names == ["image_0001.png"]
    assert indices == [1, 2]
