"""Tiny key=value file remembering the last video, save directory and counter."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from PySide6.QtCore import QStandardPaths

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.txt"
CONFIG_HEADER = "# Simple config for Video Dataset Preparation Tool"


@dataclass
class SessionConfig:
    """Persisted session fields. ``next_image`` is None when never recorded."""

    last_video: str = ""
    save_dir: str = ""
    next_image: Optional[int] = None


def default_config_path() -> Path:
    """Location of the config file inside the per-user app data directory."""
    location = QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    base = Path(location) if location else Path.home() / ".video-dataset-prep"
    return base / CONFIG_FILENAME


def load_config(path: Union[str, Path]) -> SessionConfig:
    """Read ``path``; missing files and bad lines fall back to defaults."""
    config = SessionConfig()
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return config
    except OSError as exc:
        logger.warning("Could not read config %s: %s", path, exc)
        return config

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            logger.debug("Skipping config line %r", raw_line)
            continue
        value = value.strip()

        if key == "last_video":
            config.last_video = value
        elif key == "save_dir":
            config.save_dir = value
        elif key == "next_image":
            try:
                config.next_image = int(value)
            except ValueError:
                logger.debug("Ignoring malformed next_image %r", value)
    return config


def save_config(path: Union[str, Path], config: SessionConfig) -> None:
    """Overwrite ``path`` with the three recognized keys."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    next_image = "" if config.next_image is None else str(config.next_image)
    lines = [
        CONFIG_HEADER,
        f"last_video={config.last_video}",
        f"save_dir={config.save_dir}",
        f"next_image={next_image}",
    ]
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    tmp_path.replace(path)
    logger.debug("Wrote config to %s", path)
