"""
Image discovery and resizing.

This module lists the photos under an input folder in a stable order and
provides a small batch resize utility.  It is intentionally kept decoupled
from the detection/embedding logic so it can be reused on its own.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, List, Tuple

from PIL import Image

LOGGER = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".webp")
RESIZE_EXTENSIONS = (".jpg", ".jpeg", ".png")


def iter_image_paths(root: Path) -> Iterator[Path]:
    """Yield all files under ``root`` that have an image-like extension.

    Directories and files are visited in sorted order so that repeated runs
    see the photos in the same sequence.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for fn in sorted(filenames):
            if fn.lower().endswith(IMAGE_EXTENSIONS):
                yield Path(dirpath) / fn


def list_images(root: Path) -> List[Path]:
    if not root.is_dir():
        raise FileNotFoundError(f"Input folder does not exist: {root}")
    return list(iter_image_paths(root))


def resize_images(root: Path, size: Tuple[int, int] = (200, 300),
                  prefix: str = "resized_") -> List[Path]:
    """Write a resized copy of every JPEG/PNG directly inside ``root``.

    Copies are named ``<prefix><original name>`` and stored next to the
    originals.  Files that already carry the prefix are skipped so the
    utility can be rerun.  Files that cannot be decoded are logged and
    skipped.

    Returns
    -------
    list of Path
        Paths of the written copies.
    """
    written: List[Path] = []
    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix.lower() not in RESIZE_EXTENSIONS:
            continue
        if path.name.startswith(prefix):
            continue
        dst = path.with_name(prefix + path.name)
        try:
            with Image.open(path) as im:
                im.resize(size).save(dst)
        except OSError as exc:
            LOGGER.error("Error resizing image %s: %s", path.name, exc)
            continue
        LOGGER.info("Resized image saved to: %s", dst)
        written.append(dst)
    return written
