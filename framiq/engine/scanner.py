"""Input directory listing.

Lists regular, non-hidden files whose extension is a supported image type.
Order follows the platform's directory enumeration and is not sorted.
"""

from __future__ import annotations

import os
from pathlib import Path

SUPPORTED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "tiff", "tif", "bmp", "gif", "heic", "heif"})


def is_supported(name: str) -> bool:
    _stem, dot, ext = name.rpartition(".")
    return bool(dot) and ext.lower() in SUPPORTED_EXTENSIONS


def list_image_files(folder: str | Path) -> list[Path]:
    """Return supported image files directly inside `folder`.

    Raises OSError when the directory cannot be read.
    """
    files: list[Path] = []
    with os.scandir(folder) as it:
        for entry in it:
            if entry.name.startswith("."):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError:
                continue
            if is_supported(entry.name):
                files.append(Path(entry.path))
    return files
