"""Output file naming.

Existing files at the output path are overwritten without warning.
"""

from __future__ import annotations

from pathlib import Path

SINGLE_SUFFIX = "_framiq"


def single_output_name(input_file_name: str) -> str:
    """"photo.JPG" -> "photo_framiq.JPG" (split at the last dot, case kept)."""
    stem, dot, ext = input_file_name.rpartition(".")
    if not dot:
        return f"{input_file_name}{SINGLE_SUFFIX}"
    return f"{stem}{SINGLE_SUFFIX}.{ext}"


def batch_output_name(input_file_name: str) -> str:
    return input_file_name


def single_output_path(input_path: str | Path) -> Path:
    p = Path(input_path)
    return p.parent / single_output_name(p.name)


def batch_output_path(input_path: str | Path, output_dir: str | Path) -> Path:
    return Path(output_dir) / batch_output_name(Path(input_path).name)
