"""Image codec using pyvips.

Decodes source images, composites them centered on a white canvas according
to a `Layout`, and encodes the result in the format implied by the output
extension. pyvips failures are mapped to `DecodeError` / `WriteError`.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import numpy as np

from framiq.engine.geometry import AspectRatioSpec, Dimensions, Layout, compute_layout
from framiq.errors import DecodeError, WriteError
from framiq.logger import get_logger

_logger = get_logger("codec")

RGB_CHANNELS = 3
WHITE = [255, 255, 255]
DEFAULT_QUALITY = 90

# extension -> (pyvips buffer suffix, uses quality)
_SAVE_FORMATS: dict[str, tuple[str, bool]] = {
    "png": (".png", False),
    "jpg": (".jpg", True),
    "jpeg": (".jpg", True),
    "tif": (".tif", False),
    "tiff": (".tif", False),
    "gif": (".gif", False),
    "bmp": (".bmp", False),
    "heic": (".heic", True),
    "heif": (".heic", True),
}
_FALLBACK_FORMAT = (".jpg", True)
_AUTOROTATE_EXTS = {"jpg", "jpeg"}

_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Keep memory flat across long batches
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def _ext_of(path: str | Path) -> str:
    return Path(path).suffix.lower().lstrip(".")


@dataclass
class DecodedImage:
    path: Path
    dims: Dimensions
    raster: Any


class ImageCodec(Protocol):
    def read_dimensions(self, path: Path) -> Dimensions: ...

    def decode(self, path: Path) -> DecodedImage: ...

    def encode(self, image: DecodedImage, layout: Layout, output_path: Path) -> bytes: ...

    def write(self, data: bytes, output_path: Path) -> None: ...


class VipsCodec:
    """Default codec backed by libvips."""

    def __init__(self, quality: int = DEFAULT_QUALITY) -> None:
        self.quality = int(quality)

    def _open(self, path: Path) -> Any:
        pyvips = _get_pyvips_module()
        if _ext_of(path) in _AUTOROTATE_EXTS:
            return pyvips.Image.new_from_file(str(path), autorotate=True)
        return pyvips.Image.new_from_file(str(path))

    def read_dimensions(self, path: Path) -> Dimensions:
        """Header-only read; pixels are not decoded."""
        pyvips = _get_pyvips_module()
        try:
            image = self._open(path)
        except pyvips.Error as exc:
            raise DecodeError(f"cannot read {Path(path).name}: {exc}") from exc
        if image.width <= 0 or image.height <= 0:
            raise DecodeError(f"zero-dimension image: {Path(path).name}")
        return Dimensions(float(image.width), float(image.height))

    def decode(self, path: Path) -> DecodedImage:
        pyvips = _get_pyvips_module()
        try:
            image = self._open(path)
            # Force pixel decode so corrupt files fail here, not at encode time
            image = image.copy_memory()
        except pyvips.Error as exc:
            raise DecodeError(f"cannot decode {Path(path).name}: {exc}") from exc
        if image.width <= 0 or image.height <= 0:
            raise DecodeError(f"zero-dimension image: {Path(path).name}")
        return DecodedImage(path=Path(path), dims=Dimensions(float(image.width), float(image.height)), raster=image)

    def composite(self, image: DecodedImage, layout: Layout) -> Any:
        """Scale the raster to the placed size and center it on a white final canvas."""
        pyvips = _get_pyvips_module()
        raster = image.raster
        try:
            with contextlib.suppress(pyvips.Error):
                raster = raster.colourspace("srgb")
            if raster.hasalpha():
                raster = raster.flatten(background=WHITE)
            if raster.bands > RGB_CHANNELS:
                raster = raster.extract_band(0, n=RGB_CHANNELS)
            elif raster.bands < RGB_CHANNELS:
                raster = pyvips.Image.bandjoin([raster] * RGB_CHANNELS)
            if raster.format != "uchar":
                raster = raster.cast("uchar")

            placed_w = max(1, round(layout.placed_image_size.width))
            placed_h = max(1, round(layout.placed_image_size.height))
            final_w = max(1, round(layout.final_canvas_size.width))
            final_h = max(1, round(layout.final_canvas_size.height))

            scaled = raster.resize(placed_w / raster.width, vscale=placed_h / raster.height)
            x = max(0, (final_w - scaled.width) // 2)
            y = max(0, (final_h - scaled.height) // 2)
            return scaled.embed(x, y, final_w, final_h, extend="background", background=WHITE)
        except pyvips.Error as exc:
            raise WriteError(f"cannot render {image.path.name}: {exc}") from exc

    def encode(self, image: DecodedImage, layout: Layout, output_path: Path) -> bytes:
        pyvips = _get_pyvips_module()
        canvas = self.composite(image, layout)
        suffix, uses_quality = _SAVE_FORMATS.get(_ext_of(output_path), _FALLBACK_FORMAT)
        try:
            if uses_quality:
                return canvas.write_to_buffer(suffix, Q=self.quality)
            return canvas.write_to_buffer(suffix)
        except pyvips.Error as exc:
            raise WriteError(f"cannot encode {Path(output_path).name} as {suffix}: {exc}") from exc

    def write(self, data: bytes, output_path: Path) -> None:
        try:
            Path(output_path).write_bytes(data)
        except OSError as exc:
            raise WriteError(f"cannot write {output_path}: {exc}") from exc


def render_preview(
    path: str | Path,
    target_ratio: AspectRatioSpec,
    border_percent: float,
    max_side: int = 512,
    codec: VipsCodec | None = None,
) -> np.ndarray | None:
    """Render the framed output for `path` as an RGB array no larger than `max_side`.

    Returns None on failure.
    """
    codec = codec or VipsCodec()
    try:
        decoded = codec.decode(Path(path))
        layout = compute_layout(decoded.dims, target_ratio, border_percent)
        canvas = codec.composite(decoded, layout)
        longest = max(canvas.width, canvas.height)
        if longest > max_side:
            canvas = canvas.resize(max_side / longest)
        mem = canvas.write_to_memory()
        arr = np.frombuffer(mem, dtype=np.uint8).reshape(canvas.height, canvas.width, canvas.bands)
        return arr.copy()
    except Exception as e:
        _logger.debug("render_preview failed: %s", e)
        return None
