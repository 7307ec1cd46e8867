"""Canvas geometry for fitting an image onto a target aspect ratio.

The canvas is anchored to the longest side of the source image so output
resolution follows input resolution. The passepartout border scales the
canvas uniformly, and the image is fitted into the inner (unbordered) canvas.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

MAX_BORDER_PERCENT = 50.0


@dataclass(frozen=True)
class Dimensions:
    width: float
    height: float

    @property
    def ratio(self) -> float:
        return self.width / self.height

    def scaled(self, factor: float) -> Dimensions:
        return Dimensions(self.width * factor, self.height * factor)


@dataclass(frozen=True)
class AspectRatioSpec:
    """Target canvas shape, e.g. AspectRatioSpec(4, 5). Any positive finite pair is allowed."""

    width: float
    height: float

    def __post_init__(self) -> None:
        if not all(math.isfinite(v) and v > 0 for v in (self.width, self.height)):
            raise ValueError(f"aspect ratio must be positive and finite, got {self.width}:{self.height}")

    @property
    def ratio(self) -> float:
        return self.width / self.height

    def __str__(self) -> str:
        return f"{self.width:g}:{self.height:g}"


@dataclass(frozen=True)
class Layout:
    canvas_size: Dimensions
    final_canvas_size: Dimensions
    placed_image_size: Dimensions

    def placement_offset(self) -> tuple[float, float]:
        """Top-left offset that centers the placed image on the final canvas."""
        x = (self.final_canvas_size.width - self.placed_image_size.width) / 2
        y = (self.final_canvas_size.height - self.placed_image_size.height) / 2
        return x, y


def validate_border_percent(border_percent: float) -> float:
    value = float(border_percent)
    if not 0.0 <= value <= MAX_BORDER_PERCENT:
        raise ValueError(f"border percent must be within [0, {MAX_BORDER_PERCENT:g}], got {value:g}")
    return value


def canvas_for(image_dims: Dimensions, target_ratio: AspectRatioSpec) -> Dimensions:
    longest_side = max(image_dims.width, image_dims.height)
    r = target_ratio.width / target_ratio.height
    if r > 1:
        # Landscape canvas
        return Dimensions(longest_side, longest_side / r)
    # Portrait or square canvas
    return Dimensions(longest_side * r, longest_side)


def fit_into(image_dims: Dimensions, canvas: Dimensions) -> Dimensions:
    """Largest size with the image's own ratio that fits inside `canvas`."""
    image_ratio = image_dims.width / image_dims.height
    canvas_ratio = canvas.width / canvas.height
    if image_ratio > canvas_ratio:
        # Wider than the canvas: width-constrained
        return Dimensions(canvas.width, canvas.width / image_ratio)
    return Dimensions(canvas.height * image_ratio, canvas.height)


def compute_layout(image_dims: Dimensions, target_ratio: AspectRatioSpec, border_percent: float) -> Layout:
    """Compute canvas, bordered canvas and placed image size.

    Inputs are assumed positive and finite; zero-dimension images must be
    rejected before calling this.
    """
    canvas = canvas_for(image_dims, target_ratio)
    final_canvas = canvas.scaled(1.0 + border_percent / 100.0)
    placed = fit_into(image_dims, canvas)
    return Layout(canvas_size=canvas, final_canvas_size=final_canvas, placed_image_size=placed)
