"""Aspect ratio presets, parsing and batch clustering.

Detected ratios are snapped to a small table of common photo ratios. When
nothing is within 0.1, the ratio is reduced from two decimal digits, which
is coarse by nature; labels built from it are advisory only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from framiq.engine.geometry import AspectRatioSpec, Dimensions

SNAP_TOLERANCE = 0.1
SQUARE_LABEL_TOLERANCE = 0.05
_RATIO_PARTS = 2

# Ratios used to classify source images, in match priority order.
COMMON_RATIOS: tuple[tuple[float, float], ...] = (
    (1.0, 1.0),
    (3.0, 2.0),
    (4.0, 3.0),
    (16.0, 9.0),
    (2.0, 3.0),
    (3.0, 4.0),
    (4.0, 5.0),
    (9.0, 16.0),
)

_PRESET_LABELS: tuple[tuple[float, str], ...] = (
    (3.0 / 2.0, "Landscape (3:2)"),
    (4.0 / 3.0, "Landscape (4:3)"),
    (16.0 / 9.0, "Landscape (16:9)"),
    (2.0 / 3.0, "Portrait (2:3)"),
    (3.0 / 4.0, "Portrait (3:4)"),
    (4.0 / 5.0, "Portrait (4:5)"),
    (9.0 / 16.0, "Portrait (9:16)"),
)

# Selectable target canvas shapes.
TARGET_PRESETS: dict[str, tuple[str, AspectRatioSpec]] = {
    "square": ("Square (1:1)", AspectRatioSpec(1, 1)),
    "portrait-4-5": ("Portrait 4:5", AspectRatioSpec(4, 5)),
    "portrait-2-3": ("Portrait 2:3", AspectRatioSpec(2, 3)),
    "portrait-3-5": ("Portrait 3:5", AspectRatioSpec(3, 5)),
    "landscape-5-4": ("Landscape 5:4", AspectRatioSpec(5, 4)),
    "landscape-3-2": ("Landscape 3:2", AspectRatioSpec(3, 2)),
    "landscape-16-9": ("Landscape 16:9", AspectRatioSpec(16, 9)),
    "story-9-16": ("Story 9:16", AspectRatioSpec(9, 16)),
}

DEFAULT_TARGET = TARGET_PRESETS["portrait-4-5"][1]


@dataclass(frozen=True)
class DetectedAspectRatioGroup:
    representative_ratio: AspectRatioSpec
    member_count: int
    sample_file_name: str

    @property
    def display_name(self) -> str:
        return display_name(self.representative_ratio.ratio)


def gcd(a: int, b: int) -> int:
    """Euclid's algorithm; gcd(0, b) == b."""
    a, b = abs(a), abs(b)
    while b:
        a, b = b, a % b
    return a


def round_to_common_ratio(ratio: float) -> tuple[float, float]:
    best = COMMON_RATIOS[0]
    smallest = float("inf")
    for w, h in COMMON_RATIOS:
        diff = abs(ratio - w / h)
        if diff < smallest:
            smallest = diff
            best = (w, h)

    if smallest > SNAP_TOLERANCE:
        scaled = round(ratio * 100)
        divisor = gcd(scaled, 100) or 1
        return (ratio * 100) / divisor, 100.0 / divisor
    return best


def _ratio_key(pair: tuple[float, float]) -> str:
    # Formatted, so pairs that print the same merge into one bucket.
    return f"{pair[0]:g}:{pair[1]:g}"


def detect_aspect_ratios(items: Iterable[tuple[str, Dimensions]]) -> list[DetectedAspectRatioGroup]:
    """Bucket (file name, dimensions) pairs into common ratios, most common first.

    The first file seen for a bucket becomes its sample. Ties keep no
    particular order.
    """
    buckets: dict[str, list] = {}
    for name, dims in items:
        pair = round_to_common_ratio(dims.width / dims.height)
        key = _ratio_key(pair)
        entry = buckets.get(key)
        if entry is None:
            buckets[key] = [pair, 1, name]
        else:
            entry[1] += 1

    groups = [
        DetectedAspectRatioGroup(
            representative_ratio=AspectRatioSpec(pair[0], pair[1]),
            member_count=count,
            sample_file_name=sample,
        )
        for pair, count, sample in buckets.values()
    ]
    groups.sort(key=lambda g: g.member_count, reverse=True)
    return groups


def display_name(ratio: float) -> str:
    if abs(ratio - 1.0) < SQUARE_LABEL_TOLERANCE:
        return "Square (1:1)"
    # Presets overlap within the tolerance; the nearest one wins.
    close = [(abs(ratio - value), label) for value, label in _PRESET_LABELS if abs(ratio - value) < SNAP_TOLERANCE]
    if close:
        return min(close)[1]
    if ratio > 1.0:
        return f"Landscape ({ratio:.1f}:1)"
    return f"Portrait ({1.0 / ratio:.1f}:1)"


def parse_aspect_ratio(text: str) -> AspectRatioSpec:
    """Parse a preset key (e.g. "portrait-4-5") or a "W:H" pair of positive numbers."""
    value = (text or "").strip().lower()
    if value in TARGET_PRESETS:
        return TARGET_PRESETS[value][1]
    parts = value.replace("x", ":").split(":")
    if len(parts) != _RATIO_PARTS:
        raise ValueError(f"invalid aspect ratio: {text!r} (expected W:H or one of {', '.join(TARGET_PRESETS)})")
    try:
        width, height = float(parts[0]), float(parts[1])
    except ValueError as exc:
        raise ValueError(f"invalid aspect ratio: {text!r}") from exc
    return AspectRatioSpec(width, height)
