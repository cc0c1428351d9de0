"""Preview-space ↔ natural-space coordinate mapping.

The transform is derived from the design's natural size and its *current*
preview size every time it is needed; never keep one across a layout change.
"""
from __future__ import annotations

from dataclasses import dataclass

from cardstamp.errors import PreviewNotMeasuredError
from cardstamp.models import DesignAsset


@dataclass(frozen=True, slots=True)
class CoordinateTransform:
    sx: float
    sy: float

    @classmethod
    def between(
        cls,
        natural_size: tuple[float, float],
        preview_size: tuple[float, float],
    ) -> "CoordinateTransform":
        natural_w, natural_h = natural_size
        preview_w, preview_h = preview_size
        if preview_w <= 0 or preview_h <= 0:
            raise PreviewNotMeasuredError(
                f"preview size {preview_w}x{preview_h} has not been measured yet"
            )
        if natural_w <= 0 or natural_h <= 0:
            raise PreviewNotMeasuredError(f"natural size {natural_w}x{natural_h} is empty")
        return cls(sx=natural_w / float(preview_w), sy=natural_h / float(preview_h))

    @classmethod
    def for_design(cls, design: DesignAsset) -> "CoordinateTransform":
        return cls.between(design.natural_size, design.preview_size)

    def to_natural_point(self, x: float, y: float) -> tuple[float, float]:
        return (x * self.sx, y * self.sy)

    def to_natural_size(self, width: float, height: float) -> tuple[float, float]:
        return (width * self.sx, height * self.sy)

    def to_natural_rect(self, rect: tuple[float, float, float, float]) -> tuple[float, float, float, float]:
        x, y, width, height = rect
        return (x * self.sx, y * self.sy, width * self.sx, height * self.sy)

    def to_natural_font_size(self, font_size: float) -> float:
        # Vertical scale keeps text proportional to the band height.
        return font_size * self.sy

    def to_preview_point(self, x: float, y: float) -> tuple[float, float]:
        return (x / self.sx, y / self.sy)

    def to_preview_rect(self, rect: tuple[float, float, float, float]) -> tuple[float, float, float, float]:
        x, y, width, height = rect
        return (x / self.sx, y / self.sy, width / self.sx, height / self.sy)


def fit_preview_size(natural_size: tuple[int, int], max_width: int, max_height: int) -> tuple[int, int]:
    """Largest preview size inside the viewport box that keeps the design's aspect ratio."""
    natural_w, natural_h = natural_size
    if natural_w <= 0 or natural_h <= 0 or max_width <= 0 or max_height <= 0:
        return (0, 0)
    scale = min(1.0, max_width / float(natural_w), max_height / float(natural_h))
    return (max(1, int(round(natural_w * scale))), max(1, int(round(natural_h * scale))))
