from __future__ import annotations

from PIL import Image


def _crop_to_ratio(image: Image.Image, target_ratio: float) -> Image.Image:
    width, height = image.size
    if height == 0:
        return image
    ratio = width / float(height)
    if abs(ratio - target_ratio) < 0.0001:
        return image

    if ratio > target_ratio:
        new_width = max(1, int(round(height * target_ratio)))
        left = (width - new_width) // 2
        box = (left, 0, left + new_width, height)
    else:
        new_height = max(1, int(round(width / target_ratio)))
        top = (height - new_height) // 2
        box = (0, top, width, top + new_height)
    return image.crop(box)


def cover_fit(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    """Scale and centre-crop so the image fully covers ``size`` without distortion."""
    target_w = max(1, int(size[0]))
    target_h = max(1, int(size[1]))
    cropped = _crop_to_ratio(image, target_w / float(target_h))
    if cropped.size == (target_w, target_h):
        return cropped
    return cropped.resize((target_w, target_h), Image.Resampling.LANCZOS)


def fit_within(
    width: float,
    height: float,
    max_width: float,
    max_height: float,
    *,
    allow_upscale: bool = False,
) -> tuple[float, float]:
    """Largest size with the same aspect ratio that fits in the box."""
    if width <= 0 or height <= 0 or max_width <= 0 or max_height <= 0:
        return (0.0, 0.0)
    scale = min(max_width / float(width), max_height / float(height))
    if not allow_upscale:
        scale = min(1.0, scale)
    return (width * scale, height * scale)
