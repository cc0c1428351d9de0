# Per-record card compositing at the design's natural resolution (PIL only).
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from cardstamp.constants import FIELD_BAND_HEIGHT, FIELD_MIN_BOX_WIDTH, FIELD_PADDING_X
from cardstamp.decoders.image_decoder import decode_photo
from cardstamp.errors import DesignAssetError
from cardstamp.log import get_logger
from cardstamp.models import DesignAsset, FieldOverlay, OverlaySnapshot, StudentRecord
from cardstamp.records import resolve_field_text
from cardstamp.render.image_modes import cover_fit
from cardstamp.render.transform import CoordinateTransform
from cardstamp.render.typography import ellipsize, load_font, safe_color

_log = get_logger("compositor")

CARD_BACKGROUND = "#FFFFFF"


@dataclass(frozen=True, slots=True)
class FieldPlacement:
    overlay_id: int
    text: str
    band: tuple[int, int, int, int]
    text_origin: tuple[int, int]
    font_size: int
    color: str


def _scaled_font_size(overlay: FieldOverlay, transform: CoordinateTransform) -> int:
    return max(1, int(round(transform.to_natural_font_size(overlay.font_size))))


def layout_field(
    draw: ImageDraw.ImageDraw,
    overlay: FieldOverlay,
    text: str,
    *,
    transform: CoordinateTransform,
    canvas_size: tuple[int, int],
    font: ImageFont.ImageFont,
) -> FieldPlacement:
    canvas_w, _canvas_h = canvas_size
    natural_x, natural_y = transform.to_natural_point(overlay.x, overlay.y)
    left = int(round(natural_x))
    top = int(round(natural_y))
    band_height = max(1, int(round(FIELD_BAND_HEIGHT * transform.sy)))
    padding = max(0, int(round(FIELD_PADDING_X * transform.sx)))
    # Same minimum box width as the editor, so short values centre identically.
    min_width = int(round(FIELD_MIN_BOX_WIDTH * transform.sx))

    available = canvas_w - left - (padding * 2)
    line = ellipsize(draw, text, font, available)
    if line:
        bbox = draw.textbbox((0, 0), line, font=font)
        line_width = bbox[2] - bbox[0]
    else:
        bbox = (0, 0, 0, 0)
        line_width = 0

    right = min(canvas_w, left + max(min_width, line_width + (padding * 2)))
    right = max(right, left)
    bottom = top + band_height
    center_x = (left + right) / 2.0
    center_y = (top + bottom) / 2.0
    origin_x = int(round(center_x - ((bbox[0] + bbox[2]) / 2.0)))
    origin_y = int(round(center_y - ((bbox[1] + bbox[3]) / 2.0)))
    return FieldPlacement(
        overlay_id=overlay.id,
        text=line,
        band=(left, top, right, bottom),
        text_origin=(origin_x, origin_y),
        font_size=_scaled_font_size(overlay, transform),
        color=safe_color(overlay.font_color, "#222"),
    )


def _draw_photo(
    canvas: Image.Image,
    snapshot: OverlaySnapshot,
    record: StudentRecord,
    transform: CoordinateTransform,
    photo_base_dir: Path | None,
) -> bool:
    if snapshot.photo is None or not record.has_photo:
        return False
    photo = decode_photo(record.passport_photo, base_dir=photo_base_dir)
    if photo is None:
        _log.warning("record %r: photo skipped", record.display_name)
        return False
    x, y, width, height = transform.to_natural_rect(snapshot.photo.rect)
    target_w = int(round(width))
    target_h = int(round(height))
    if target_w < 1 or target_h < 1:
        return False
    fitted = cover_fit(photo, (target_w, target_h)).convert("RGBA")
    # paste() clips slots that start off-canvas; alpha_composite() rejects them.
    canvas.paste(fitted, (int(round(x)), int(round(y))))
    return True


def render_card(
    design: DesignAsset,
    snapshot: OverlaySnapshot,
    record: StudentRecord,
    *,
    font_path: Path | None = None,
    photo_base_dir: Path | None = None,
) -> Image.Image:
    """Composite one record onto the design at natural resolution."""
    if not design.is_image or design.image is None:
        raise DesignAssetError("design asset is not an image; cards cannot be rendered")
    transform = CoordinateTransform.for_design(design)

    canvas = Image.new("RGBA", design.natural_size, color=CARD_BACKGROUND)
    canvas.alpha_composite(design.image.convert("RGBA"))

    _draw_photo(canvas, snapshot, record, transform, photo_base_dir)

    draw = ImageDraw.Draw(canvas)
    for overlay in snapshot.fields:
        text = resolve_field_text(record, overlay.field)
        font = load_font(font_path, _scaled_font_size(overlay, transform), family=snapshot.font_family)
        placement = layout_field(
            draw,
            overlay,
            text,
            transform=transform,
            canvas_size=canvas.size,
            font=font,
        )
        if not placement.text:
            continue
        draw.text(placement.text_origin, placement.text, font=font, fill=placement.color)
    return canvas.convert("RGB")
