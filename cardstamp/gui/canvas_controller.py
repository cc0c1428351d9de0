"""Pointer and layout logic behind the template canvas, independent of Qt.

All coordinates are preview-space pixels with the origin at the top-left of
the displayed design. The widget forwards mouse events here and repaints from
``overlay_boxes``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from cardstamp.constants import (
    FIELD_BAND_HEIGHT,
    FIELD_MIN_BOX_WIDTH,
    FIELD_PADDING_X,
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    PHOTO_MAX_SIZE,
    PHOTO_MIN_SIZE,
)
from cardstamp.log import get_logger
from cardstamp.models import DesignAsset, FieldKey, StudentRecord
from cardstamp.overlay_model import OverlayModel
from cardstamp.records import FIELD_LABELS, resolve_field_text
from cardstamp.render.typography import load_font, text_width

_log = get_logger("canvas")

KIND_PHOTO = "photo"
KIND_FIELD = "field"

HANDLE_MARGIN = 6
HANDLES = ("nw", "n", "ne", "e", "se", "s", "sw", "w")

MeasureText = Callable[[str, int, str], float]


def _pil_measure(text: str, font_size: int, family: str) -> float:
    return float(text_width(text, load_font(None, font_size, family=family)))


@dataclass(frozen=True, slots=True)
class OverlayBox:
    kind: str
    overlay_id: int | None
    x: float
    y: float
    width: float
    height: float
    text: str = ""
    font_size: int = 0
    font_color: str = ""

    @property
    def rect(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def handle_points(self) -> dict[str, tuple[float, float]]:
        left, top = self.x, self.y
        right, bottom = self.x + self.width, self.y + self.height
        mid_x, mid_y = (left + right) / 2.0, (top + bottom) / 2.0
        return {
            "nw": (left, top),
            "n": (mid_x, top),
            "ne": (right, top),
            "e": (right, mid_y),
            "se": (right, bottom),
            "s": (mid_x, bottom),
            "sw": (left, bottom),
            "w": (left, mid_y),
        }


@dataclass(slots=True)
class FieldStyleMenu:
    """Inline menu opened by double-activating a field overlay."""

    overlay_id: int
    anchor: tuple[float, float]
    field_options: tuple[tuple[str, str], ...] = tuple((key.value, label) for key, label in FIELD_LABELS.items())
    font_size_range: tuple[int, int] = (FONT_SIZE_MIN, FONT_SIZE_MAX)


@dataclass(slots=True)
class _Gesture:
    mode: str
    kind: str
    overlay_id: int | None
    start_pointer: tuple[float, float]
    start_rect: tuple[float, float, float, float]
    handle: str = ""
    current: tuple[float, float] | None = None


def _resize_axis(start: float, length: float, delta: float, edge: str | None, limit: float | None) -> tuple[float, float]:
    if edge is None:
        return start, length
    if edge == "end":
        room = (limit - start) if limit is not None else float(PHOTO_MAX_SIZE)
        upper = max(float(PHOTO_MIN_SIZE), min(float(PHOTO_MAX_SIZE), room))
        return start, max(float(PHOTO_MIN_SIZE), min(upper, length + delta))
    far = start + length
    upper = max(float(PHOTO_MIN_SIZE), min(float(PHOTO_MAX_SIZE), far))
    new_length = max(float(PHOTO_MIN_SIZE), min(upper, length - delta))
    return far - new_length, new_length


def _clamp_origin(value: float, size: float, limit: float | None) -> float:
    if limit is None:
        return value
    return max(0.0, min(max(0.0, limit - size), value))


class TemplateCanvasController:
    def __init__(
        self,
        model: OverlayModel,
        design: DesignAsset | None = None,
        *,
        measure_text: MeasureText | None = None,
    ) -> None:
        self.model = model
        self.design = design
        self._measure_text = measure_text or _pil_measure
        self._preview_size: tuple[int, int] = design.preview_size if design is not None else (0, 0)
        self._records: list[StudentRecord] = []
        self._gesture: _Gesture | None = None
        self.menu: FieldStyleMenu | None = None

    # -- state ---------------------------------------------------------

    def set_design(self, design: DesignAsset | None) -> None:
        self.design = design
        self._gesture = None
        self.menu = None
        if design is not None and design.is_measured:
            self._preview_size = design.preview_size

    def set_preview_size(self, width: int, height: int) -> None:
        self._preview_size = (max(0, int(width)), max(0, int(height)))
        if self.design is not None:
            self.design.set_preview_size(*self._preview_size)

    @property
    def preview_size(self) -> tuple[int, int]:
        return self._preview_size

    def set_records(self, records: Sequence[StudentRecord]) -> None:
        self._records = list(records)

    @property
    def preview_record(self) -> StudentRecord | None:
        return self._records[0] if self._records else None

    @property
    def is_dragging(self) -> bool:
        return self._gesture is not None and self._gesture.mode == "drag"

    def _bounds(self) -> tuple[float | None, float | None]:
        width, height = self._preview_size
        if width <= 0 or height <= 0:
            return None, None
        return float(width), float(height)

    # -- layout --------------------------------------------------------

    def _field_text(self, field: FieldKey, record: StudentRecord | None) -> str:
        if record is None:
            return f"{{{FIELD_LABELS[field]}}}"
        return resolve_field_text(record, field)

    def overlay_boxes(self, record: StudentRecord | None = None) -> list[OverlayBox]:
        """Preview-space boxes in paint order: photo first, then fields."""
        record = record if record is not None else self.preview_record
        boxes: list[OverlayBox] = []
        photo = self.model.photo
        if photo is not None and record is not None and record.has_photo:
            boxes.append(OverlayBox(KIND_PHOTO, None, photo.x, photo.y, photo.width, photo.height))
        for overlay in self.model.fields:
            text = self._field_text(overlay.field, record)
            measured = self._measure_text(text, overlay.font_size, self.model.font_family) if text else 0.0
            width = max(float(FIELD_MIN_BOX_WIDTH), measured + (FIELD_PADDING_X * 2))
            boxes.append(
                OverlayBox(
                    KIND_FIELD,
                    overlay.id,
                    overlay.x,
                    overlay.y,
                    width,
                    float(FIELD_BAND_HEIGHT),
                    text=text,
                    font_size=overlay.font_size,
                    font_color=overlay.font_color,
                )
            )
        return boxes

    def box_at(self, px: float, py: float) -> OverlayBox | None:
        for box in reversed(self.overlay_boxes()):
            if box.contains(px, py):
                return box
        return None

    def handle_at(self, px: float, py: float) -> str | None:
        boxes = self.overlay_boxes()
        if not boxes or boxes[0].kind != KIND_PHOTO:
            return None
        for name, (hx, hy) in boxes[0].handle_points().items():
            if abs(px - hx) <= HANDLE_MARGIN and abs(py - hy) <= HANDLE_MARGIN:
                return name
        return None

    def cursor_hint(self, px: float, py: float) -> str | None:
        """Handle name, ``"move"`` over an overlay, or None."""
        if self._gesture is not None:
            return self._gesture.handle or "move"
        handle = self.handle_at(px, py)
        if handle:
            return handle
        return "move" if self.box_at(px, py) is not None else None

    def drag_box(self) -> OverlayBox | None:
        """Ghost rectangle for an in-progress drag, already clamped."""
        gesture = self._gesture
        if gesture is None or gesture.mode != "drag" or gesture.current is None:
            return None
        x, y = self._drag_target(gesture, *gesture.current)
        _sx, _sy, width, height = gesture.start_rect
        return OverlayBox(gesture.kind, gesture.overlay_id, x, y, width, height)

    # -- pointer protocol ----------------------------------------------

    def press(self, px: float, py: float) -> bool:
        self.menu = None
        handle = self.handle_at(px, py)
        if handle and self.model.photo is not None:
            self._gesture = _Gesture("resize", KIND_PHOTO, None, (px, py), self.model.photo.rect, handle=handle)
            return True
        box = self.box_at(px, py)
        if box is None:
            self._gesture = None
            return False
        self._gesture = _Gesture("drag", box.kind, box.overlay_id, (px, py), box.rect, current=(px, py))
        return True

    def move(self, px: float, py: float) -> bool:
        gesture = self._gesture
        if gesture is None:
            return False
        if gesture.mode == "drag":
            gesture.current = (px, py)
            return True
        self._apply_resize(gesture, px, py)
        return True

    def release(self, px: float, py: float) -> bool:
        gesture = self._gesture
        self._gesture = None
        if gesture is None:
            return False
        if gesture.mode == "resize":
            self._apply_resize(gesture, px, py)
            return True
        x, y = self._drag_target(gesture, px, py)
        if gesture.kind == KIND_PHOTO:
            self.model.update_photo((x, y))
        elif gesture.overlay_id is not None:
            self.model.update_field(gesture.overlay_id, position=(x, y))
        _log.debug("%s overlay moved to (%.1f, %.1f)", gesture.kind, x, y)
        return True

    def cancel(self) -> None:
        self._gesture = None

    def _drag_target(self, gesture: _Gesture, px: float, py: float) -> tuple[float, float]:
        start_x, start_y, width, height = gesture.start_rect
        x = start_x + (px - gesture.start_pointer[0])
        y = start_y + (py - gesture.start_pointer[1])
        limit_w, limit_h = self._bounds()
        return _clamp_origin(x, width, limit_w), _clamp_origin(y, height, limit_h)

    def _apply_resize(self, gesture: _Gesture, px: float, py: float) -> None:
        start_x, start_y, start_w, start_h = gesture.start_rect
        dx = px - gesture.start_pointer[0]
        dy = py - gesture.start_pointer[1]
        handle = gesture.handle
        edge_x = "end" if "e" in handle else ("start" if "w" in handle else None)
        edge_y = "end" if "s" in handle else ("start" if "n" in handle else None)
        limit_w, limit_h = self._bounds()
        x, width = _resize_axis(start_x, start_w, dx, edge_x, limit_w)
        y, height = _resize_axis(start_y, start_h, dy, edge_y, limit_h)
        self.model.update_photo((x, y), (width, height))

    # -- style menu ----------------------------------------------------

    def double_activate(self, px: float, py: float) -> FieldStyleMenu | None:
        self._gesture = None
        box = self.box_at(px, py)
        if box is None or box.kind != KIND_FIELD or box.overlay_id is None:
            self.menu = None
            return None
        self.menu = FieldStyleMenu(overlay_id=box.overlay_id, anchor=(px, py))
        return self.menu

    def close_menu(self) -> None:
        self.menu = None

    def menu_choose_field(self, field: FieldKey | str) -> None:
        if self.menu is None:
            return
        self.model.update_field(self.menu.overlay_id, field=field)
        self.menu = None

    def menu_set_font_color(self, color: str) -> None:
        if self.menu is not None:
            self.model.update_field(self.menu.overlay_id, font_color=color)

    def menu_set_font_size(self, size: int) -> None:
        if self.menu is not None:
            self.model.update_field(self.menu.overlay_id, font_size=size)
