# Editable overlay state: one optional photo slot plus an ordered, never-empty list of field overlays.
from __future__ import annotations

import copy
from typing import Any

from cardstamp.constants import (
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    FIELD_DEFAULT_X,
    FIELD_FIRST_Y,
    FIELD_ROW_STEP,
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    PHOTO_MAX_SIZE,
    PHOTO_MIN_SIZE,
)
from cardstamp.log import get_logger
from cardstamp.models import PRIMARY_NAME_FIELD, FieldKey, FieldOverlay, OverlaySnapshot, PhotoOverlay
from cardstamp.render.typography import safe_color

_log = get_logger("overlay_model")

_FIELD_CHANGE_KEYS = frozenset({"field", "x", "y", "position", "font_size", "font_color"})


def clamp_font_size(value: Any, fallback: int = DEFAULT_FONT_SIZE) -> int:
    try:
        parsed = int(round(float(value)))
    except (TypeError, ValueError):
        parsed = fallback
    return max(FONT_SIZE_MIN, min(FONT_SIZE_MAX, parsed))


def clamp_photo_dimension(value: Any, fallback: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        parsed = fallback
    return max(float(PHOTO_MIN_SIZE), min(float(PHOTO_MAX_SIZE), parsed))


def _coerce_float(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def _split_position(position: Any) -> tuple[Any, Any]:
    if isinstance(position, dict):
        return position.get("x"), position.get("y")
    x, y = position
    return x, y


class OverlayModel:
    """Photo slot and field overlays in preview space.

    Field ids are assigned monotonically and never reused. Insertion order is
    paint order: a later overlay is drawn on top of an earlier one.
    """

    def __init__(
        self,
        *,
        font_family: str = DEFAULT_FONT_FAMILY,
        photo: PhotoOverlay | None = None,
        with_default_field: bool = True,
    ) -> None:
        self.font_family = font_family
        self.photo: PhotoOverlay | None = photo if photo is not None else PhotoOverlay()
        self._fields: list[FieldOverlay] = []
        self._next_id = 0
        if with_default_field:
            self._append(FieldOverlay(id=self._take_id(), x=FIELD_DEFAULT_X, y=FIELD_FIRST_Y))

    @property
    def fields(self) -> tuple[FieldOverlay, ...]:
        return tuple(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def _take_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def _append(self, overlay: FieldOverlay) -> None:
        self._fields.append(overlay)
        self._next_id = max(self._next_id, overlay.id + 1)

    def get_field(self, overlay_id: int) -> FieldOverlay:
        for overlay in self._fields:
            if overlay.id == overlay_id:
                return overlay
        raise KeyError(f"no field overlay with id {overlay_id}")

    def _next_default_y(self) -> float:
        if not self._fields:
            return float(FIELD_FIRST_Y)
        return max(overlay.y for overlay in self._fields) + FIELD_ROW_STEP

    def add_field(self) -> int:
        overlay = FieldOverlay(
            id=self._take_id(),
            field=PRIMARY_NAME_FIELD,
            x=FIELD_DEFAULT_X,
            y=self._next_default_y(),
            font_size=DEFAULT_FONT_SIZE,
            font_color=DEFAULT_FONT_COLOR,
        )
        self._fields.append(overlay)
        _log.debug("field overlay added id=%s y=%s", overlay.id, overlay.y)
        return overlay.id

    def remove_field(self, overlay_id: int) -> bool:
        if len(self._fields) <= 1:
            return False
        for index, overlay in enumerate(self._fields):
            if overlay.id == overlay_id:
                del self._fields[index]
                _log.debug("field overlay removed id=%s", overlay_id)
                return True
        return False

    def update_field(self, overlay_id: int, **changes: Any) -> FieldOverlay:
        unknown = set(changes) - _FIELD_CHANGE_KEYS
        if unknown:
            raise TypeError(f"unsupported overlay attributes: {', '.join(sorted(unknown))}")
        overlay = self.get_field(overlay_id)
        if "field" in changes:
            overlay.field = FieldKey.parse(changes["field"])
        if "position" in changes:
            x, y = _split_position(changes["position"])
            overlay.x = _coerce_float(x, overlay.x)
            overlay.y = _coerce_float(y, overlay.y)
        if "x" in changes:
            overlay.x = _coerce_float(changes["x"], overlay.x)
        if "y" in changes:
            overlay.y = _coerce_float(changes["y"], overlay.y)
        if "font_size" in changes:
            overlay.font_size = clamp_font_size(changes["font_size"], overlay.font_size)
        if "font_color" in changes:
            overlay.font_color = safe_color(str(changes["font_color"] or ""), overlay.font_color)
        return overlay

    def update_photo(
        self,
        position: tuple[float, float] | dict[str, Any],
        size: tuple[float, float] | dict[str, Any] | None = None,
    ) -> PhotoOverlay:
        current = self.photo or PhotoOverlay()
        x, y = _split_position(position)
        if size is None:
            width, height = current.width, current.height
        elif isinstance(size, dict):
            width, height = size.get("width"), size.get("height")
        else:
            width, height = size
        self.photo = PhotoOverlay(
            x=_coerce_float(x, current.x),
            y=_coerce_float(y, current.y),
            width=clamp_photo_dimension(width, current.width),
            height=clamp_photo_dimension(height, current.height),
        )
        return self.photo

    def set_photo_enabled(self, enabled: bool) -> None:
        if enabled and self.photo is None:
            self.photo = PhotoOverlay()
        elif not enabled:
            self.photo = None

    def snapshot(self) -> OverlaySnapshot:
        return OverlaySnapshot(
            photo=copy.copy(self.photo) if self.photo is not None else None,
            fields=tuple(copy.copy(overlay) for overlay in self._fields),
            font_family=self.font_family,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "font_family": self.font_family,
            "photo": self.photo.to_dict() if self.photo is not None else None,
            "fields": [overlay.to_dict() for overlay in self._fields],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "OverlayModel":
        """Build a model from a normalized template payload (see template_loader)."""
        photo_raw = payload.get("photo")
        photo: PhotoOverlay | None = None
        if isinstance(photo_raw, dict):
            position = photo_raw.get("position") or {}
            size = photo_raw.get("size") or {}
            photo = PhotoOverlay(
                x=_coerce_float(position.get("x"), 0.0),
                y=_coerce_float(position.get("y"), 0.0),
                width=clamp_photo_dimension(size.get("width"), PHOTO_MIN_SIZE),
                height=clamp_photo_dimension(size.get("height"), PHOTO_MIN_SIZE),
            )
        model = cls(
            font_family=str(payload.get("font_family") or DEFAULT_FONT_FAMILY),
            photo=photo,
            with_default_field=False,
        )
        if photo is None:
            model.photo = None
        for item in payload.get("fields") or []:
            position = item.get("position") or {}
            model._append(
                FieldOverlay(
                    id=int(item["id"]),
                    field=FieldKey.parse(item.get("field")),
                    x=_coerce_float(position.get("x"), FIELD_DEFAULT_X),
                    y=_coerce_float(position.get("y"), FIELD_FIRST_Y),
                    font_size=clamp_font_size(item.get("font_size")),
                    font_color=safe_color(str(item.get("font_color") or ""), DEFAULT_FONT_COLOR),
                )
            )
        if not model._fields:
            model._append(FieldOverlay(id=model._take_id(), x=FIELD_DEFAULT_X, y=FIELD_FIRST_Y))
        return model
