from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from cardstamp.config import get_config_path
from cardstamp.constants import (
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    FIELD_DEFAULT_X,
    FIELD_FIRST_Y,
    FONT_FAMILIES,
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    PHOTO_DEFAULT_RECT,
    PHOTO_MAX_SIZE,
    PHOTO_MIN_SIZE,
)
from cardstamp.log import get_logger
from cardstamp.models import PRIMARY_NAME_FIELD, FieldKey
from cardstamp.render.typography import safe_color

_log = get_logger("template")

TEMPLATE_SUFFIX = ".json"


def _clamp_int(value: Any, minimum: int, maximum: int, fallback: int) -> int:
    try:
        parsed = int(float(value))
    except (TypeError, ValueError):
        parsed = fallback
    return max(minimum, min(maximum, parsed))


def _as_float(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def _normalize_field_key(value: Any) -> str:
    try:
        return FieldKey.parse(value).value
    except ValueError:
        _log.warning("template field %r is not a record attribute; using %s", value, PRIMARY_NAME_FIELD.value)
        return PRIMARY_NAME_FIELD.value


def _normalize_position(data: dict[str, Any], fallback: tuple[float, float]) -> dict[str, float]:
    position = data.get("position")
    if not isinstance(position, dict):
        position = {"x": data.get("x"), "y": data.get("y")}
    return {
        "x": round(_as_float(position.get("x"), fallback[0]), 2),
        "y": round(_as_float(position.get("y"), fallback[1]), 2),
    }


def _normalize_field(data: dict[str, Any], field_id: int) -> dict[str, Any]:
    return {
        "id": field_id,
        "field": _normalize_field_key(data.get("field")),
        "position": _normalize_position(data, (FIELD_DEFAULT_X, FIELD_FIRST_Y)),
        "font_size": _clamp_int(data.get("font_size"), FONT_SIZE_MIN, FONT_SIZE_MAX, DEFAULT_FONT_SIZE),
        "font_color": safe_color(str(data.get("font_color") or ""), DEFAULT_FONT_COLOR),
    }


def _default_field(field_id: int = 0) -> dict[str, Any]:
    return _normalize_field({}, field_id)


def _normalize_photo(value: Any) -> dict[str, Any] | None:
    if value is None or value is False:
        return None
    data = value if isinstance(value, dict) else {}
    size = data.get("size")
    if not isinstance(size, dict):
        size = {"width": data.get("width"), "height": data.get("height")}
    default_x, default_y, default_w, default_h = PHOTO_DEFAULT_RECT
    return {
        "position": _normalize_position(data, (default_x, default_y)),
        "size": {
            "width": _clamp_int(size.get("width"), PHOTO_MIN_SIZE, PHOTO_MAX_SIZE, default_w),
            "height": _clamp_int(size.get("height"), PHOTO_MIN_SIZE, PHOTO_MAX_SIZE, default_h),
        },
    }


def _normalize_font_family(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        return DEFAULT_FONT_FAMILY
    for family in FONT_FAMILIES:
        if family.lower() == text.lower():
            return family
    # Installed families outside the menu are kept as typed.
    return text


def normalize_template_payload(payload: dict[str, Any], fallback_name: str = "default") -> dict[str, Any]:
    """Clamp every template value; the result always holds at least one field."""
    fields: list[dict[str, Any]] = []
    used_ids: set[int] = set()
    next_id = 0
    fields_raw = payload.get("fields")
    if isinstance(fields_raw, list):
        for item in fields_raw:
            if not isinstance(item, dict):
                continue
            field_id = _clamp_int(item.get("id"), 0, 1_000_000, -1)
            if field_id < 0 or field_id in used_ids:
                while next_id in used_ids:
                    next_id += 1
                field_id = next_id
            used_ids.add(field_id)
            fields.append(_normalize_field(item, field_id))
    if not fields:
        fields.append(_default_field())

    photo = _normalize_photo(payload.get("photo", {}))
    return {
        "name": str(payload.get("name") or fallback_name),
        "preview_width": _clamp_int(payload.get("preview_width"), 0, 100_000, 0),
        "preview_height": _clamp_int(payload.get("preview_height"), 0, 100_000, 0),
        "font_family": _normalize_font_family(payload.get("font_family")),
        "photo": photo,
        "fields": fields,
    }


def default_template_payload(name: str = "default") -> dict[str, Any]:
    return normalize_template_payload({"name": name}, fallback_name=name)


def template_directory() -> Path:
    return get_config_path().parent / "templates"


def load_template_payload(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError(f"template file is not an object: {path}")
    return normalize_template_payload(raw, fallback_name=path.stem)


def save_template_payload(path: Path, payload: dict[str, Any]) -> Path:
    if path.suffix.lower() != TEMPLATE_SUFFIX:
        path = path.with_suffix(TEMPLATE_SUFFIX)
    normalized = normalize_template_payload(payload, fallback_name=path.stem)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(normalized, ensure_ascii=False, indent=2), encoding="utf-8")
    _log.info("template saved: %s", path)
    return path


def list_template_names(template_dir: Path) -> list[str]:
    if not template_dir.is_dir():
        return []
    return [path.stem for path in sorted(template_dir.glob(f"*{TEMPLATE_SUFFIX}")) if path.is_file()]


def scale_template_payload(payload: dict[str, Any], preview_size: tuple[int, int]) -> dict[str, Any]:
    """Re-express a normalized payload against another preview size.

    Payloads without a recorded preview size are returned unchanged.
    """
    source_w = int(payload.get("preview_width") or 0)
    source_h = int(payload.get("preview_height") or 0)
    target_w, target_h = preview_size
    if source_w <= 0 or source_h <= 0 or target_w <= 0 or target_h <= 0:
        return payload
    if (source_w, source_h) == (target_w, target_h):
        return payload
    fx = target_w / float(source_w)
    fy = target_h / float(source_h)
    scaled = json.loads(json.dumps(payload))
    scaled["preview_width"] = int(target_w)
    scaled["preview_height"] = int(target_h)
    for item in scaled["fields"]:
        item["position"] = {"x": round(item["position"]["x"] * fx, 2), "y": round(item["position"]["y"] * fy, 2)}
    photo = scaled.get("photo")
    if photo is not None:
        photo["position"] = {"x": round(photo["position"]["x"] * fx, 2), "y": round(photo["position"]["y"] * fy, 2)}
        photo["size"] = {
            "width": _clamp_int(photo["size"]["width"] * fx, PHOTO_MIN_SIZE, PHOTO_MAX_SIZE, PHOTO_MIN_SIZE),
            "height": _clamp_int(photo["size"]["height"] * fy, PHOTO_MIN_SIZE, PHOTO_MAX_SIZE, PHOTO_MIN_SIZE),
        }
    return scaled
