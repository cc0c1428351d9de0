from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from PIL import Image

from cardstamp.constants import (
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    MEDIA_TYPE_IMAGE,
    PHOTO_DEFAULT_RECT,
)


class FieldKey(str, Enum):
    FULL_NAME = "full_name"
    GR_NUMBER = "gr_number"
    ROLL_NUMBER = "roll_number"
    CLASS_NAME = "class_name"
    SECTION = "section"
    ADDRESS = "address"
    DOB = "dob"
    CONTACT_NUMBER = "contact_number"
    GENDER = "gender"
    BLOOD_GROUP = "blood_group"

    @classmethod
    def parse(cls, value: Any) -> "FieldKey":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"unknown record field: {value!r}") from exc


PRIMARY_NAME_FIELD = FieldKey.FULL_NAME


@dataclass(frozen=True, slots=True)
class StudentRecord:
    id: str = ""
    full_name: str | None = None
    gr_number: str | None = None
    roll_number: str | None = None
    class_name: str | None = None
    section: str | None = None
    address: str | None = None
    dob: str | None = None
    contact_number: str | None = None
    gender: str | None = None
    blood_group: str | None = None
    passport_photo: str | None = None

    @property
    def display_name(self) -> str:
        return (self.full_name or "").strip()

    @property
    def has_photo(self) -> bool:
        return bool((self.passport_photo or "").strip())


@dataclass(slots=True)
class DesignAsset:
    source: Path | None
    media_type: str
    natural_width: int
    natural_height: int
    image: Image.Image | None = None
    preview_width: int = 0
    preview_height: int = 0

    @property
    def is_image(self) -> bool:
        return self.media_type == MEDIA_TYPE_IMAGE and self.image is not None

    @property
    def natural_size(self) -> tuple[int, int]:
        return (self.natural_width, self.natural_height)

    @property
    def preview_size(self) -> tuple[int, int]:
        return (self.preview_width, self.preview_height)

    @property
    def is_measured(self) -> bool:
        return self.preview_width > 0 and self.preview_height > 0

    def set_preview_size(self, width: int, height: int) -> None:
        self.preview_width = max(0, int(width))
        self.preview_height = max(0, int(height))


@dataclass(slots=True)
class PhotoOverlay:
    x: float = PHOTO_DEFAULT_RECT[0]
    y: float = PHOTO_DEFAULT_RECT[1]
    width: float = PHOTO_DEFAULT_RECT[2]
    height: float = PHOTO_DEFAULT_RECT[3]

    @property
    def rect(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": {"x": self.x, "y": self.y},
            "size": {"width": self.width, "height": self.height},
        }


@dataclass(slots=True)
class FieldOverlay:
    id: int
    field: FieldKey = PRIMARY_NAME_FIELD
    x: float = 0.0
    y: float = 0.0
    font_size: int = DEFAULT_FONT_SIZE
    font_color: str = DEFAULT_FONT_COLOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field.value,
            "position": {"x": self.x, "y": self.y},
            "font_size": self.font_size,
            "font_color": self.font_color,
        }


@dataclass(frozen=True, slots=True)
class OverlaySnapshot:
    photo: PhotoOverlay | None
    fields: tuple[FieldOverlay, ...]
    font_family: str = DEFAULT_FONT_FAMILY


@dataclass(slots=True)
class ExportResult:
    kind: str
    target: Path | None
    data: bytes | None
    rendered: int
    entries: int
    skipped: list[str] = field(default_factory=list)
