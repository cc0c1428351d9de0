# Record field accessor and record-file loading (the data-access side stays outside the engine).
from __future__ import annotations

import csv
import json
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import yaml

from cardstamp.constants import RECORD_EXTENSIONS
from cardstamp.models import FieldKey, StudentRecord


@dataclass(frozen=True, slots=True)
class RecordField:
    key: FieldKey
    label: str
    aliases: tuple[str, ...] = ()


RECORD_FIELDS: tuple[RecordField, ...] = (
    RecordField(FieldKey.FULL_NAME, "Full Name", ("name", "student_name")),
    RecordField(FieldKey.GR_NUMBER, "GR Number", ("gr_no", "gr")),
    RecordField(FieldKey.ROLL_NUMBER, "Roll Number", ("roll_no", "roll")),
    RecordField(FieldKey.CLASS_NAME, "Class Name", ("class",)),
    RecordField(FieldKey.SECTION, "Section", ("division",)),
    RecordField(FieldKey.ADDRESS, "Address", ()),
    RecordField(FieldKey.DOB, "Date of Birth", ("date_of_birth", "birth_date")),
    RecordField(FieldKey.CONTACT_NUMBER, "Contact Number", ("contact", "phone", "mobile")),
    RecordField(FieldKey.GENDER, "Gender", ("sex",)),
    RecordField(FieldKey.BLOOD_GROUP, "Blood Group", ("blood",)),
)
FIELD_LABELS: dict[FieldKey, str] = {item.key: item.label for item in RECORD_FIELDS}
_PHOTO_ALIASES = ("passport_photo", "photo", "photo_path", "image")
_ID_ALIASES = ("id", "student_id")


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float):
        return math.isnan(value)
    return False


def normalize_text(value: object) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def field_label(key: FieldKey | str) -> str:
    parsed = FieldKey.parse(key)
    return FIELD_LABELS[parsed]


_FIELD_ACCESSORS: dict[FieldKey, Callable[[StudentRecord], str | None]] = {
    FieldKey.FULL_NAME: lambda record: record.full_name,
    FieldKey.GR_NUMBER: lambda record: record.gr_number,
    FieldKey.ROLL_NUMBER: lambda record: record.roll_number,
    FieldKey.CLASS_NAME: lambda record: record.class_name,
    FieldKey.SECTION: lambda record: record.section,
    FieldKey.ADDRESS: lambda record: record.address,
    FieldKey.DOB: lambda record: record.dob,
    FieldKey.CONTACT_NUMBER: lambda record: record.contact_number,
    FieldKey.GENDER: lambda record: record.gender,
    FieldKey.BLOOD_GROUP: lambda record: record.blood_group,
}


def resolve_field_text(record: StudentRecord, key: FieldKey | str) -> str:
    """Return the display string for one bound field; absent values become ""."""
    return normalize_text(_FIELD_ACCESSORS[FieldKey.parse(key)](record))


def _normalize_header(value: Any) -> str:
    return str(value or "").strip().lower().replace(" ", "_").replace("-", "_")


def _first_present(lookup: Mapping[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = lookup.get(name)
        if not _is_missing(value) and str(value).strip():
            return value
    return None


def _resolve_photo_value(value: Any, base_dir: Path | None) -> str | None:
    text = normalize_text(value)
    if not text:
        return None
    if text.startswith("data:") or base_dir is None:
        return text
    candidate = Path(text)
    if not candidate.is_absolute():
        resolved = base_dir / candidate
        if resolved.exists():
            return str(resolved)
    return text


def record_from_mapping(data: Mapping[str, Any], *, base_dir: Path | None = None) -> StudentRecord:
    lookup = {_normalize_header(key): value for key, value in data.items()}
    values: dict[str, str | None] = {}
    for item in RECORD_FIELDS:
        raw = _first_present(lookup, (item.key.value, *item.aliases))
        text = normalize_text(raw)
        values[item.key.value] = text or None
    record_id = normalize_text(_first_present(lookup, _ID_ALIASES))
    photo = _resolve_photo_value(_first_present(lookup, _PHOTO_ALIASES), base_dir)
    return StudentRecord(id=record_id, passport_photo=photo, **values)


def _load_rows(path: Path) -> list[dict[str, Any]]:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            return [dict(row) for row in csv.DictReader(handle)]

    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if isinstance(data, dict):
        data = data.get("students") or data.get("records") or []
    if not isinstance(data, list):
        raise ValueError(f"record file must contain a list of records: {path}")
    return [item for item in data if isinstance(item, dict)]


def load_records(path: Path) -> list[StudentRecord]:
    if path.suffix.lower() not in RECORD_EXTENSIONS:
        raise ValueError(f"unsupported record file: {path.suffix}")
    base_dir = path.resolve(strict=False).parent
    records: list[StudentRecord] = []
    for index, row in enumerate(_load_rows(path)):
        record = record_from_mapping(row, base_dir=base_dir)
        if not record.id:
            record = replace(record, id=str(index + 1))
        records.append(record)
    return records
