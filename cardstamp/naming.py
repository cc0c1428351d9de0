from __future__ import annotations

import re
from pathlib import Path

from cardstamp.constants import ARCHIVE_ENTRY_SUFFIX, ARCHIVE_IMAGE_FORMAT
from cardstamp.models import StudentRecord

NON_ALNUM_CHAR = re.compile(r"[^A-Za-z0-9]")
INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def sanitize_display_name(value: str | None, fallback: str = "student") -> str:
    # One "_" per replaced character, no collapsing: distinct names may collide.
    text = (value or "").strip()
    if not text:
        return fallback
    return NON_ALNUM_CHAR.sub("_", text)


def sanitize_filename(value: str, fallback: str = "output") -> str:
    text = INVALID_FILENAME_CHARS.sub("_", value).strip()
    text = text.strip(" .")
    return text or fallback


def build_archive_entry_name(record: StudentRecord, extension: str = ARCHIVE_IMAGE_FORMAT) -> str:
    ext = extension.lower().lstrip(".")
    return f"{sanitize_display_name(record.display_name)}{ARCHIVE_ENTRY_SUFFIX}.{ext}"


def ensure_container_path(target: Path, default_name: str) -> Path:
    """Resolve a directory or suffix-less path to a concrete container file path."""
    expected_suffix = Path(default_name).suffix.lower()
    if target.exists() and target.is_dir():
        return target / default_name
    name = sanitize_filename(target.name, fallback=default_name)
    path = target.with_name(name)
    if path.suffix.lower() != expected_suffix:
        path = path.with_suffix(expected_suffix)
    return path
