# Font lookup and single-line text fitting for card overlays.
from __future__ import annotations

import os
import platform
import re
from functools import lru_cache
from pathlib import Path

from PIL import ImageColor, ImageDraw, ImageFont

from cardstamp.log import get_logger

_log = get_logger("typography")

_FONT_FILE_SUFFIXES = {".ttf", ".ttc", ".otf", ".otc"}
# Overlay text is drawn semi-bold; prefer heavier faces when a family ships several.
_WEIGHT_PREFERENCE = ("semibold", "demibold", "bold", "medium", "regular", "")
# Tried in order when neither an explicit file nor the template family is installed.
_FALLBACK_FAMILIES = ("Segoe UI", "Arial", "Helvetica", "DejaVu Sans", "Liberation Sans")
ELLIPSIS = "..."


def safe_color(value: str, fallback: str) -> str:
    text = (value or "").strip()
    if not text:
        return fallback
    try:
        ImageColor.getrgb(text)
    except ValueError:
        return fallback
    return text


def _font_roots() -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        roots = [Path(os.environ.get("WINDIR", r"C:\Windows")) / "Fonts"]
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            roots.append(Path(local_app_data) / "Microsoft" / "Windows" / "Fonts")
        return roots
    if "darwin" in system:
        return [Path("/System/Library/Fonts"), Path("/Library/Fonts"), Path.home() / "Library" / "Fonts"]
    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path.home() / ".fonts",
        Path.home() / ".local" / "share" / "fonts",
    ]


@lru_cache(maxsize=1)
def list_available_font_paths() -> tuple[Path, ...]:
    found: dict[str, Path] = {}
    for root in _font_roots():
        try:
            if not root.is_dir():
                continue
            for candidate in root.rglob("*"):
                if candidate.suffix.lower() in _FONT_FILE_SUFFIXES:
                    found.setdefault(str(candidate).lower(), candidate)
        except OSError as exc:
            _log.debug("font directory %s skipped: %s", root, exc)
    return tuple(sorted(found.values(), key=lambda path: (path.stem.lower(), str(path).lower())))


def _squash(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


@lru_cache(maxsize=64)
def resolve_font_family(family: str | None) -> Path | None:
    """Map a family name such as "Times New Roman" to an installed font file."""
    wanted = _squash(family or "")
    if not wanted:
        return None
    matches = [path for path in list_available_font_paths() if _squash(path.stem).startswith(wanted)]
    if not matches:
        return None
    for weight in _WEIGHT_PREFERENCE:
        for path in matches:
            if _squash(path.stem) == wanted + weight:
                return path
    return matches[0]


def _font_candidates(font_path: Path | None, family: str | None) -> list[Path]:
    candidates = [font_path] if font_path else []
    for name in (family, *_FALLBACK_FAMILIES):
        resolved = resolve_font_family(name)
        if resolved is not None and resolved not in candidates:
            candidates.append(resolved)
    return candidates


def load_font(font_path: Path | None, size: int, family: str | None = None) -> ImageFont.ImageFont:
    size = max(1, int(size))
    for candidate in _font_candidates(font_path, family):
        try:
            return ImageFont.truetype(str(candidate), size=size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def text_width(text: str, font: ImageFont.ImageFont) -> int:
    if not text:
        return 0
    left, _top, right, _bottom = font.getbbox(text)
    return max(0, int(right - left))


def _drawn_width(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont) -> int:
    left, _top, right, _bottom = draw.textbbox((0, 0), text, font=font)
    return right - left


def ellipsize(
    draw: ImageDraw.ImageDraw,
    text: str,
    font: ImageFont.ImageFont,
    max_width: int,
) -> str:
    """Longest prefix of ``text`` plus "..." that fits ``max_width``; "" when not even "..." fits."""
    if not text or max_width <= 0:
        return ""
    if _drawn_width(draw, text, font) <= max_width:
        return text
    low, high = 0, len(text) - 1
    best = ""
    while low <= high:
        cut = (low + high) // 2
        candidate = text[:cut].rstrip() + ELLIPSIS
        if _drawn_width(draw, candidate, font) <= max_width:
            best = candidate
            low = cut + 1
        else:
            high = cut - 1
    return best
