from __future__ import annotations

import base64
import binascii
import io
import re
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from cardstamp.constants import DOCUMENT_EXTENSIONS, MEDIA_TYPE_DOCUMENT, MEDIA_TYPE_IMAGE
from cardstamp.log import get_logger
from cardstamp.models import DesignAsset

_log = get_logger("decoder")

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


def _decode_standard(source: Path | io.BytesIO) -> Image.Image:
    with Image.open(source) as image:
        image.load()
        transposed = ImageOps.exif_transpose(image)
        mode = "RGBA" if "A" in transposed.getbands() or "transparency" in transposed.info else "RGB"
        return transposed.convert(mode).copy()


def load_design_asset(path: Path) -> DesignAsset:
    """Load an uploaded design; documents are accepted but stay non-image."""
    if path.suffix.lower() in DOCUMENT_EXTENSIONS:
        _log.info("design %s is a document; compositing is unavailable", path.name)
        return DesignAsset(source=path, media_type=MEDIA_TYPE_DOCUMENT, natural_width=0, natural_height=0)
    try:
        image = _decode_standard(path)
    except (UnidentifiedImageError, Image.DecompressionBombError, EOFError, OSError) as exc:
        raise RuntimeError(f"unsupported design file: {path.name} ({exc})") from exc
    return DesignAsset(
        source=path,
        media_type=MEDIA_TYPE_IMAGE,
        natural_width=image.width,
        natural_height=image.height,
        image=image,
    )


def design_asset_from_image(image: Image.Image, source: Path | None = None) -> DesignAsset:
    return DesignAsset(
        source=source,
        media_type=MEDIA_TYPE_IMAGE,
        natural_width=image.width,
        natural_height=image.height,
        image=image,
    )


def _photo_bytes(value: str, base_dir: Path | None) -> bytes:
    match = _DATA_URI.match(value)
    if match:
        payload = match.group("data")
        if match.group("b64"):
            return base64.b64decode(payload, validate=False)
        return payload.encode("latin-1")

    candidate = Path(value)
    if base_dir is not None and not candidate.is_absolute():
        candidate = base_dir / candidate
    try:
        if candidate.is_file():
            return candidate.read_bytes()
    except OSError:
        pass
    # Bare base64 without the data: prefix.
    return base64.b64decode(value, validate=True)


def decode_photo(value: str | None, base_dir: Path | None = None) -> Image.Image | None:
    """Decode a record photo; any failure yields None so the card renders without it."""
    text = (value or "").strip()
    if not text:
        return None
    try:
        data = _photo_bytes(text, base_dir)
        return _decode_standard(io.BytesIO(data)).convert("RGB")
    except (
        binascii.Error,
        ValueError,
        EOFError,
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
    ) as exc:
        preview = text if len(text) <= 48 else f"{text[:45]}..."
        _log.warning("photo could not be decoded (%s): %s", preview, exc)
        return None
