import base64
import io
import struct
import zlib
from pathlib import Path

import pytest
from PIL import Image

from cardstamp.decoders.image_decoder import decode_photo, load_design_asset


def _png_bytes(color: tuple[int, int, int], size: tuple[int, int] = (6, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_load_design_asset_reads_image(tmp_path: Path) -> None:
    path = tmp_path / "design.png"
    Image.new("RGBA", (300, 190), (0, 0, 255, 128)).save(path)
    asset = load_design_asset(path)
    assert asset.is_image
    assert asset.natural_size == (300, 190)
    assert asset.image is not None and asset.image.mode == "RGBA"


def test_load_design_asset_accepts_document_as_non_image(tmp_path: Path) -> None:
    path = tmp_path / "design.pdf"
    path.write_bytes(b"%PDF-1.4\n%%EOF\n")
    asset = load_design_asset(path)
    assert not asset.is_image
    assert asset.image is None


def test_load_design_asset_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "design.png"
    path.write_bytes(b"not an image")
    with pytest.raises(RuntimeError):
        load_design_asset(path)


def test_decode_photo_from_data_uri() -> None:
    encoded = base64.b64encode(_png_bytes((255, 0, 0))).decode("ascii")
    photo = decode_photo(f"data:image/png;base64,{encoded}")
    assert photo is not None
    assert photo.mode == "RGB"
    assert photo.size == (6, 4)
    assert photo.getpixel((0, 0)) == (255, 0, 0)


def test_decode_photo_from_bare_base64() -> None:
    encoded = base64.b64encode(_png_bytes((0, 255, 0))).decode("ascii")
    photo = decode_photo(encoded)
    assert photo is not None
    assert photo.getpixel((1, 1)) == (0, 255, 0)


def test_decode_photo_from_relative_path(tmp_path: Path) -> None:
    (tmp_path / "photos").mkdir()
    (tmp_path / "photos" / "ben.png").write_bytes(_png_bytes((0, 0, 255)))
    photo = decode_photo("photos/ben.png", base_dir=tmp_path)
    assert photo is not None
    assert photo.getpixel((0, 0)) == (0, 0, 255)


@pytest.mark.parametrize("value", [None, "", "   ", "data:image/png;base64,AAAA", "missing/photo.png"])
def test_decode_photo_failures_yield_none(value: str | None) -> None:
    assert decode_photo(value) is None


def _png_chunk(kind: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))


def _oversized_png_data_uri(width: int = 20000, height: int = 20000) -> str:
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    data = b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", header) + _png_chunk(b"IEND", b"")
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def test_decode_photo_rejects_decompression_bomb() -> None:
    assert decode_photo(_oversized_png_data_uri()) is None


def test_load_design_asset_rejects_decompression_bomb(tmp_path: Path) -> None:
    path = tmp_path / "design.png"
    path.write_bytes(base64.b64decode(_oversized_png_data_uri().split(",", 1)[1]))
    with pytest.raises(RuntimeError):
        load_design_asset(path)
