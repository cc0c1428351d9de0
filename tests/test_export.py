import base64
import io
import struct
import zipfile
import zlib
from pathlib import Path

import fitz
import pytest
from PIL import Image, ImageChops

import cardstamp.export as export_module
from cardstamp.decoders.image_decoder import design_asset_from_image
from cardstamp.errors import ExportError, PreviewNotMeasuredError
from cardstamp.export import BatchExporter, ExportOptions
from cardstamp.models import DesignAsset, StudentRecord
from cardstamp.overlay_model import OverlayModel
from cardstamp.render.compositor import render_card


def _design(size=(200, 120), preview=(100, 60)) -> DesignAsset:
    design = design_asset_from_image(Image.new("RGB", size, "#DDEEFF"))
    design.set_preview_size(*preview)
    return design


def _model() -> OverlayModel:
    model = OverlayModel()
    model.update_field(0, position=(4, 10))
    return model


def _records(*names: str) -> list[StudentRecord]:
    return [StudentRecord(id=str(index + 1), full_name=name) for index, name in enumerate(names)]


def _entry_image(data: bytes, name: str) -> Image.Image:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return Image.open(io.BytesIO(archive.read(name))).convert("RGB")


def test_archive_has_one_entry_per_unique_name_in_order() -> None:
    exporter = BatchExporter(_design(), _model())
    result = exporter.export_archive(_records("Asha Rao", "Ben Ode", "Chen Li"))
    assert result is not None
    assert result.kind == "archive"
    assert result.rendered == 3
    assert result.entries == 3
    with zipfile.ZipFile(io.BytesIO(result.data)) as archive:
        assert archive.namelist() == ["Asha_Rao_idcard.png", "Ben_Ode_idcard.png", "Chen_Li_idcard.png"]
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in archive.infolist())
    assert _entry_image(result.data, "Ben_Ode_idcard.png").size == (200, 120)


def test_colliding_names_keep_the_last_record() -> None:
    design = _design()
    model = _model()
    model.add_field()
    model.update_field(1, field="roll_number", position=(4, 30))
    records = [
        StudentRecord(id="1", full_name="A B", roll_number="11"),
        StudentRecord(id="2", full_name="A-B", roll_number="22"),
    ]

    result = BatchExporter(design, model).export_archive(records)
    assert result is not None
    assert result.rendered == 2
    assert result.entries == 1
    stored = _entry_image(result.data, "A_B_idcard.png")
    expected = render_card(design, model.snapshot(), records[1])
    assert ImageChops.difference(stored, expected).getbbox() is None


def test_blank_name_falls_back_to_student() -> None:
    result = BatchExporter(_design(), _model()).export_archive([StudentRecord(id="1", full_name="  ")])
    assert result is not None
    with zipfile.ZipFile(io.BytesIO(result.data)) as archive:
        assert archive.namelist() == ["student_idcard.png"]


def test_archive_written_to_directory_uses_default_name(tmp_path: Path) -> None:
    result = BatchExporter(_design(), _model()).export_archive(_records("Asha Rao"), tmp_path)
    assert result is not None
    assert result.target == tmp_path / "idcards.zip"
    assert result.target.read_bytes() == result.data


def test_archive_target_without_suffix_gets_zip(tmp_path: Path) -> None:
    result = BatchExporter(_design(), _model()).export_archive(_records("Asha Rao"), tmp_path / "cards")
    assert result is not None
    assert result.target == tmp_path / "cards.zip"
    assert zipfile.is_zipfile(result.target)


def test_document_has_one_page_per_record_in_order() -> None:
    names = ("Asha Rao", "Ben Ode", "Chen Li")
    result = BatchExporter(_design(), _model()).export_document(_records(*names))
    assert result is not None
    assert result.kind == "document"
    assert result.rendered == 3
    with fitz.open(stream=result.data, filetype="pdf") as document:
        assert document.page_count == 3
        assert [title for _level, title, _page in document.get_toc()] == list(names)
        assert [page for _level, _title, page in document.get_toc()] == [1, 2, 3]
        width, height = document[0].rect.width, document[0].rect.height
        assert width == pytest.approx(595.27, abs=0.5)
        assert height == pytest.approx(841.89, abs=0.5)


def test_document_centres_small_cards_without_upscaling() -> None:
    result = BatchExporter(_design(), _model()).export_document(_records("Asha Rao"))
    assert result is not None
    with fitz.open(stream=result.data, filetype="pdf") as document:
        page = document[0]
        (info,) = page.get_image_info()
        page_w, page_h = page.rect.width, page.rect.height
    x0, y0, x1, y1 = info["bbox"]
    assert x1 - x0 == pytest.approx(200, abs=0.5)
    assert y1 - y0 == pytest.approx(120, abs=0.5)
    assert (x0 + x1) / 2 == pytest.approx(page_w / 2, abs=0.5)
    assert (y0 + y1) / 2 == pytest.approx(page_h / 2, abs=0.5)


def test_document_scales_large_cards_into_margins() -> None:
    design = _design(size=(2000, 1000), preview=(400, 200))
    result = BatchExporter(design, _model()).export_document(_records("Asha Rao"))
    assert result is not None
    with fitz.open(stream=result.data, filetype="pdf") as document:
        (info,) = document[0].get_image_info()
    x0, y0, x1, y1 = info["bbox"]
    assert x0 == pytest.approx(20, abs=0.5)
    assert x1 == pytest.approx(595.27 - 20, abs=0.5)
    assert (x1 - x0) / (y1 - y0) == pytest.approx(2.0, rel=0.01)


def test_landscape_letter_option() -> None:
    options = ExportOptions(page_size="LETTER", page_orientation="landscape")
    result = BatchExporter(_design(), _model(), options).export_document(_records("Asha Rao"))
    assert result is not None
    with fitz.open(stream=result.data, filetype="pdf") as document:
        assert document[0].rect.width == pytest.approx(792, abs=0.5)
        assert document[0].rect.height == pytest.approx(612, abs=0.5)


def test_non_image_design_is_a_noop(tmp_path: Path) -> None:
    design = DesignAsset(source=tmp_path / "design.pdf", media_type="document", natural_width=0, natural_height=0)
    exporter = BatchExporter(design, _model())
    assert exporter.export_archive(_records("Asha Rao"), tmp_path / "out.zip") is None
    assert exporter.export_document(_records("Asha Rao"), tmp_path / "out.pdf") is None
    assert list(tmp_path.iterdir()) == []


def test_empty_record_list_is_a_noop(tmp_path: Path) -> None:
    exporter = BatchExporter(_design(), _model())
    assert exporter.export_archive([], tmp_path / "out.zip") is None
    assert exporter.export_document([], tmp_path / "out.pdf") is None
    assert list(tmp_path.iterdir()) == []


def test_unmeasured_preview_raises_before_rendering() -> None:
    with pytest.raises(PreviewNotMeasuredError):
        BatchExporter(_design(preview=(0, 0)), _model()).export_archive(_records("Asha Rao"))


def _fail_for(name: str, monkeypatch: pytest.MonkeyPatch) -> None:
    real_render = export_module.render_card

    def _render(design, snapshot, record, **kwargs):
        if record.full_name == name:
            raise OSError("font file vanished")
        return real_render(design, snapshot, record, **kwargs)

    monkeypatch.setattr(export_module, "render_card", _render)


def test_record_failure_aborts_without_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _fail_for("Ben Ode", monkeypatch)
    exporter = BatchExporter(_design(), _model())
    with pytest.raises(ExportError, match="Ben Ode"):
        exporter.export_archive(_records("Asha Rao", "Ben Ode", "Chen Li"), tmp_path / "out.zip")
    assert list(tmp_path.iterdir()) == []


def test_record_failure_can_be_skipped(monkeypatch: pytest.MonkeyPatch) -> None:
    _fail_for("Ben Ode", monkeypatch)
    exporter = BatchExporter(_design(), _model(), ExportOptions(on_record_error="skip"))
    result = exporter.export_document(_records("Asha Rao", "Ben Ode", "Chen Li"))
    assert result is not None
    assert result.skipped == ["Ben Ode"]
    with fitz.open(stream=result.data, filetype="pdf") as document:
        assert document.page_count == 2


def test_progress_reports_each_record() -> None:
    seen: list[tuple[int, int, str]] = []
    BatchExporter(_design(), _model()).export_archive(
        _records("Asha Rao", "Ben Ode"),
        progress=lambda index, total, name: seen.append((index, total, name)),
    )
    assert seen == [(0, 2, "Asha Rao"), (1, 2, "Ben Ode")]


def test_snapshot_taken_at_export_start(monkeypatch: pytest.MonkeyPatch) -> None:
    model = _model()
    exporter = BatchExporter(_design(), model)
    positions: list[float] = []
    real_render = export_module.render_card

    def _render(design, snapshot, record, **kwargs):
        positions.append(snapshot.fields[0].x)
        model.update_field(0, x=50)
        return real_render(design, snapshot, record, **kwargs)

    monkeypatch.setattr(export_module, "render_card", _render)
    exporter.export_archive(_records("Asha Rao", "Ben Ode"))
    assert positions == [4, 4]


def test_options_from_config() -> None:
    options = ExportOptions.from_config(
        {
            "font_path": "/fonts/card.ttf",
            "archive_name": "batch.zip",
            "page_size": "LETTER",
            "page_orientation": "landscape",
            "page_margin_pt": 36,
            "on_record_error": "skip",
        }
    )
    assert options.font_path == Path("/fonts/card.ttf")
    assert options.archive_name == "batch.zip"
    assert options.document_name == "idcards.pdf"
    assert options.pagesize() == pytest.approx((792.0, 612.0))
    assert options.page_margin_pt == 36.0
    assert options.on_record_error == "skip"


def _oversized_png_data_uri() -> str:
    def chunk(kind: bytes, payload: bytes) -> bytes:
        return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))

    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    data = b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IEND", b"")
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def test_oversized_photo_does_not_abort_the_batch() -> None:
    records = [
        StudentRecord(id="1", full_name="Asha Rao", passport_photo=_oversized_png_data_uri()),
        StudentRecord(id="2", full_name="Ben Ode"),
    ]
    design = _design()
    model = _model()
    result = BatchExporter(design, model).export_archive(records)
    assert result is not None
    assert result.entries == 2
    assert result.skipped == []
    expected = render_card(design, model.snapshot(), StudentRecord(id="1", full_name="Asha Rao"))
    stored = _entry_image(result.data, "Asha_Rao_idcard.png")
    assert ImageChops.difference(stored, expected).getbbox() is None
