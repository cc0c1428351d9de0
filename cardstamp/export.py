"""Batch export: one rendered card per record, packed into a ZIP archive or a PDF.

Records are processed strictly in input order, one at a time. The container is
assembled in memory and only written out after it has been finalised, so an
aborted batch never leaves a partial archive or document behind.
"""
from __future__ import annotations

import io
import os
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Sequence

from PIL import Image
from reportlab.lib.pagesizes import A4, LETTER, landscape, portrait
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas

from cardstamp.constants import (
    ARCHIVE_IMAGE_FORMAT,
    DEFAULT_ARCHIVE_NAME,
    DEFAULT_DOCUMENT_NAME,
    RECORD_ERROR_ABORT,
    RECORD_ERROR_SKIP,
)
from cardstamp.errors import ExportError, RecordRenderError
from cardstamp.log import get_logger
from cardstamp.models import DesignAsset, ExportResult, OverlaySnapshot, StudentRecord
from cardstamp.naming import build_archive_entry_name, ensure_container_path
from cardstamp.overlay_model import OverlayModel
from cardstamp.render.compositor import render_card
from cardstamp.render.image_modes import fit_within
from cardstamp.render.transform import CoordinateTransform

_log = get_logger("export")

ProgressCallback = Callable[[int, int, str], None]
ExportTarget = Path | BinaryIO | None

_PAGE_SIZES = {"A4": A4, "LETTER": LETTER}


@dataclass(slots=True)
class ExportOptions:
    font_path: Path | None = None
    archive_name: str = DEFAULT_ARCHIVE_NAME
    document_name: str = DEFAULT_DOCUMENT_NAME
    page_size: str = "A4"
    page_orientation: str = "portrait"
    page_margin_pt: float = 20.0
    on_record_error: str = RECORD_ERROR_ABORT
    photo_base_dir: Path | None = None

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "ExportOptions":
        font_path = cfg.get("font_path")
        return cls(
            font_path=Path(font_path) if font_path else None,
            archive_name=str(cfg.get("archive_name") or DEFAULT_ARCHIVE_NAME),
            document_name=str(cfg.get("document_name") or DEFAULT_DOCUMENT_NAME),
            page_size=str(cfg.get("page_size") or "A4"),
            page_orientation=str(cfg.get("page_orientation") or "portrait"),
            page_margin_pt=float(cfg.get("page_margin_pt", 20.0)),
            on_record_error=str(cfg.get("on_record_error") or RECORD_ERROR_ABORT),
        )

    def pagesize(self) -> tuple[float, float]:
        base = _PAGE_SIZES.get(self.page_size.upper(), A4)
        if self.page_orientation == "landscape":
            return landscape(base)
        return portrait(base)


def _encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def _write_atomically(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=path.suffix, dir=str(path.parent))
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)


class BatchExporter:
    """Run the compositor over an ordered record list and aggregate the artifacts."""

    def __init__(
        self,
        design: DesignAsset | None,
        model: OverlayModel,
        options: ExportOptions | None = None,
    ) -> None:
        self.design = design
        self.model = model
        self.options = options or ExportOptions()

    def can_export(self, records: Sequence[StudentRecord]) -> bool:
        return self.design is not None and self.design.is_image and len(records) > 0

    def _check_preconditions(self, records: Sequence[StudentRecord], kind: str) -> DesignAsset | None:
        if self.design is None or not self.design.is_image:
            _log.info("%s export skipped: design asset is not an image", kind)
            return None
        if not records:
            _log.info("%s export skipped: no records selected", kind)
            return None
        design = self.design
        # Raises PreviewNotMeasuredError before any work is done.
        CoordinateTransform.for_design(design)
        return design

    def _iter_artifacts(
        self,
        design: DesignAsset,
        records: Sequence[StudentRecord],
        snapshot: OverlaySnapshot,
        skipped: list[str],
        progress: ProgressCallback | None,
    ):
        total = len(records)
        for index, record in enumerate(records):
            name = record.display_name
            if progress is not None:
                progress(index, total, name)
            try:
                artifact = render_card(
                    design,
                    snapshot,
                    record,
                    font_path=self.options.font_path,
                    photo_base_dir=self.options.photo_base_dir,
                )
            except MemoryError as exc:
                raise ExportError(f"rendering surface could not be allocated: {exc}") from exc
            except Exception as exc:
                failure = RecordRenderError(name, exc)
                if self.options.on_record_error == RECORD_ERROR_SKIP:
                    _log.warning("record skipped: %s", failure)
                    skipped.append(name)
                    continue
                raise ExportError(f"export aborted at record {index + 1}/{total}: {failure}") from exc
            yield record, artifact

    def _emit(self, data: bytes, target: ExportTarget, default_name: str) -> Path | None:
        if target is None:
            return None
        try:
            if isinstance(target, Path):
                path = ensure_container_path(target, default_name)
                _write_atomically(path, data)
                return path
            target.write(data)
        except OSError as exc:
            raise ExportError(f"could not write {default_name}: {exc}") from exc
        return None

    def export_archive(
        self,
        records: Sequence[StudentRecord],
        target: ExportTarget = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> ExportResult | None:
        """ZIP of ``<name>_idcard.png`` entries; a colliding name replaces the earlier entry."""
        design = self._check_preconditions(records, "archive")
        if design is None:
            return None
        snapshot = self.model.snapshot()
        skipped: list[str] = []
        entries: dict[str, bytes] = {}
        rendered = 0
        for record, artifact in self._iter_artifacts(design, records, snapshot, skipped, progress):
            entry_name = build_archive_entry_name(record, ARCHIVE_IMAGE_FORMAT)
            if entry_name in entries:
                _log.info("archive entry %s overwritten by a later record", entry_name)
            entries[entry_name] = _encode_png(artifact)
            rendered += 1

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
                for entry_name, data in entries.items():
                    archive.writestr(entry_name, data)
        except (OSError, zipfile.BadZipFile, ValueError) as exc:
            raise ExportError(f"archive could not be finalised: {exc}") from exc
        data = buffer.getvalue()
        path = self._emit(data, target, self.options.archive_name)
        _log.info("archive export done: %d record(s), %d entr(y/ies)", rendered, len(entries))
        return ExportResult(
            kind="archive",
            target=path,
            data=data,
            rendered=rendered,
            entries=len(entries),
            skipped=skipped,
        )

    def export_document(
        self,
        records: Sequence[StudentRecord],
        target: ExportTarget = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> ExportResult | None:
        """One PDF page per record, image scaled down into the margins and centred."""
        design = self._check_preconditions(records, "document")
        if design is None:
            return None
        snapshot = self.model.snapshot()
        skipped: list[str] = []
        page_w, page_h = self.options.pagesize()
        margin = self.options.page_margin_pt
        buffer = io.BytesIO()
        document = pdf_canvas.Canvas(buffer, pagesize=(page_w, page_h))
        document.setTitle("ID cards")
        pages = 0
        for record, artifact in self._iter_artifacts(design, records, snapshot, skipped, progress):
            if pages > 0:
                document.showPage()
            # Card pixels map 1:1 to points, shrunk only when larger than the printable area.
            draw_w, draw_h = fit_within(
                artifact.width,
                artifact.height,
                page_w - (margin * 2),
                page_h - (margin * 2),
            )
            reader = ImageReader(io.BytesIO(_encode_png(artifact)))
            document.drawImage(
                reader,
                (page_w - draw_w) / 2.0,
                (page_h - draw_h) / 2.0,
                width=draw_w,
                height=draw_h,
                mask="auto",
            )
            bookmark = f"card-{pages + 1}"
            document.bookmarkPage(bookmark)
            document.addOutlineEntry(record.display_name or f"Card {pages + 1}", bookmark, level=0)
            pages += 1

        if pages == 0:
            raise ExportError("document could not be finalised: every record failed to render")
        try:
            document.save()
        except Exception as exc:
            raise ExportError(f"document could not be finalised: {exc}") from exc
        data = buffer.getvalue()
        path = self._emit(data, target, self.options.document_name)
        _log.info("document export done: %d page(s)", pages)
        return ExportResult(
            kind="document",
            target=path,
            data=data,
            rendered=pages,
            entries=pages,
            skipped=skipped,
        )
