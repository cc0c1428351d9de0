"""editor_exporter.py – _CardStampExporterMixin

download_archive / download_document / _run_export.
Mixed into CardStampEditorWindow via multiple inheritance.
"""
from __future__ import annotations

from pathlib import Path

from PyQt6.QtWidgets import QApplication, QFileDialog, QMessageBox

from cardstamp.errors import CardStampError
from cardstamp.export import BatchExporter, ExportOptions
from cardstamp.log import get_logger

_log = get_logger("gui.export")


class _CardStampExporterMixin:
    """Mixin: download_archive, download_document, _run_export."""

    def _export_options(self) -> ExportOptions:
        options = ExportOptions.from_config(self.config)
        options.photo_base_dir = self.records_base_dir
        return options

    def _exporter(self) -> BatchExporter:
        return BatchExporter(self.design, self.overlay_model, self._export_options())

    def download_archive(self) -> None:
        self._run_export("archive")

    def download_document(self) -> None:
        self._run_export("document")

    def _run_export(self, kind: str) -> None:
        records = self.selected_records()
        exporter = self._exporter()
        if not exporter.can_export(records):
            self._set_status("Upload an image design and select at least one record first.")
            return

        options = exporter.options
        if kind == "archive":
            default_name, file_filter = options.archive_name, "ZIP Archive (*.zip);;All Files (*.*)"
        else:
            default_name, file_filter = options.document_name, "PDF Document (*.pdf);;All Files (*.*)"
        file_path, _ = QFileDialog.getSaveFileName(self, "Save ID cards", default_name, file_filter)
        if not file_path:
            return

        def _progress(index: int, total: int, name: str) -> None:
            self._set_status(f"Rendering {index + 1}/{total}: {name or 'unnamed'}")
            QApplication.processEvents()

        self._set_export_enabled(False)
        try:
            if kind == "archive":
                result = exporter.export_archive(records, Path(file_path), progress=_progress)
            else:
                result = exporter.export_document(records, Path(file_path), progress=_progress)
        except CardStampError as exc:
            _log.error("%s export failed: %s", kind, exc)
            self._show_error("Export failed", str(exc))
            self._set_status(f"Export failed: {exc}")
            return
        finally:
            self._refresh_export_buttons()

        if result is None:
            self._set_status("Nothing exported.")
            return
        if result.skipped:
            preview = "\n".join(result.skipped[:8])
            if len(result.skipped) > 8:
                preview += f"\n... and {len(result.skipped) - 8} more"
            QMessageBox.warning(self, "Export", f"Rendered {result.rendered}, skipped {len(result.skipped)}\n\n{preview}")
        self._set_status(f"Exported {result.rendered} card(s): {result.target}")
