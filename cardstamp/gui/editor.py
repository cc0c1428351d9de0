from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QApplication,
    QCheckBox,
    QColorDialog,
    QComboBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QSpinBox,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from cardstamp.config import load_config
from cardstamp.constants import (
    FONT_FAMILIES,
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    RECORD_EXTENSIONS,
    SUPPORTED_DESIGN_EXTENSIONS,
)
from cardstamp.decoders.image_decoder import load_design_asset
from cardstamp.gui.canvas_controller import TemplateCanvasController
from cardstamp.gui.editor_exporter import _CardStampExporterMixin
from cardstamp.gui.template_canvas import TemplateCanvas, pil_to_qpixmap, qt_measure_text
from cardstamp.log import get_logger
from cardstamp.models import DesignAsset, StudentRecord
from cardstamp.overlay_model import OverlayModel
from cardstamp.records import FIELD_LABELS, load_records
from cardstamp.render.transform import fit_preview_size
from cardstamp.template_loader import (
    list_template_names,
    load_template_payload,
    save_template_payload,
    scale_template_payload,
    template_directory,
)

_log = get_logger("gui")


def _file_filter(label: str, suffixes: set[str]) -> str:
    patterns = " ".join(f"*{suffix}" for suffix in sorted(suffixes))
    return f"{label} ({patterns});;All Files (*.*)"


class CardStampEditorWindow(_CardStampExporterMixin, QMainWindow):
    def __init__(
        self,
        startup_design: Path | None = None,
        startup_records: Path | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("CardStamp Editor")
        self.resize(1280, 820)
        self.setMinimumSize(1000, 640)

        self.config = config if config is not None else load_config()
        self.design: DesignAsset | None = None
        self.records: list[StudentRecord] = []
        self.records_base_dir: Path | None = None
        self.overlay_model = OverlayModel(font_family=str(self.config["font_family"]))
        self.controller = TemplateCanvasController(self.overlay_model, measure_text=qt_measure_text)

        self._setup_ui()
        self._rebuild_overlay_rows()
        self._refresh_template_names()
        self._refresh_export_buttons()
        self._set_status("Ready. Upload a design to start.")

        if startup_design:
            self.open_design(startup_design)
        if startup_records:
            self.open_records(startup_records)

    # -- layout --------------------------------------------------------

    def _setup_ui(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        root_layout = QHBoxLayout(root)
        root_layout.setContentsMargins(10, 10, 10, 10)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        root_layout.addWidget(splitter)

        left_scroll = QScrollArea()
        left_scroll.setWidgetResizable(True)
        left_scroll.setMinimumWidth(400)
        left_scroll.setMaximumWidth(500)

        left_panel = QWidget()
        left_scroll.setWidget(left_panel)
        left_layout = QVBoxLayout(left_panel)
        left_layout.setContentsMargins(6, 6, 6, 6)
        left_layout.setSpacing(10)

        self._build_design_group(left_layout)
        self._build_records_group(left_layout)
        self._build_overlay_group(left_layout)
        self._build_template_group(left_layout)
        left_layout.addStretch(1)

        right_panel = QWidget()
        right_layout = QVBoxLayout(right_panel)
        right_layout.setContentsMargins(8, 8, 8, 8)
        right_layout.setSpacing(8)

        action_row = QHBoxLayout()
        self.zip_button = QPushButton("Download ZIP")
        self.zip_button.clicked.connect(self.download_archive)
        action_row.addWidget(self.zip_button)
        self.pdf_button = QPushButton("Download PDF")
        self.pdf_button.clicked.connect(self.download_document)
        action_row.addWidget(self.pdf_button)
        action_row.addStretch(1)
        right_layout.addLayout(action_row)

        self.canvas = TemplateCanvas(self.controller)
        self.canvas.overlaysChanged.connect(self._rebuild_overlay_rows)
        canvas_scroll = QScrollArea()
        canvas_scroll.setAlignment(Qt.AlignmentFlag.AlignCenter)
        canvas_scroll.setWidget(self.canvas)
        right_layout.addWidget(canvas_scroll, stretch=1)

        splitter.addWidget(left_scroll)
        splitter.addWidget(right_panel)
        splitter.setStretchFactor(0, 0)
        splitter.setStretchFactor(1, 1)
        splitter.setSizes([440, 840])

        self.setStatusBar(self.statusBar())

    def _build_design_group(self, parent_layout: QVBoxLayout) -> None:
        group = QGroupBox("Design")
        parent_layout.addWidget(group)
        layout = QVBoxLayout(group)

        row = QHBoxLayout()
        upload_btn = QPushButton("Upload Design")
        upload_btn.clicked.connect(self.pick_design)
        row.addWidget(upload_btn)
        row.addStretch(1)
        layout.addLayout(row)

        self.design_path_edit = QLineEdit()
        self.design_path_edit.setReadOnly(True)
        self.design_path_edit.setPlaceholderText("Design path")
        layout.addWidget(self.design_path_edit)

    def _build_records_group(self, parent_layout: QVBoxLayout) -> None:
        group = QGroupBox("Records")
        parent_layout.addWidget(group)
        layout = QVBoxLayout(group)

        row = QHBoxLayout()
        load_btn = QPushButton("Load Records")
        load_btn.clicked.connect(self.pick_records)
        row.addWidget(load_btn)
        self.select_all_check = QCheckBox("Select all")
        self.select_all_check.toggled.connect(self._toggle_all_records)
        row.addWidget(self.select_all_check)
        row.addStretch(1)
        layout.addLayout(row)

        self.records_list = QListWidget()
        self.records_list.setMinimumHeight(140)
        self.records_list.itemChanged.connect(self._on_record_selection_changed)
        layout.addWidget(self.records_list)

    def _build_overlay_group(self, parent_layout: QVBoxLayout) -> None:
        group = QGroupBox("Overlays")
        parent_layout.addWidget(group)
        layout = QVBoxLayout(group)

        top_row = QHBoxLayout()
        top_row.addWidget(QLabel("Font"))
        self.font_combo = QComboBox()
        self.font_combo.setEditable(True)
        self.font_combo.addItems(list(FONT_FAMILIES))
        self.font_combo.setCurrentText(self.overlay_model.font_family)
        self.font_combo.currentTextChanged.connect(self._on_font_family_changed)
        top_row.addWidget(self.font_combo, stretch=1)
        layout.addLayout(top_row)

        toggles = QHBoxLayout()
        self.photo_check = QCheckBox("Photo slot")
        self.photo_check.setChecked(self.overlay_model.photo is not None)
        self.photo_check.toggled.connect(self._on_photo_toggled)
        toggles.addWidget(self.photo_check)
        add_btn = QPushButton("Add Field")
        add_btn.clicked.connect(self.add_field)
        toggles.addWidget(add_btn)
        toggles.addStretch(1)
        layout.addLayout(toggles)

        self.overlay_rows_host = QWidget()
        self.overlay_rows_layout = QVBoxLayout(self.overlay_rows_host)
        self.overlay_rows_layout.setContentsMargins(0, 0, 0, 0)
        self.overlay_rows_layout.setSpacing(4)
        layout.addWidget(self.overlay_rows_host)

    def _build_template_group(self, parent_layout: QVBoxLayout) -> None:
        group = QGroupBox("Template")
        parent_layout.addWidget(group)
        layout = QVBoxLayout(group)

        top_row = QHBoxLayout()
        self.template_combo = QComboBox()
        self.template_combo.setEditable(True)
        top_row.addWidget(self.template_combo, stretch=1)
        load_btn = QPushButton("Load")
        load_btn.clicked.connect(self.load_named_template)
        top_row.addWidget(load_btn)
        save_btn = QPushButton("Save")
        save_btn.clicked.connect(self.save_named_template)
        top_row.addWidget(save_btn)
        layout.addLayout(top_row)

        file_row = QHBoxLayout()
        load_file_btn = QPushButton("Load File")
        load_file_btn.clicked.connect(self.load_template_file)
        file_row.addWidget(load_file_btn)
        file_row.addStretch(1)
        layout.addLayout(file_row)

    # -- overlay rows --------------------------------------------------

    def _rebuild_overlay_rows(self) -> None:
        while self.overlay_rows_layout.count():
            item = self.overlay_rows_layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()

        can_delete = len(self.overlay_model) > 1
        for overlay in self.overlay_model.fields:
            row = QWidget()
            row_layout = QHBoxLayout(row)
            row_layout.setContentsMargins(0, 0, 0, 0)

            field_combo = QComboBox()
            for key, label in FIELD_LABELS.items():
                field_combo.addItem(label, key.value)
            field_combo.setCurrentIndex(max(0, field_combo.findData(overlay.field.value)))
            field_combo.currentIndexChanged.connect(
                lambda _index, oid=overlay.id, combo=field_combo: self._update_field(oid, field=combo.currentData())
            )
            row_layout.addWidget(field_combo, stretch=1)

            size_spin = QSpinBox()
            size_spin.setRange(FONT_SIZE_MIN, FONT_SIZE_MAX)
            size_spin.setSuffix(" px")
            size_spin.setValue(overlay.font_size)
            size_spin.valueChanged.connect(lambda value, oid=overlay.id: self._update_field(oid, font_size=value))
            row_layout.addWidget(size_spin)

            color_btn = QPushButton(overlay.font_color)
            color_btn.setStyleSheet(f"color: {overlay.font_color};")
            color_btn.clicked.connect(lambda _checked=False, oid=overlay.id: self._choose_field_color(oid))
            row_layout.addWidget(color_btn)

            delete_btn = QPushButton("Delete")
            delete_btn.setEnabled(can_delete)
            delete_btn.clicked.connect(lambda _checked=False, oid=overlay.id: self.remove_field(oid))
            row_layout.addWidget(delete_btn)

            self.overlay_rows_layout.addWidget(row)

    def _update_field(self, overlay_id: int, **changes: Any) -> None:
        self.overlay_model.update_field(overlay_id, **changes)
        self.canvas.update()

    def _choose_field_color(self, overlay_id: int) -> None:
        current = self.overlay_model.get_field(overlay_id).font_color
        chosen = QColorDialog.getColor(QColor(current), self, "Font color")
        if not chosen.isValid():
            return
        self._update_field(overlay_id, font_color=chosen.name())
        self._rebuild_overlay_rows()

    def add_field(self) -> None:
        new_id = self.overlay_model.add_field()
        self._rebuild_overlay_rows()
        self.canvas.update()
        self._set_status(f"Field overlay {new_id} added.")

    def remove_field(self, overlay_id: int) -> None:
        if not self.overlay_model.remove_field(overlay_id):
            return
        self._rebuild_overlay_rows()
        self.canvas.update()

    def _on_font_family_changed(self, family: str) -> None:
        self.overlay_model.font_family = family.strip() or self.overlay_model.font_family
        self.canvas.update()

    def _on_photo_toggled(self, enabled: bool) -> None:
        self.overlay_model.set_photo_enabled(enabled)
        self.canvas.update()

    # -- status helpers ------------------------------------------------

    def _set_status(self, message: str) -> None:
        self.statusBar().showMessage(message)

    def _show_error(self, title: str, message: str) -> None:
        QMessageBox.critical(self, title, message)

    def _set_export_enabled(self, enabled: bool) -> None:
        self.zip_button.setEnabled(enabled)
        self.pdf_button.setEnabled(enabled)

    def _refresh_export_buttons(self) -> None:
        self._set_export_enabled(self._exporter().can_export(self.selected_records()))

    # -- design --------------------------------------------------------

    def pick_design(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Upload design",
            "",
            _file_filter("Designs", SUPPORTED_DESIGN_EXTENSIONS),
        )
        if file_path:
            self.open_design(Path(file_path))

    def open_design(self, path: Path) -> None:
        try:
            design = load_design_asset(path)
        except Exception as exc:
            self._show_error("Design Error", str(exc))
            self._set_status(f"Failed to open design: {exc}")
            return

        self.design = design
        self.design_path_edit.setText(str(path))
        self.controller.set_design(design)
        if not design.is_image:
            self.canvas.set_design_pixmap(None, (0, 0))
            self._set_status(f"{path.name} is a document; cards can only be rendered from image designs.")
            self._refresh_export_buttons()
            return

        preview_w, preview_h = fit_preview_size(
            design.natural_size,
            int(self.config["preview_max_width"]),
            int(self.config["preview_max_height"]),
        )
        self.canvas.set_design_pixmap(pil_to_qpixmap(design.image), (int(preview_w), int(preview_h)))
        self._refresh_export_buttons()
        self._set_status(f"Opened design: {path.name} ({design.natural_width}x{design.natural_height})")

    # -- records -------------------------------------------------------

    def pick_records(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Load records",
            "",
            _file_filter("Records", RECORD_EXTENSIONS),
        )
        if file_path:
            self.open_records(Path(file_path))

    def open_records(self, path: Path) -> None:
        try:
            records = load_records(path)
        except Exception as exc:
            self._show_error("Records Error", str(exc))
            self._set_status(f"Failed to load records: {exc}")
            return

        self.records = records
        self.records_base_dir = path.parent
        self.canvas.photo_base_dir = path.parent
        self.canvas.clear_photo_cache()
        self.records_list.blockSignals(True)
        self.records_list.clear()
        for index, record in enumerate(records):
            label = record.display_name or f"Record {index + 1}"
            item = QListWidgetItem(label)
            item.setFlags(item.flags() | Qt.ItemFlag.ItemIsUserCheckable)
            item.setCheckState(Qt.CheckState.Unchecked)
            item.setData(Qt.ItemDataRole.UserRole, index)
            self.records_list.addItem(item)
        self.records_list.blockSignals(False)
        self._on_record_selection_changed()
        self._set_status(f"Loaded {len(records)} record(s) from {path.name}")

    def selected_records(self) -> list[StudentRecord]:
        selected: list[StudentRecord] = []
        for row in range(self.records_list.count()):
            item = self.records_list.item(row)
            if item.checkState() == Qt.CheckState.Checked:
                selected.append(self.records[int(item.data(Qt.ItemDataRole.UserRole))])
        return selected

    def _toggle_all_records(self, checked: bool) -> None:
        state = Qt.CheckState.Checked if checked else Qt.CheckState.Unchecked
        self.records_list.blockSignals(True)
        for row in range(self.records_list.count()):
            self.records_list.item(row).setCheckState(state)
        self.records_list.blockSignals(False)
        self._on_record_selection_changed()

    def _on_record_selection_changed(self, *_args: Any) -> None:
        # Preview follows the first selected record.
        self.controller.set_records(self.selected_records())
        self.canvas.update()
        self._refresh_export_buttons()

    # -- templates -----------------------------------------------------

    def _refresh_template_names(self) -> None:
        current = self.template_combo.currentText()
        self.template_combo.blockSignals(True)
        self.template_combo.clear()
        self.template_combo.addItems(list_template_names(template_directory()))
        self.template_combo.setCurrentText(current or "default")
        self.template_combo.blockSignals(False)

    def _template_payload(self) -> dict[str, Any]:
        payload = self.overlay_model.to_payload()
        payload["name"] = self.template_combo.currentText().strip() or "default"
        payload["preview_width"], payload["preview_height"] = self.controller.preview_size
        return payload

    def _apply_template_payload(self, payload: dict[str, Any]) -> None:
        payload = scale_template_payload(payload, self.controller.preview_size)
        self.overlay_model = OverlayModel.from_payload(payload)
        self.controller.model = self.overlay_model
        self.font_combo.blockSignals(True)
        self.font_combo.setCurrentText(self.overlay_model.font_family)
        self.font_combo.blockSignals(False)
        self.photo_check.blockSignals(True)
        self.photo_check.setChecked(self.overlay_model.photo is not None)
        self.photo_check.blockSignals(False)
        self._rebuild_overlay_rows()
        self.canvas.update()

    def load_named_template(self) -> None:
        name = self.template_combo.currentText().strip()
        if not name:
            return
        self._load_template_path(template_directory() / f"{name}.json")

    def load_template_file(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Load template file",
            str(template_directory()),
            "Template Files (*.json);;All Files (*.*)",
        )
        if file_path:
            self._load_template_path(Path(file_path))

    def _load_template_path(self, path: Path) -> None:
        try:
            payload = load_template_payload(path)
        except Exception as exc:
            self._show_error("Template Error", str(exc))
            self._set_status(f"Template load failed: {exc}")
            return
        self._apply_template_payload(payload)
        self._set_status(f"Loaded template: {path.name}")

    def save_named_template(self) -> None:
        payload = self._template_payload()
        try:
            path = save_template_payload(template_directory() / f"{payload['name']}.json", payload)
        except Exception as exc:
            self._show_error("Save Error", str(exc))
            self._set_status(f"Template save failed: {exc}")
            return
        self._refresh_template_names()
        self._set_status(f"Template saved: {path}")


def launch_gui(startup_design: Path | None = None, startup_records: Path | None = None) -> None:
    app = QApplication.instance() or QApplication(sys.argv)
    window = CardStampEditorWindow(startup_design=startup_design, startup_records=startup_records)
    window.show()
    app.exec()
