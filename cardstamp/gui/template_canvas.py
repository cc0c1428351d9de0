"""template_canvas.py – TemplateCanvas widget (design preview + draggable overlays)."""
from __future__ import annotations

from pathlib import Path

from PIL import Image
from PyQt6.QtCore import QPoint, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QFont, QFontMetrics, QImage, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QColorDialog, QMenu, QSpinBox, QWidget, QWidgetAction

from cardstamp.constants import FONT_SIZE_MAX, FONT_SIZE_MIN
from cardstamp.decoders.image_decoder import decode_photo
from cardstamp.gui.canvas_controller import KIND_PHOTO, OverlayBox, TemplateCanvasController
from cardstamp.models import FieldKey
from cardstamp.render.image_modes import cover_fit

_HANDLE_SIZE = 8
_OUTLINE_COLOR = QColor("#3B82F6")
_CURSORS = {
    "move": Qt.CursorShape.SizeAllCursor,
    "n": Qt.CursorShape.SizeVerCursor,
    "s": Qt.CursorShape.SizeVerCursor,
    "e": Qt.CursorShape.SizeHorCursor,
    "w": Qt.CursorShape.SizeHorCursor,
    "nw": Qt.CursorShape.SizeFDiagCursor,
    "se": Qt.CursorShape.SizeFDiagCursor,
    "ne": Qt.CursorShape.SizeBDiagCursor,
    "sw": Qt.CursorShape.SizeBDiagCursor,
}


def pil_to_qpixmap(image: Image.Image) -> QPixmap:
    rgba = image.convert("RGBA")
    data = rgba.tobytes("raw", "RGBA")
    q_image = QImage(data, rgba.width, rgba.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(q_image.copy())


def _overlay_font(family: str, pixel_size: int) -> QFont:
    font = QFont(family)
    font.setPixelSize(max(1, int(pixel_size)))
    font.setWeight(QFont.Weight.DemiBold)
    return font


def qt_measure_text(text: str, font_size: int, family: str) -> float:
    return float(QFontMetrics(_overlay_font(family, font_size)).horizontalAdvance(text))


class TemplateCanvas(QWidget):
    overlaysChanged = pyqtSignal()

    def __init__(self, controller: TemplateCanvasController, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.controller = controller
        self.photo_base_dir: Path | None = None
        self._design_pixmap: QPixmap | None = None
        self._photo_cache: dict[tuple[str, int, int], QPixmap | None] = {}
        self.setMouseTracking(True)
        self.setFixedSize(1, 1)

    def set_design_pixmap(self, pixmap: QPixmap | None, preview_size: tuple[int, int]) -> None:
        self._design_pixmap = pixmap
        width, height = preview_size
        if width > 0 and height > 0:
            self.setFixedSize(width, height)
            self.controller.set_preview_size(width, height)
        self.update()

    def clear_photo_cache(self) -> None:
        self._photo_cache.clear()

    def _photo_pixmap(self, box: OverlayBox) -> QPixmap | None:
        record = self.controller.preview_record
        if record is None or not record.has_photo:
            return None
        width, height = max(1, int(round(box.width))), max(1, int(round(box.height)))
        key = (record.id, width, height)
        if key not in self._photo_cache:
            photo = decode_photo(record.passport_photo, base_dir=self.photo_base_dir)
            if photo is None:
                self._photo_cache[key] = None
            else:
                self._photo_cache[key] = pil_to_qpixmap(cover_fit(photo, (width, height)))
        return self._photo_cache[key]

    # -- painting ------------------------------------------------------

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        area = QRectF(0, 0, self.width(), self.height())
        if self._design_pixmap is None:
            painter.fillRect(area, QColor("#F3F4F6"))
            painter.drawText(area, Qt.AlignmentFlag.AlignCenter, "Upload a design to start")
            painter.end()
            return
        painter.drawPixmap(area, self._design_pixmap, QRectF(self._design_pixmap.rect()))

        family = self.controller.model.font_family
        for box in self.controller.overlay_boxes():
            rect = QRectF(box.x, box.y, box.width, box.height)
            if box.kind == KIND_PHOTO:
                pixmap = self._photo_pixmap(box)
                if pixmap is not None:
                    painter.drawPixmap(rect, pixmap, QRectF(pixmap.rect()))
                self._draw_outline(painter, rect)
                self._draw_handles(painter, box)
                continue
            painter.setFont(_overlay_font(family, box.font_size))
            painter.setPen(QColor(box.font_color))
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, box.text)
            self._draw_outline(painter, rect)

        ghost = self.controller.drag_box()
        if ghost is not None:
            pen = QPen(_OUTLINE_COLOR)
            pen.setStyle(Qt.PenStyle.DotLine)
            painter.setPen(pen)
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(QRectF(ghost.x, ghost.y, ghost.width, ghost.height))
        painter.end()

    def _draw_outline(self, painter: QPainter, rect: QRectF) -> None:
        pen = QPen(_OUTLINE_COLOR)
        pen.setStyle(Qt.PenStyle.DashLine)
        pen.setWidth(1)
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(rect)

    def _draw_handles(self, painter: QPainter, box: OverlayBox) -> None:
        painter.setPen(QPen(_OUTLINE_COLOR))
        painter.setBrush(QColor("#FFFFFF"))
        half = _HANDLE_SIZE / 2.0
        for hx, hy in box.handle_points().values():
            painter.drawRect(QRectF(hx - half, hy - half, _HANDLE_SIZE, _HANDLE_SIZE))

    # -- pointer -------------------------------------------------------

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            if self.controller.press(pos.x(), pos.y()):
                self.update()
                event.accept()
                return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        moved = self.controller.move(pos.x(), pos.y())
        hint = self.controller.cursor_hint(pos.x(), pos.y())
        if hint in _CURSORS:
            self.setCursor(_CURSORS[hint])
        else:
            self.unsetCursor()
        if moved:
            self.update()
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            if self.controller.release(pos.x(), pos.y()):
                self.update()
                self.overlaysChanged.emit()
                event.accept()
                return
        super().mouseReleaseEvent(event)

    def mouseDoubleClickEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        menu_state = self.controller.double_activate(pos.x(), pos.y())
        if menu_state is None:
            super().mouseDoubleClickEvent(event)
            return
        self._exec_style_menu(QPoint(int(pos.x()), int(pos.y())))
        event.accept()

    def _exec_style_menu(self, anchor: QPoint) -> None:
        menu_state = self.controller.menu
        if menu_state is None:
            return
        overlay = self.controller.model.get_field(menu_state.overlay_id)
        menu = QMenu(self)

        field_menu = menu.addMenu("Field")
        for value, label in menu_state.field_options:
            action = QAction(label, field_menu)
            action.setCheckable(True)
            action.setChecked(overlay.field == FieldKey(value))
            action.triggered.connect(lambda _checked=False, v=value: self._choose_field(v))
            field_menu.addAction(action)

        color_action = QAction("Font Color...", menu)
        color_action.triggered.connect(lambda _checked=False: self._choose_color(overlay.font_color))
        menu.addAction(color_action)

        size_spin = QSpinBox()
        size_spin.setRange(*menu_state.font_size_range)
        size_spin.setPrefix("Size ")
        size_spin.setSuffix(" px")
        size_spin.setValue(max(FONT_SIZE_MIN, min(FONT_SIZE_MAX, overlay.font_size)))
        size_spin.valueChanged.connect(self._set_font_size)
        size_action = QWidgetAction(menu)
        size_action.setDefaultWidget(size_spin)
        menu.addAction(size_action)

        menu.exec(self.mapToGlobal(anchor))
        self.controller.close_menu()

    def _choose_field(self, value: str) -> None:
        self.controller.menu_choose_field(value)
        self.update()
        self.overlaysChanged.emit()

    def _choose_color(self, current: str) -> None:
        chosen = QColorDialog.getColor(QColor(current), self, "Font color")
        if not chosen.isValid():
            return
        self.controller.menu_set_font_color(chosen.name())
        self.update()
        self.overlaysChanged.emit()

    def _set_font_size(self, value: int) -> None:
        self.controller.menu_set_font_size(value)
        self.update()
        self.overlaysChanged.emit()
