from __future__ import annotations
from typing import Callable, List, Optional, Tuple

from PySide6.QtCore import Qt, QEvent, QPoint, QPointF, QRectF
from PySide6.QtGui import QEventPoint, QPainter, QPainterPath, QImage, QPixmap, QColor, QPen
from PySide6.QtWidgets import QWidget

from cropcore.geometry import CropLayout
from cropcore.gestures import TouchPoint

_TOUCH_EVENTS = (QEvent.TouchBegin, QEvent.TouchUpdate, QEvent.TouchEnd, QEvent.TouchCancel)


class CropCanvas(QWidget):
    """
    Shows the loaded image behind a fixed crop frame.
    Supports:
      - left-drag: pan the image under the frame (on_pan(dx, dy) in display px)
      - wheel: zoom (on_zoom(factor))
      - two-finger touch: pinch zoom / twist rotation (on_touch_frame(points))
    The frame itself never moves; it is centred in the widget and sized by
    the current layout.
    """
    def __init__(
        self,
        on_pan: Callable[[float, float], None],
        on_zoom: Callable[[float], None],
        on_touch_frame: Optional[Callable[[List[TouchPoint]], None]] = None,
        on_resize: Optional[Callable[[int, int], None]] = None,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setAttribute(Qt.WA_AcceptTouchEvents, True)
        self.setMinimumSize(320, 240)

        self._pixmap: Optional[QPixmap] = None
        self._offset: Tuple[float, float] = (0.0, 0.0)
        self._zoom = 1.0
        self._rotation = 0.0
        self._layout: Optional[CropLayout] = None
        self._circular = False
        self._show_grid = True

        self._dragging = False
        self._last_pos = QPoint()

        self._on_pan = on_pan
        self._on_zoom = on_zoom
        self._on_touch_frame = on_touch_frame
        self._on_resize = on_resize


    def set_image(self, qimg: Optional[QImage]) -> None:
        self._pixmap = QPixmap.fromImage(qimg) if qimg is not None else None
        self.update()

    def set_view(
        self,
        offset: Tuple[float, float],
        zoom: float,
        rotation: float,
        layout: Optional[CropLayout],
        circular: bool = False,
        show_grid: bool = True,
    ) -> None:
        self._offset = offset
        self._zoom = zoom
        self._rotation = rotation
        self._layout = layout
        self._circular = circular
        self._show_grid = show_grid
        self.update()

    def _frame_rect(self) -> Optional[QRectF]:
        if self._layout is None:
            return None
        cw, ch = self._layout.crop_size
        return QRectF((self.width() - cw) * 0.5, (self.height() - ch) * 0.5, cw, ch)

    def paintEvent(self, _) -> None:
        p = QPainter(self)
        p.setRenderHint(QPainter.Antialiasing, True)
        p.setRenderHint(QPainter.SmoothPixmapTransform, True)

        # Background
        p.fillRect(self.rect(), QColor(30, 30, 30))

        if self._pixmap is None or self._layout is None:
            p.setPen(QPen(QColor(220, 220, 220)))
            p.drawText(self.rect(), Qt.AlignCenter, "Drop an image or File > Open...")
            return

        # Media is centred, shifted by the pan offset, then scaled and rotated about its centre
        mw, mh = self._layout.media_size
        p.save()
        p.translate(self.width() * 0.5 + self._offset[0], self.height() * 0.5 + self._offset[1])
        p.rotate(self._rotation)
        p.scale(self._zoom, self._zoom)
        p.drawPixmap(QRectF(-mw * 0.5, -mh * 0.5, mw, mh), self._pixmap, QRectF(self._pixmap.rect()))
        p.restore()

        frame = self._frame_rect()
        self._draw_shade(p, frame)

        p.setPen(QPen(QColor(255, 255, 255), 2))
        p.setBrush(Qt.NoBrush)
        if self._circular:
            p.drawEllipse(frame)
        else:
            p.drawRect(frame)

        if self._show_grid:
            self._draw_thirds(p, frame)

        # Help overlay
        p.setPen(QPen(QColor(220, 220, 220)))
        msg = "Left-drag: move image | Wheel: zoom | Two fingers: pinch / rotate"
        p.drawText(10, self.height() - 10, msg)

    def _draw_shade(self, p: QPainter, frame: QRectF) -> None:
        outside = QPainterPath()
        outside.addRect(QRectF(self.rect()))
        hole = QPainterPath()
        if self._circular:
            hole.addEllipse(frame)
        else:
            hole.addRect(frame)
        p.fillPath(outside.subtracted(hole), QColor(0, 0, 0, 140))

    def _draw_thirds(self, p: QPainter, frame: QRectF) -> None:
        p.setPen(QPen(QColor(255, 255, 255, 90), 1))
        for i in (1, 2):
            x = frame.left() + frame.width() * i / 3.0
            y = frame.top() + frame.height() * i / 3.0
            p.drawLine(QPointF(x, frame.top()), QPointF(x, frame.bottom()))
            p.drawLine(QPointF(frame.left(), y), QPointF(frame.right(), y))

    def resizeEvent(self, e) -> None:
        super().resizeEvent(e)
        if self._on_resize is not None:
            self._on_resize(self.width(), self.height())

    def event(self, e) -> bool:
        if e.type() in _TOUCH_EVENTS:
            if self._on_touch_frame is not None:
                if e.type() in (QEvent.TouchEnd, QEvent.TouchCancel):
                    points: List[TouchPoint] = []
                else:
                    points = [
                        TouchPoint(tp.position().x(), tp.position().y())
                        for tp in e.points()
                        if tp.state() != QEventPoint.State.Released
                    ]
                self._on_touch_frame(points)
            e.accept()
            return True
        return super().event(e)

    def wheelEvent(self, e) -> None:
        delta = e.angleDelta().y()
        if delta == 0:
            return
        factor = 1.1 if delta > 0 else (1.0 / 1.1)
        self._on_zoom(factor)
        e.accept()

    def mousePressEvent(self, e) -> None:
        self._last_pos = e.position().toPoint()
        if e.button() == Qt.LeftButton:
            self._dragging = True

    def mouseMoveEvent(self, e) -> None:
        pos = e.position().toPoint()
        dx = pos.x() - self._last_pos.x()
        dy = pos.y() - self._last_pos.y()
        self._last_pos = pos
        if self._dragging:
            self._on_pan(float(dx), float(dy))

    def mouseReleaseEvent(self, e) -> None:
        if e.button() == Qt.LeftButton:
            self._dragging = False
