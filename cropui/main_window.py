from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from PIL import Image

from PySide6.QtCore import Qt, QTimer, Signal
from PySide6.QtGui import QAction, QImage, QKeySequence, QPixmap
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QFileDialog, QVBoxLayout, QHBoxLayout, QLabel,
    QSlider, QCheckBox, QPushButton, QMessageBox, QDockWidget, QComboBox,
    QGroupBox,
)

from cropcore.config import CropConfig
from cropcore.controller import CropUploadController
from cropcore.errors import REJECT_FILE_INVALID_TYPE, ErrorKind, RenderFailure, error_message
from cropcore.geometry import matches_aspect_ratio
from cropcore.gestures import TouchPoint
from cropcore.io import data_url_to_blob, load_image
from cropcore.state import CropResult, LifecycleState, SourceFile
from cropcore.validation import format_file_size
from cropui.crop_canvas import CropCanvas
from cropui.task_runner import CoroutineWorker

_logger = logging.getLogger(__name__)

# Slider works in hundredths of a zoom step
_ZOOM_TICKS = 100


def pil_rgba_to_qimage(img: Image.Image) -> QImage:
    img = img.convert("RGBA")
    w, h = img.size
    data = img.tobytes("raw", "RGBA")
    qimg = QImage(data, w, h, QImage.Format_RGBA8888)
    # Important: keep a copy because Python-owned bytes may be freed
    return qimg.copy()


def result_bytes(result: CropResult) -> bytes:
    if result.file is not None:
        return result.file.data
    if result.blob is not None:
        return result.blob.data
    if result.base64 is not None:
        return data_url_to_blob(result.base64).data
    return b""


class MainWindow(QMainWindow):
    # Controller callbacks may fire on a worker thread; these hop back to the GUI thread
    state_changed = Signal(object)
    crop_completed = Signal(object)
    error_raised = Signal(object)

    def __init__(self, config: Optional[CropConfig] = None):
        super().__init__()
        self.setWindowTitle("OpenCrop")
        self.setAcceptDrops(True)

        self.config = config or CropConfig()
        self._result: Optional[CropResult] = None
        self._syncing = False
        self._task: Optional[CoroutineWorker] = None
        self._preview_task: Optional[CoroutineWorker] = None

        self.state_changed.connect(self._on_state_changed)
        self.crop_completed.connect(self._on_crop_complete)
        self.error_raised.connect(self._on_error)
        self.controller = CropUploadController(
            config=self.config,
            on_change=self.state_changed.emit,
            on_crop_complete=self.crop_completed.emit,
            on_error=self.error_raised.emit,
        )

        # Central
        self.canvas = CropCanvas(
            on_pan=self._pan,
            on_zoom=self._zoom_by,
            on_touch_frame=self._touch_frame,
            on_resize=self._canvas_resized,
        )
        central = QWidget()
        lay = QVBoxLayout()
        lay.addWidget(self.canvas)
        central.setLayout(lay)
        self.setCentralWidget(central)

        self._preview_timer = QTimer(self)
        self._preview_timer.setSingleShot(True)
        self._preview_timer.setInterval(120)
        self._preview_timer.timeout.connect(self._refresh_preview)

        self._build_menu()
        self._build_controls_dock()
        self._sync_ui_from_state()

    def _build_menu(self) -> None:
        open_act = QAction("Open...", self)
        open_act.setShortcut(QKeySequence.StandardKey.Open)
        open_act.triggered.connect(self.open_file)

        self._act_save = QAction("Save Result As...", self)
        self._act_save.setShortcut(QKeySequence.StandardKey.SaveAs)
        self._act_save.triggered.connect(self.save_result)

        reset_act = QAction("Reset", self)
        reset_act.triggered.connect(self.reset)

        quit_act = QAction("Quit", self)
        quit_act.setShortcut(QKeySequence.StandardKey.Quit)
        quit_act.triggered.connect(self.close)

        mfile = self.menuBar().addMenu("File")
        mfile.addAction(open_act)
        mfile.addAction(self._act_save)
        mfile.addAction(reset_act)
        mfile.addSeparator()
        mfile.addAction(quit_act)

    # ---------------------------
    # Controls dock
    # ---------------------------
    def _build_controls_dock(self) -> None:
        dock = QDockWidget("Controls", self)
        dock.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)
        panel = QWidget()
        v = QVBoxLayout(panel)

        g_crop, gl_crop = self._make_group("Crop")
        self.aspect_combo = QComboBox()
        for preset in self.config.aspect_ratio_presets:
            self.aspect_combo.addItem(preset.label, preset)
        self.aspect_combo.activated.connect(self._on_aspect_activated)
        self._add_labeled_row(gl_crop, "Aspect", self.aspect_combo)

        self.zoom_slider = QSlider(Qt.Horizontal)
        self.zoom_slider.setRange(int(self.config.min_zoom * _ZOOM_TICKS), int(self.config.max_zoom * _ZOOM_TICKS))
        self.zoom_slider.valueChanged.connect(self._on_zoom_slider_changed)
        self._add_labeled_row(gl_crop, "Zoom", self.zoom_slider)

        self.grid_check = QCheckBox("Show grid")
        self.grid_check.setChecked(self.config.show_grid)
        self.grid_check.toggled.connect(lambda *_: self._sync_ui_from_state())
        gl_crop.addWidget(self.grid_check)
        v.addWidget(g_crop)

        g_rot, gl_rot = self._make_group("Rotation")
        rot_row = QHBoxLayout()
        step = int(self.config.rotation_step) if float(self.config.rotation_step).is_integer() else self.config.rotation_step
        self.rot_l_btn = QPushButton(f"Rotate -{step}")
        self.rot_l_btn.clicked.connect(self._rotate_left)
        rot_row.addWidget(self.rot_l_btn)
        self.rot_reset_btn = QPushButton("Reset")
        self.rot_reset_btn.clicked.connect(self._reset_rotation)
        rot_row.addWidget(self.rot_reset_btn)
        self.rot_r_btn = QPushButton(f"Rotate +{step}")
        self.rot_r_btn.clicked.connect(self._rotate_right)
        rot_row.addWidget(self.rot_r_btn)
        gl_rot.addLayout(rot_row)
        g_rot.setVisible(self.config.enable_rotation)
        v.addWidget(g_rot)

        g_prev, gl_prev = self._make_group("Preview")
        self.preview_label = QLabel()
        self.preview_label.setAlignment(Qt.AlignCenter)
        self.preview_label.setFixedSize(self.config.preview_size, self.config.preview_size)
        gl_prev.addWidget(self.preview_label, 0, Qt.AlignCenter)
        g_prev.setVisible(self.config.show_preview)
        v.addWidget(g_prev)

        self.crop_btn = QPushButton("Crop")
        self.crop_btn.clicked.connect(self.crop)
        v.addWidget(self.crop_btn)
        self.save_btn = QPushButton("Save Result...")
        self.save_btn.clicked.connect(self.save_result)
        v.addWidget(self.save_btn)
        self.reset_btn = QPushButton("Start Over")
        self.reset_btn.clicked.connect(self.reset)
        v.addWidget(self.reset_btn)

        v.addStretch(1)
        dock.setWidget(panel)
        self.addDockWidget(Qt.RightDockWidgetArea, dock)

    def _make_group(self, title: str) -> tuple[QGroupBox, QVBoxLayout]:
        g = QGroupBox(title)
        gl = QVBoxLayout()
        g.setLayout(gl)
        return g, gl

    def _add_labeled_row(self, layout: QVBoxLayout, label: str, widget: Optional[QWidget]) -> None:
        row = QHBoxLayout()
        row.addWidget(QLabel(label))
        if widget is not None:
            row.addWidget(widget, 1)
        layout.addLayout(row)

    # ---------------------------
    # File IO
    # ---------------------------
    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Image", "", "Images (*.png *.jpg *.jpeg *.webp *.gif)"
        )
        if not path:
            return
        self._load_path(path)

    def _load_path(self, path: str) -> None:
        if self._busy():
            self.statusBar().showMessage("Still working, try again in a moment")
            return
        if self.controller.state not in (LifecycleState.IDLE, LifecycleState.ERROR):
            self.reset()
        try:
            source = SourceFile.from_path(path)
        except OSError as e:
            self.controller.report_rejection(SourceFile(name=Path(path).name, type=""), "", str(e))
            return
        _logger.info("opening %s (%s, %s)", source.name, source.type or "unknown", format_file_size(source.size))
        self._task = self._start_worker(self._task, lambda: self._open_source(source), self._push_image)
        self._sync_ui_from_state()

    async def _open_source(self, source: SourceFile) -> Optional[Image.Image]:
        await self.controller.select_file(source)
        src = self.controller.session.image_source
        if src is None:
            return None
        return await asyncio.to_thread(load_image, src)

    def _push_image(self, image: Optional[Image.Image]) -> None:
        if image is None or self.controller.session.image_source is None:
            self.canvas.set_image(None)
        else:
            self.canvas.set_image(pil_rgba_to_qimage(image))
            self.controller.set_viewport(self.canvas.width(), self.canvas.height())
        self._sync_ui_from_state()

    # ---------------------------
    # Background work
    # ---------------------------
    def _busy(self) -> bool:
        return self._task is not None and self._task.isRunning()

    def _start_worker(self, previous, factory, on_done, on_failed=None) -> CoroutineWorker:
        if previous is not None:
            previous.deleteLater()
        worker = CoroutineWorker(factory, on_done, on_failed or self._on_task_failed, self)
        worker.succeeded.connect(self._on_task_result)
        worker.failed.connect(self._on_task_result)
        worker.start()
        return worker

    def _on_task_result(self, handler, payload) -> None:
        handler(payload)

    def _on_task_failed(self, ex: BaseException) -> None:
        QMessageBox.critical(self, "OpenCrop", str(ex))
        self._sync_ui_from_state()

    def closeEvent(self, e) -> None:
        for worker in (self._task, self._preview_task):
            if worker is not None and worker.isRunning():
                worker.wait()
        super().closeEvent(e)

    def save_result(self) -> None:
        if self._result is None:
            QMessageBox.information(self, "Nothing to save", "Crop an image first.")
            return
        name = self.controller.output_spec().file_name
        path, _ = QFileDialog.getSaveFileName(self, "Save Result As", name, "Images (*.png *.jpg *.jpeg *.webp)")
        if not path:
            return
        try:
            Path(path).write_bytes(result_bytes(self._result))
        except OSError as e:
            QMessageBox.critical(self, "Save failed", str(e))

    # ---------------------------
    # Drag & drop support
    # ---------------------------
    def dragEnterEvent(self, e) -> None:
        if e.mimeData().hasUrls():
            e.acceptProposedAction()

    def dropEvent(self, e) -> None:
        urls = e.mimeData().urls()
        if not urls:
            return
        path = urls[0].toLocalFile()
        if not path or not Path(path).is_file():
            name = Path(path).name if path else urls[0].toString()
            if self.controller.state not in (LifecycleState.IDLE, LifecycleState.ERROR):
                self.reset()
            self.controller.report_rejection(SourceFile(name=name, type=""), REJECT_FILE_INVALID_TYPE)
            return
        self._load_path(path)

    # ---------------------------
    # Crop interaction
    # ---------------------------
    def _canvas_resized(self, w: int, h: int) -> None:
        self.controller.set_viewport(w, h)
        self._sync_ui_from_state()

    def _pan(self, dx: float, dy: float) -> None:
        self.controller.pan_by(dx, dy)
        self._sync_ui_from_state()

    def _zoom_by(self, factor: float) -> None:
        self.controller.set_zoom(self.controller.session.zoom * factor)
        self._sync_ui_from_state()

    def _touch_frame(self, points: List[TouchPoint]) -> None:
        update = self.controller.handle_touch_frame(points)
        if not update.is_empty:
            self._sync_ui_from_state()

    def _on_zoom_slider_changed(self, v: int) -> None:
        if self._syncing:
            return
        self.controller.set_zoom(v / float(_ZOOM_TICKS))
        self._sync_ui_from_state()

    def _on_aspect_activated(self, index: int) -> None:
        preset = self.aspect_combo.itemData(index)
        if preset is None:
            return
        self.controller.set_aspect_ratio(preset)
        self._sync_ui_from_state()

    def _rotate_left(self) -> None:
        self.controller.rotate_left()
        self._sync_ui_from_state()

    def _rotate_right(self) -> None:
        self.controller.rotate_right()
        self._sync_ui_from_state()

    def _reset_rotation(self) -> None:
        self.controller.reset_rotation()
        self._sync_ui_from_state()

    def crop(self) -> None:
        if self._busy():
            return
        self._task = self._start_worker(self._task, self.controller.crop, lambda _: self._sync_ui_from_state())
        self._sync_ui_from_state()

    def reset(self) -> None:
        self.controller.reset()
        self._result = None
        self.canvas.set_image(None)
        self.preview_label.clear()
        self._sync_ui_from_state()

    # ---------------------------
    # Controller callbacks
    # ---------------------------
    def _on_state_changed(self, state: LifecycleState) -> None:
        self.statusBar().showMessage(f"State: {state.value}")

    def _on_crop_complete(self, result: CropResult) -> None:
        self._result = result
        self.statusBar().showMessage(f"Cropped to {result.width}x{result.height}")

    def _on_error(self, error: ErrorKind) -> None:
        QMessageBox.warning(self, "OpenCrop", error_message(error))

    # ---------------------------
    # View sync
    # ---------------------------
    def _sync_ui_from_state(self) -> None:
        s = self.controller.session
        cropping = s.lifecycle_state is LifecycleState.CROPPING

        self._syncing = True
        self.zoom_slider.setValue(int(round(s.zoom * _ZOOM_TICKS)))
        self._syncing = False
        for i in range(self.aspect_combo.count()):
            preset = self.aspect_combo.itemData(i)
            if preset is not None and matches_aspect_ratio(s.aspect_ratio, preset.value):
                self.aspect_combo.setCurrentIndex(i)
                break

        for w in (self.aspect_combo, self.zoom_slider, self.rot_l_btn, self.rot_r_btn, self.rot_reset_btn, self.crop_btn):
            w.setEnabled(cropping)
        self.save_btn.setEnabled(self._result is not None)
        self._act_save.setEnabled(self._result is not None)

        self.canvas.set_view(
            s.crop_offset,
            s.zoom,
            s.rotation,
            self.controller.layout(),
            circular=self.config.circular_crop,
            show_grid=self.grid_check.isChecked(),
        )
        if cropping and self.config.show_preview:
            self._preview_timer.start()

    def _refresh_preview(self) -> None:
        if self._preview_task is not None and self._preview_task.isRunning():
            self._preview_timer.start()
            return
        self._preview_task = self._start_worker(self._preview_task, self.controller.preview, self._show_preview, self._preview_failed)

    def _preview_failed(self, ex: BaseException) -> None:
        if not isinstance(ex, RenderFailure):
            self._on_task_failed(ex)
            return
        _logger.warning("preview failed: %s", ex)
        self.preview_label.clear()

    def _show_preview(self, img: Optional[Image.Image]) -> None:
        if img is None:
            self.preview_label.clear()
            return
        self.preview_label.setPixmap(QPixmap.fromImage(pil_rgba_to_qimage(img)))
