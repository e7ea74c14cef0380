from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, Tuple, Union

from PIL import Image

from cropcore.compositor import render_crop, render_preview
from cropcore.config import AspectRatioPreset, CropConfig
from cropcore.errors import ErrorKind, FileReadError, RenderFailure, error_from_rejection
from cropcore.geometry import (
    CropLayout,
    clamp_zoom,
    compute_crop_rect,
    compute_layout,
    resolve_preset,
    restrict_position,
    sanitize_aspect_ratio,
    step_rotation,
)
from cropcore.gestures import GestureInterpreter, GestureUpdate, TouchPoint
from cropcore.io import load_image, read_file_as_data_url
from cropcore.reducer import (
    Action,
    AspectRatioChanged,
    CropAreaComputed,
    CropChanged,
    ErrorOccurred,
    FileSelected,
    ImageLoaded,
    ProcessingComplete,
    ProcessingStart,
    Reset,
    RotationChanged,
    ValidationFailed,
    ZoomChanged,
    reduce,
)
from cropcore.state import CropRect, CropResult, LifecycleState, OutputSpec, SourceFile, UploadSession
from cropcore.validation import validate_file

_logger = logging.getLogger(__name__)

Renderer = Callable[..., Awaitable[CropResult]]


class CropUploadController:
    """Single entry point for the presentation layer.

    Owns the session snapshot and the gesture interpreter, runs the reducer,
    and reports through three callbacks:
      - on_change(state) after every lifecycle transition
      - on_crop_complete(result) after a successful render
      - on_error(error) on any failure

    A Reset while a render is in flight returns to Idle at once; the render
    keeps running and its outcome is dropped when it arrives.
    """

    def __init__(
        self,
        config: Optional[CropConfig] = None,
        on_change: Optional[Callable[[LifecycleState], None]] = None,
        on_crop_complete: Optional[Callable[[CropResult], None]] = None,
        on_error: Optional[Callable[[ErrorKind], None]] = None,
        renderer: Renderer = render_crop,
    ):
        self.config = config or CropConfig()
        self._on_change = on_change
        self._on_crop_complete = on_crop_complete
        self._on_error = on_error
        self._renderer = renderer

        self._session = UploadSession.initial(
            aspect_ratio=sanitize_aspect_ratio(self.config.aspect_ratio),
            zoom=self.config.initial_zoom,
        )
        self._gestures = GestureInterpreter(
            min_zoom=self.config.min_zoom,
            max_zoom=self.config.max_zoom,
            enable_pinch_zoom=self.config.enable_pinch_zoom,
            enable_touch_rotation=self.config.enable_touch_rotation,
            rotation_sensitivity=self.config.rotation_sensitivity,
        )
        self._natural_size: Optional[Tuple[int, int]] = None
        self._viewport: Optional[Tuple[float, float]] = None
        self._render_generation = 0

    # ---- state access ----
    @property
    def session(self) -> UploadSession:
        return self._session

    @property
    def state(self) -> LifecycleState:
        return self._session.lifecycle_state

    @property
    def gestures(self) -> GestureInterpreter:
        return self._gestures

    @property
    def natural_size(self) -> Optional[Tuple[int, int]]:
        return self._natural_size

    def dispatch(self, action: Action) -> UploadSession:
        prev = self._session
        self._session = reduce(prev, action)
        if self._session.lifecycle_state is not prev.lifecycle_state:
            _logger.debug(
                "%s -> %s (%s)",
                prev.lifecycle_state.value,
                self._session.lifecycle_state.value,
                type(action).__name__,
            )
            if self._on_change is not None:
                self._on_change(self._session.lifecycle_state)
        return self._session

    def _emit_error(self, error: ErrorKind) -> None:
        _logger.warning("%s: %s", error.code, error)
        if self._on_error is not None:
            self._on_error(error)

    # ---- file intake ----
    async def select_file(self, file: SourceFile) -> None:
        before = self._session
        self.dispatch(FileSelected(file))
        if self._session is before:
            return

        error = validate_file(file, self.config.max_file_size, self.config.allowed_formats)
        if error is not None:
            self.dispatch(ValidationFailed(error))
            self._emit_error(error)
            return

        generation = self._render_generation
        try:
            data_url = await asyncio.to_thread(read_file_as_data_url, file)
            image = await asyncio.to_thread(load_image, data_url)
        except Exception as exc:
            if generation != self._render_generation:
                return
            error = FileReadError(message=str(exc) or "Failed to read file")
            self.dispatch(ErrorOccurred(error))
            self._emit_error(error)
            return

        if generation != self._render_generation:
            _logger.debug("dropping load of %s after reset", file.name)
            return
        self._natural_size = image.size
        self.dispatch(ImageLoaded(data_url))
        self.update_crop_area()

    def report_rejection(self, file: SourceFile, code: str, message: str = "") -> None:
        """Record a file the selection surface refused before reading it."""
        before = self._session
        self.dispatch(FileSelected(file))
        if self._session is before:
            return
        error = error_from_rejection(code, self.config.max_file_size, self.config.allowed_formats, message)
        self.dispatch(ValidationFailed(error))
        self._emit_error(error)

    # ---- crop geometry ----
    def set_viewport(self, width: float, height: float) -> None:
        """Size of the area the crop frame is shown in, in display pixels."""
        if width <= 0 or height <= 0:
            self._viewport = None
        else:
            self._viewport = (float(width), float(height))
        self.update_crop_area()

    def layout(self) -> Optional[CropLayout]:
        if self._natural_size is None:
            return None
        container = self._viewport or (float(self._natural_size[0]), float(self._natural_size[1]))
        s = self._session
        return compute_layout(self._natural_size, container, s.aspect_ratio, self.config.object_fit, s.rotation)

    def update_crop_area(self) -> Optional[CropRect]:
        if self.state is not LifecycleState.CROPPING:
            return None
        layout = self.layout()
        if layout is None:
            return None
        s = self._session
        rect = compute_crop_rect(
            s.crop_offset,
            self._natural_size,
            layout.media_size,
            layout.crop_size,
            s.aspect_ratio,
            s.zoom,
            restrict=self.config.restrict_position,
        )
        self.dispatch(CropAreaComputed(rect))
        return rect

    def _restricted(self, offset: Tuple[float, float], zoom: float) -> Tuple[float, float]:
        layout = self.layout()
        if not self.config.restrict_position or layout is None:
            return offset
        return restrict_position(offset, layout.media_size, layout.crop_size, zoom, self._session.rotation)

    def set_crop_offset(self, x: float, y: float) -> None:
        self.dispatch(CropChanged(self._restricted((float(x), float(y)), self._session.zoom)))
        self.update_crop_area()

    def pan_by(self, dx: float, dy: float) -> None:
        ox, oy = self._session.crop_offset
        self.set_crop_offset(ox + dx, oy + dy)

    def set_zoom(self, zoom: float) -> None:
        zoom = clamp_zoom(float(zoom), self.config.min_zoom, self.config.max_zoom)
        self.dispatch(ZoomChanged(zoom))
        # Zooming out can leave the frame hanging off the media
        self.dispatch(CropChanged(self._restricted(self._session.crop_offset, zoom)))
        self.update_crop_area()

    def set_rotation(self, rotation: float) -> None:
        self.dispatch(RotationChanged(float(rotation)))
        self.dispatch(CropChanged(self._restricted(self._session.crop_offset, self._session.zoom)))
        self.update_crop_area()

    def rotate_left(self) -> None:
        if self.config.enable_rotation:
            self.set_rotation(step_rotation(self._session.rotation, self.config.rotation_step, -1))

    def rotate_right(self) -> None:
        if self.config.enable_rotation:
            self.set_rotation(step_rotation(self._session.rotation, self.config.rotation_step, 1))

    def reset_rotation(self) -> None:
        if self.config.enable_rotation:
            self.set_rotation(step_rotation(self._session.rotation, self.config.rotation_step, 0))

    def set_aspect_ratio(self, value: Union[float, str, AspectRatioPreset]) -> None:
        if isinstance(value, AspectRatioPreset):
            value = value.value
        ratio = sanitize_aspect_ratio(resolve_preset(value, self._session.aspect_ratio))
        self.dispatch(AspectRatioChanged(float(ratio)))
        self.dispatch(CropChanged(self._restricted(self._session.crop_offset, self._session.zoom)))
        self.update_crop_area()

    # ---- touch ----
    def handle_touch_frame(self, points: Sequence[TouchPoint]) -> GestureUpdate:
        if self.state is not LifecycleState.CROPPING:
            self._gestures.reset()
            return GestureUpdate()

        update = self._gestures.handle_frame(points, self._session.zoom, self._session.rotation)
        if update.zoom is not None:
            self.set_zoom(update.zoom)
        if update.rotation is not None:
            self.set_rotation(update.rotation)
        return update

    # ---- output ----
    def output_spec(self) -> OutputSpec:
        selected = self._session.selected_file
        return self.config.output_spec(selected.name if selected is not None else None)

    async def crop(self) -> Optional[CropResult]:
        before = self._session
        self.dispatch(ProcessingStart())
        if self._session is before:
            _logger.debug("crop request ignored in state %s", before.lifecycle_state.value)
            return None

        generation = self._render_generation
        s = self._session
        try:
            result = await self._renderer(
                s.image_source,
                s.crop_rect_pixels,
                s.rotation,
                self.output_spec(),
                circular=self.config.circular_crop,
            )
        except RenderFailure as exc:
            if generation != self._render_generation:
                _logger.info("discarding render error after reset: %s", exc)
                return None
            self.dispatch(ErrorOccurred(exc.error))
            self._emit_error(exc.error)
            return None

        if generation != self._render_generation:
            _logger.info("discarding render result after reset")
            return None
        self.dispatch(ProcessingComplete(result))
        if self._on_crop_complete is not None:
            self._on_crop_complete(result)
        return result

    async def preview(self) -> Optional[Image.Image]:
        s = self._session
        if not self.config.show_preview or s.image_source is None or s.crop_rect_pixels is None:
            return None
        return await render_preview(
            s.image_source,
            s.crop_rect_pixels,
            s.rotation,
            size=self.config.preview_size,
            circular=self.config.circular_crop,
        )

    def reset(self) -> None:
        self._render_generation += 1
        self._gestures.reset()
        self._natural_size = None
        self.dispatch(Reset(initial_zoom=self.config.initial_zoom))
