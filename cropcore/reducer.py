"""Upload lifecycle as a pure reducer.

``reduce(session, action)`` returns the next snapshot. An action that is not
valid in the current state returns the *same* snapshot object, so callers can
detect a rejected transition with an identity check.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Tuple, Union

from cropcore.errors import ErrorKind
from cropcore.state import CropRect, CropResult, LifecycleState, SourceFile, UploadSession

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileSelected:
    file: SourceFile


@dataclass(frozen=True)
class ValidationFailed:
    error: ErrorKind


@dataclass(frozen=True)
class ImageLoaded:
    source: str


@dataclass(frozen=True)
class CropChanged:
    offset: Tuple[float, float]


@dataclass(frozen=True)
class ZoomChanged:
    zoom: float


@dataclass(frozen=True)
class RotationChanged:
    rotation: float


@dataclass(frozen=True)
class AspectRatioChanged:
    aspect_ratio: float


@dataclass(frozen=True)
class CropAreaComputed:
    rect: CropRect


@dataclass(frozen=True)
class ProcessingStart:
    pass


@dataclass(frozen=True)
class ProcessingComplete:
    result: CropResult


@dataclass(frozen=True)
class ErrorOccurred:
    error: ErrorKind


@dataclass(frozen=True)
class Reset:
    initial_zoom: float = 1.0


Action = Union[
    FileSelected,
    ValidationFailed,
    ImageLoaded,
    CropChanged,
    ZoomChanged,
    RotationChanged,
    AspectRatioChanged,
    CropAreaComputed,
    ProcessingStart,
    ProcessingComplete,
    ErrorOccurred,
    Reset,
]

_ERROR_SOURCES = (LifecycleState.UPLOADING, LifecycleState.CROPPING, LifecycleState.PROCESSING)


def _cropping_update(session: UploadSession, action: Action) -> UploadSession:
    if isinstance(action, CropChanged):
        return replace(session, crop_offset=(float(action.offset[0]), float(action.offset[1])))
    if isinstance(action, ZoomChanged):
        return replace(session, zoom=float(action.zoom))
    if isinstance(action, RotationChanged):
        return replace(session, rotation=float(action.rotation))
    if isinstance(action, AspectRatioChanged):
        return replace(session, aspect_ratio=float(action.aspect_ratio))
    return replace(session, crop_rect_pixels=action.rect)


def reduce(session: UploadSession, action: Action) -> UploadSession:
    state = session.lifecycle_state

    if isinstance(action, Reset):
        return UploadSession.initial(aspect_ratio=session.aspect_ratio, zoom=action.initial_zoom)

    if isinstance(action, FileSelected):
        if state in (LifecycleState.IDLE, LifecycleState.ERROR):
            return replace(
                session,
                lifecycle_state=LifecycleState.UPLOADING,
                selected_file=action.file,
                error=None,
            )

    elif isinstance(action, ValidationFailed):
        if state is LifecycleState.UPLOADING:
            return replace(session, lifecycle_state=LifecycleState.ERROR, error=action.error)

    elif isinstance(action, ImageLoaded):
        if state is LifecycleState.UPLOADING:
            return replace(
                session,
                lifecycle_state=LifecycleState.CROPPING,
                image_source=action.source,
                error=None,
            )

    elif isinstance(action, (CropChanged, ZoomChanged, RotationChanged, AspectRatioChanged, CropAreaComputed)):
        if state is LifecycleState.CROPPING:
            return _cropping_update(session, action)

    elif isinstance(action, ProcessingStart):
        if (
            state is LifecycleState.CROPPING
            and session.image_source is not None
            and session.crop_rect_pixels is not None
        ):
            return replace(session, lifecycle_state=LifecycleState.PROCESSING)

    elif isinstance(action, ProcessingComplete):
        if state is LifecycleState.PROCESSING:
            return replace(session, lifecycle_state=LifecycleState.COMPLETE)

    elif isinstance(action, ErrorOccurred):
        if state in _ERROR_SOURCES:
            return replace(session, lifecycle_state=LifecycleState.ERROR, error=action.error)

    _logger.debug("ignored %s in state %s", type(action).__name__, state.value)
    return session
