"""Two-finger touch interpretation.

The interpreter is fed one frame per touch event, each frame carrying the
currently active touch points. A gesture session opens when the count rises
from fewer than two to exactly two points and closes when fewer than two
remain; every new gesture starts from fresh baselines.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from cropcore.geometry import clamp_zoom

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TouchPoint:
    x: float
    y: float


@dataclass(frozen=True)
class GestureSession:
    initial_distance: float
    initial_angle: float
    baseline_zoom: float
    baseline_rotation: float


@dataclass(frozen=True)
class GestureUpdate:
    zoom: Optional[float] = None
    rotation: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.zoom is None and self.rotation is None


def touch_distance(a: TouchPoint, b: TouchPoint) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def touch_angle(a: TouchPoint, b: TouchPoint) -> float:
    return math.degrees(math.atan2(b.y - a.y, b.x - a.x))


def wrap_angle_delta(delta: float) -> float:
    """Bring an angle difference into (-180, 180]."""
    while delta > 180:
        delta -= 360
    while delta <= -180:
        delta += 360
    return delta


class GestureInterpreter:
    def __init__(
        self,
        min_zoom: float = 1.0,
        max_zoom: float = 3.0,
        enable_pinch_zoom: bool = True,
        enable_touch_rotation: bool = True,
        rotation_sensitivity: float = 1.0,
    ):
        self.min_zoom = float(min_zoom)
        self.max_zoom = float(max_zoom)
        self.enable_pinch_zoom = bool(enable_pinch_zoom)
        self.enable_touch_rotation = bool(enable_touch_rotation)
        self.rotation_sensitivity = float(rotation_sensitivity)
        self._session: Optional[GestureSession] = None
        self._last_count = 0

    @property
    def enabled(self) -> bool:
        return self.enable_pinch_zoom or self.enable_touch_rotation

    @property
    def session(self) -> Optional[GestureSession]:
        return self._session

    def reset(self) -> None:
        self._session = None
        self._last_count = 0

    def handle_frame(
        self,
        points: Sequence[TouchPoint],
        current_zoom: float,
        current_rotation: float,
    ) -> GestureUpdate:
        if not self.enabled:
            return GestureUpdate()

        count = len(points)
        previous, self._last_count = self._last_count, count
        if count < 2:
            if self._session is not None:
                _logger.debug("gesture ended")
            self._session = None
            return GestureUpdate()

        # A third finger neither starts nor drives a gesture
        if count != 2:
            return GestureUpdate()

        a, b = points[0], points[1]
        if self._session is None:
            # Only a rise from fewer than two points opens a session
            if previous >= 2:
                return GestureUpdate()
            self._session = GestureSession(
                initial_distance=touch_distance(a, b),
                initial_angle=touch_angle(a, b),
                baseline_zoom=float(current_zoom),
                baseline_rotation=float(current_rotation),
            )
            _logger.debug("gesture started: %s", self._session)
            return GestureUpdate()

        return self._interpret(a, b)

    def _interpret(self, a: TouchPoint, b: TouchPoint) -> GestureUpdate:
        session = self._session
        zoom: Optional[float] = None
        rotation: Optional[float] = None

        if self.enable_pinch_zoom and session.initial_distance > 0:
            scale = touch_distance(a, b) / session.initial_distance
            zoom = clamp_zoom(session.baseline_zoom * scale, self.min_zoom, self.max_zoom)

        if self.enable_touch_rotation:
            delta = wrap_angle_delta(touch_angle(a, b) - session.initial_angle)
            # Left unwrapped; consumers normalize when they need [0, 360)
            rotation = session.baseline_rotation + delta * self.rotation_sensitivity

        return GestureUpdate(zoom=zoom, rotation=rotation)
