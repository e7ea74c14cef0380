"""Pixel geometry for the crop engine.

Everything here is pure. Display-space values (media size, crop frame size,
pan offset) are in container pixels; the crop rectangle is in natural
(source image) pixels.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cropcore.state import CropRect

FREE_ASPECT = "free"
ASPECT_RATIO_TOLERANCE = 0.01
OBJECT_FITS = ("contain", "cover", "horizontal-cover", "vertical-cover")

AspectValue = Union[float, str]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_zoom(zoom: float, min_zoom: float, max_zoom: float) -> float:
    return max(min_zoom, min(max_zoom, zoom))


def normalize_rotation(degrees: float) -> float:
    return ((degrees % 360) + 360) % 360


def sanitize_aspect_ratio(ratio: float) -> float:
    try:
        r = float(ratio)
    except (TypeError, ValueError):
        return 1.0
    if r <= 0 or not math.isfinite(r):
        return 1.0
    return ratio


def compute_fit_dimensions(
    width: float,
    height: float,
    max_width: Optional[float] = None,
    max_height: Optional[float] = None,
) -> Tuple[float, float]:
    """Shrink (width, height) proportionally so neither exceeds its bound.

    The width bound is applied first; the height bound is then checked
    against the already scaled height. Never enlarges.
    """
    new_w = width
    new_h = height
    if max_width and new_w > max_width:
        new_h = new_h * max_width / new_w
        new_w = max_width
    if max_height and new_h > max_height:
        new_w = new_w * max_height / new_h
        new_h = max_height
    return (new_w, new_h)


def rotate_size(width: float, height: float, rotation: float) -> Tuple[float, float]:
    """Bounding box of a ``width`` x ``height`` rectangle turned by ``rotation`` degrees."""
    rad = math.radians(rotation)
    c, s = abs(math.cos(rad)), abs(math.sin(rad))
    return (c * width + s * height, s * width + c * height)


def compute_media_size(
    natural_w: float,
    natural_h: float,
    container_w: float,
    container_h: float,
    object_fit: str = "contain",
) -> Tuple[float, float]:
    """Display size of the media inside the container under an object-fit policy."""
    if object_fit not in OBJECT_FITS:
        raise ValueError(f"unknown object fit: {object_fit!r}")
    if natural_w <= 0 or natural_h <= 0 or container_w <= 0 or container_h <= 0:
        return (0.0, 0.0)

    media_aspect = natural_w / natural_h
    container_aspect = container_w / container_h

    fit = object_fit
    if fit == "cover":
        fit = "horizontal-cover" if media_aspect < container_aspect else "vertical-cover"

    if fit == "horizontal-cover":
        return (float(container_w), container_w / media_aspect)
    if fit == "vertical-cover":
        return (container_h * media_aspect, float(container_h))
    if media_aspect > container_aspect:
        return (float(container_w), container_w / media_aspect)
    return (container_h * media_aspect, float(container_h))


def compute_crop_size(
    media_w: float,
    media_h: float,
    container_w: float,
    container_h: float,
    aspect: Optional[float],
    rotation: float = 0.0,
) -> Tuple[float, float]:
    """Largest crop frame with the given aspect that fits media and container.

    The media is measured by its rotated bounding box. ``aspect=None`` means
    free: the frame takes the full fitting area.
    """
    box_w, box_h = rotate_size(media_w, media_h, rotation)
    fitting_w = min(box_w, container_w)
    fitting_h = min(box_h, container_h)
    if aspect is None:
        return (fitting_w, fitting_h)
    if fitting_w > fitting_h * aspect:
        return (fitting_h * aspect, fitting_h)
    return (fitting_w, fitting_w / aspect)


def _restrict_coord(position: float, media: float, crop: float, zoom: float) -> float:
    max_position = media * zoom / 2 - crop / 2
    return min(max(position, -max_position), max_position)


def restrict_position(
    offset: Tuple[float, float],
    media_size: Tuple[float, float],
    crop_size: Tuple[float, float],
    zoom: float,
    rotation: float = 0.0,
) -> Tuple[float, float]:
    """Clamp a pan offset so the crop frame never leaves the zoomed media."""
    box_w, box_h = rotate_size(media_size[0], media_size[1], rotation)
    return (
        _restrict_coord(offset[0], box_w, crop_size[0], zoom),
        _restrict_coord(offset[1], box_h, crop_size[1], zoom),
    )


def _limit(max_value: float, value: float) -> float:
    return min(max_value, max(0.0, value))


def _snap_to_aspect(width_px: int, height_px: int, nat_w: int, nat_h: int, aspect: float) -> Tuple[int, int]:
    # Width follows the final height: |w/h - aspect| <= 0.5/h
    if nat_w >= nat_h * aspect:
        h = height_px
    else:
        h = min(nat_h, max(1, _round_half_up(width_px / aspect)))
    w = _round_half_up(h * aspect)
    if w > nat_w:
        h = max(1, int(nat_w // aspect))
        w = _round_half_up(h * aspect)
    return (min(nat_w, max(1, w)), h)


def compute_crop_rect(
    crop_offset: Tuple[float, float],
    natural_size: Tuple[int, int],
    media_size: Tuple[float, float],
    crop_size: Tuple[float, float],
    aspect: Optional[float],
    zoom: float,
    restrict: bool = True,
) -> CropRect:
    """Map the on-screen crop frame to a rectangle in natural pixels.

    The result always lies inside the image. When ``restrict`` is set the
    pan offset is clamped first, so the frame stays over the media.
    ``aspect=None`` is the free ratio.
    """
    nat_w, nat_h = natural_size
    media_w, media_h = media_size
    crop_w, crop_h = crop_size
    zoom = max(float(zoom), 1e-6)
    if media_w <= 0 or media_h <= 0 or nat_w <= 0 or nat_h <= 0:
        raise ValueError("media and natural sizes must be positive")

    if restrict:
        crop_offset = restrict_position(crop_offset, media_size, crop_size, zoom)
    off_x, off_y = crop_offset

    pct_x = _limit(100.0, ((media_w - crop_w / zoom) / 2 - off_x / zoom) / media_w * 100)
    pct_y = _limit(100.0, ((media_h - crop_h / zoom) / 2 - off_y / zoom) / media_h * 100)
    pct_w = _limit(100.0, crop_w / media_w * 100 / zoom)
    pct_h = _limit(100.0, crop_h / media_h * 100 / zoom)

    width_px = max(1, _round_half_up(_limit(nat_w, pct_w * nat_w / 100)))
    height_px = max(1, _round_half_up(_limit(nat_h, pct_h * nat_h / 100)))

    if aspect is None:
        w, h = width_px, height_px
    else:
        w, h = _snap_to_aspect(width_px, height_px, nat_w, nat_h, aspect)

    x = _round_half_up(_limit(nat_w - w, pct_x * nat_w / 100))
    y = _round_half_up(_limit(nat_h - h, pct_y * nat_h / 100))
    return CropRect(x=x, y=y, width=w, height=h)


@dataclass(frozen=True)
class CropLayout:
    media_size: Tuple[float, float]
    crop_size: Tuple[float, float]


def compute_layout(
    natural_size: Tuple[int, int],
    container_size: Tuple[float, float],
    aspect: Optional[float],
    object_fit: str = "contain",
    rotation: float = 0.0,
) -> CropLayout:
    media = compute_media_size(natural_size[0], natural_size[1], container_size[0], container_size[1], object_fit)
    crop = compute_crop_size(media[0], media[1], container_size[0], container_size[1], aspect, rotation)
    return CropLayout(media_size=media, crop_size=crop)


def resolve_preset(preset_value: AspectValue, current_ratio: float) -> float:
    # "free" keeps whatever ratio is active
    if preset_value == FREE_ASPECT:
        return current_ratio
    return sanitize_aspect_ratio(float(preset_value))


def matches_aspect_ratio(current_ratio: float, preset_value: AspectValue) -> bool:
    if preset_value == FREE_ASPECT:
        return False
    return abs(current_ratio - float(preset_value)) < ASPECT_RATIO_TOLERANCE


def step_rotation(rotation: float, step: float, direction: int) -> float:
    """Rotate left (-1), right (+1) by ``step`` degrees, or reset (0)."""
    if direction == 0:
        return 0.0
    return rotation + step * (1 if direction > 0 else -1)
