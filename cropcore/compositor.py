from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from PIL import Image

from cropcore.errors import CanvasError, CropError, RenderFailure
from cropcore.geometry import compute_fit_dimensions
from cropcore.io import blob_to_file, data_url_to_blob, encode_data_url, load_image
from cropcore.state import Blob, CropRect, CropResult, NamedFile, OutputSpec
from cropcore.surface import PillowSurface, Surface

_logger = logging.getLogger(__name__)

SurfaceFactory = Callable[[int, int], Surface]


def _surface_dim(value: float) -> int:
    return max(1, int(round(value)))


def _acquire(factory: SurfaceFactory, width: int, height: int) -> Surface:
    try:
        return factory(width, height)
    except Exception as exc:
        raise RenderFailure(CanvasError(f"Failed to get canvas context: {exc}")) from exc


def compose_crop(
    surface: Surface,
    image: Image.Image,
    crop_rect: CropRect,
    rotation: float,
) -> None:
    """Draw ``crop_rect`` of ``image`` over the whole surface, rotated about its centre."""
    cx = surface.width / 2.0
    cy = surface.height / 2.0
    surface.translate(cx, cy)
    surface.rotate(rotation)
    surface.translate(-cx, -cy)
    surface.draw(
        image,
        (crop_rect.x, crop_rect.y, crop_rect.width, crop_rect.height),
        (0.0, 0.0, float(surface.width), float(surface.height)),
    )


def apply_circular_mask(surface: Surface, factory: SurfaceFactory = PillowSurface) -> Surface:
    """Second pass: centre the rectangular buffer on a square clipped to a circle."""
    size = min(surface.width, surface.height)
    circular = _acquire(factory, size, size)
    circular.clip_circle()
    offset_x = (size - surface.width) / 2.0
    offset_y = (size - surface.height) / 2.0
    circular.draw(surface.image, None, (offset_x, offset_y, float(surface.width), float(surface.height)))
    return circular


def encode_result(surface: Surface, spec: OutputSpec) -> CropResult:
    base64_url: Optional[str] = None
    blob: Optional[Blob] = None
    file: Optional[NamedFile] = None

    if spec.format in ("base64", "all"):
        base64_url = encode_data_url(surface.encode(spec.type, spec.quality), spec.type)
    if spec.format == "blob":
        blob = Blob(data=surface.encode(spec.type, spec.quality), type=spec.type)
    if spec.format == "file":
        data = surface.encode(spec.type, spec.quality)
        file = NamedFile(data=data, type=spec.type, name=spec.file_name)

    # "all" derives the binary forms from the single base64 encode
    if spec.format == "all" and blob is None:
        blob = data_url_to_blob(base64_url)
    if spec.format == "all" and file is None:
        file = blob_to_file(blob, spec.file_name)

    return CropResult(width=surface.width, height=surface.height, base64=base64_url, blob=blob, file=file)


def _render_sync(
    image: Image.Image,
    crop_rect: CropRect,
    rotation: float,
    spec: OutputSpec,
    circular: bool,
    factory: SurfaceFactory,
    failure_prefix: str,
) -> Surface:
    width, height = compute_fit_dimensions(crop_rect.width, crop_rect.height, spec.max_width, spec.max_height)
    surface = _acquire(factory, _surface_dim(width), _surface_dim(height))
    try:
        compose_crop(surface, image, crop_rect, rotation)
    except Exception as exc:
        raise RenderFailure(CropError(f"{failure_prefix}: {exc}")) from exc

    if not circular:
        return surface
    try:
        return apply_circular_mask(surface, factory)
    except RenderFailure:
        raise
    except Exception as exc:
        raise RenderFailure(CropError(f"{failure_prefix}: {exc}")) from exc


async def render_crop(
    image_source,
    crop_rect: CropRect,
    rotation: float = 0.0,
    spec: Optional[OutputSpec] = None,
    circular: bool = False,
    surface_factory: SurfaceFactory = PillowSurface,
) -> CropResult:
    """Render the crop into the encodings requested by ``spec``.

    Each call works on its own surfaces. Failures raise ``RenderFailure``
    carrying a CropError (decode/draw) or CanvasError (surface/encode);
    nothing is retried.
    """
    spec = spec or OutputSpec()
    prefix = "Failed to create circular crop" if circular else "Failed to crop image"

    try:
        image = await asyncio.to_thread(load_image, image_source)
    except Exception as exc:
        _logger.warning("decode failed: %s", exc)
        raise RenderFailure(CropError(f"{prefix}: {exc}")) from exc

    surface = await asyncio.to_thread(
        _render_sync, image, crop_rect, rotation, spec, circular, surface_factory, prefix
    )

    try:
        result = await asyncio.to_thread(encode_result, surface, spec)
    except Exception as exc:
        _logger.warning("encode failed: %s", exc)
        raise RenderFailure(CanvasError(f"{prefix}: {exc}")) from exc

    _logger.debug(
        "rendered %dx%d %s (%s, rotation=%s, circular=%s)",
        result.width, result.height, spec.type, spec.format, rotation, circular,
    )
    return result


def _render_preview_sync(
    image: Image.Image,
    crop_rect: CropRect,
    rotation: float,
    size: int,
    circular: bool,
    factory: SurfaceFactory,
) -> Image.Image:
    surface = _acquire(factory, size, size)
    if circular:
        surface.clip_circle()
    scale = min(size / crop_rect.width, size / crop_rect.height)
    scaled_w = crop_rect.width * scale
    scaled_h = crop_rect.height * scale
    offset_x = (size - scaled_w) / 2.0
    offset_y = (size - scaled_h) / 2.0
    half = size / 2.0
    surface.translate(half, half)
    surface.rotate(rotation)
    surface.translate(-half, -half)
    surface.draw(
        image,
        (crop_rect.x, crop_rect.y, crop_rect.width, crop_rect.height),
        (offset_x, offset_y, scaled_w, scaled_h),
    )
    return surface.image


async def render_preview(
    image_source,
    crop_rect: CropRect,
    rotation: float = 0.0,
    size: int = 150,
    circular: bool = False,
    surface_factory: SurfaceFactory = PillowSurface,
) -> Image.Image:
    """Small square thumbnail of the current crop, fitted and centred."""
    try:
        image = await asyncio.to_thread(load_image, image_source)
        return await asyncio.to_thread(
            _render_preview_sync, image, crop_rect, rotation, int(size), circular, surface_factory
        )
    except RenderFailure:
        raise
    except Exception as exc:
        raise RenderFailure(CropError(f"Failed to render preview: {exc}")) from exc
