"""Drawing surfaces for the render pipeline.

``Surface`` is the capability the compositor draws through; ``PillowSurface``
implements it with Pillow for pixels and numpy for transforms and clip masks.
"""
from __future__ import annotations

import math
from io import BytesIO
from typing import Optional, Protocol, Tuple

import numpy as np
from PIL import Image

ENCODE_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/webp": "WEBP",
}


class Surface(Protocol):
    width: int
    height: int

    def translate(self, dx: float, dy: float) -> None: ...

    def rotate(self, degrees: float) -> None: ...

    def clip_circle(self) -> None: ...

    def draw(
        self,
        image: Image.Image,
        src_box: Optional[Tuple[float, float, float, float]] = None,
        dest: Optional[Tuple[float, float, float, float]] = None,
    ) -> None: ...

    def encode(self, mime_type: str, quality: float) -> bytes: ...

    @property
    def image(self) -> Image.Image: ...


def _translation(dx: float, dy: float) -> np.ndarray:
    return np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])


def _rotation(degrees: float) -> np.ndarray:
    # Positive angles turn clockwise on a y-down surface
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


class PillowSurface:
    def __init__(self, width: int, height: int):
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid surface size {width}x{height}")
        self.width = width
        self.height = height
        self._image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        self._matrix = np.identity(3)
        self._clip: Optional[np.ndarray] = None

    @property
    def image(self) -> Image.Image:
        return self._image

    def translate(self, dx: float, dy: float) -> None:
        self._matrix = self._matrix @ _translation(float(dx), float(dy))

    def rotate(self, degrees: float) -> None:
        self._matrix = self._matrix @ _rotation(float(degrees))

    def clip_circle(self) -> None:
        """Restrict later drawing to the circle inscribed in the surface."""
        r = min(self.width, self.height) / 2.0
        cy = self.height / 2.0
        cx = self.width / 2.0
        yy, xx = np.mgrid[0:self.height, 0:self.width]
        inside = ((xx + 0.5 - cx) ** 2 + (yy + 0.5 - cy) ** 2) <= r * r
        self._clip = inside if self._clip is None else (self._clip & inside)

    def draw(
        self,
        image: Image.Image,
        src_box: Optional[Tuple[float, float, float, float]] = None,
        dest: Optional[Tuple[float, float, float, float]] = None,
    ) -> None:
        """Draw ``src_box`` (x, y, w, h) of ``image`` into ``dest`` (x, y, w, h)."""
        src = image.convert("RGBA")
        if src_box is not None:
            sx, sy, sw, sh = src_box
            src = src.crop((int(round(sx)), int(round(sy)), int(round(sx + sw)), int(round(sy + sh))))
        if dest is None:
            dest = (0.0, 0.0, float(src.width), float(src.height))
        dx, dy, dw, dh = dest
        size = (max(1, int(round(dw))), max(1, int(round(dh))))
        if src.size != size:
            src = src.resize(size, resample=Image.Resampling.LANCZOS)

        layer = self._place(src, self._matrix @ _translation(float(dx), float(dy)))
        self._composite(layer)

    def _place(self, src: Image.Image, m: np.ndarray) -> Image.Image:
        is_translation = np.allclose(m[:2, :2], np.identity(2)) and np.allclose(m[:2, 2], np.round(m[:2, 2]))
        if is_translation:
            layer = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
            layer.paste(src, (int(round(m[0, 2])), int(round(m[1, 2]))))
            return layer

        inv = np.linalg.inv(m)
        coeffs = (inv[0, 0], inv[0, 1], inv[0, 2], inv[1, 0], inv[1, 1], inv[1, 2])
        return src.transform(
            (self.width, self.height),
            Image.Transform.AFFINE,
            data=tuple(float(c) for c in coeffs),
            resample=Image.Resampling.BICUBIC,
        )

    def _composite(self, layer: Image.Image) -> None:
        if self._clip is not None:
            arr = np.array(layer, dtype=np.uint8)
            arr[..., 3] = np.where(self._clip, arr[..., 3], 0).astype(np.uint8)
            layer = Image.fromarray(arr, mode="RGBA")
        self._image = Image.alpha_composite(self._image, layer)

    def encode(self, mime_type: str, quality: float) -> bytes:
        fmt = ENCODE_FORMATS.get(mime_type)
        if fmt is None:
            raise ValueError(f"Unsupported output type: {mime_type}")
        img = self._image
        params = {}
        if fmt == "JPEG":
            # No alpha in JPEG: transparent pixels become black
            flat = Image.new("RGB", img.size, (0, 0, 0))
            flat.paste(img, mask=img.getchannel("A"))
            img = flat
        if fmt in ("JPEG", "WEBP"):
            params["quality"] = max(1, min(100, int(round(float(quality) * 100))))
        buf = BytesIO()
        img.save(buf, format=fmt, **params)
        return buf.getvalue()
