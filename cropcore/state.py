from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from cropcore.errors import ErrorKind


class LifecycleState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    CROPPING = "cropping"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class CropRect:
    """Crop region in source-image pixel space."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class SourceFile:
    name: str
    type: str
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str) -> "SourceFile":
        p = Path(path)
        mime, _ = mimetypes.guess_type(p.name)
        return cls(name=p.name, type=mime or "", data=p.read_bytes())


@dataclass(frozen=True)
class Blob:
    data: bytes
    type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class NamedFile:
    data: bytes
    type: str
    name: str

    @property
    def size(self) -> int:
        return len(self.data)


OUTPUT_FORMATS = ("base64", "blob", "file", "all")
OUTPUT_TYPES = ("image/png", "image/jpeg", "image/webp")


@dataclass(frozen=True)
class OutputSpec:
    format: str = "base64"
    quality: float = 0.95
    type: str = "image/jpeg"
    max_width: Optional[float] = None
    max_height: Optional[float] = None
    file_name: str = "cropped-image.jpg"

    def __post_init__(self) -> None:
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(f"unknown output format: {self.format!r}")
        if self.type not in OUTPUT_TYPES:
            raise ValueError(f"unknown output type: {self.type!r}")


@dataclass(frozen=True)
class CropResult:
    width: int
    height: int
    base64: Optional[str] = None
    blob: Optional[Blob] = None
    file: Optional[NamedFile] = None


@dataclass(frozen=True)
class UploadSession:
    lifecycle_state: LifecycleState = LifecycleState.IDLE
    selected_file: Optional[SourceFile] = None
    # Decoded image kept as a data URL
    image_source: Optional[str] = None

    # Pan offset of the media relative to the crop frame, in display px
    crop_offset: Tuple[float, float] = (0.0, 0.0)
    zoom: float = 1.0
    # Degrees; not wrapped into [0, 360) here
    rotation: float = 0.0
    aspect_ratio: float = 1.0

    crop_rect_pixels: Optional[CropRect] = None
    error: Optional["ErrorKind"] = None

    @classmethod
    def initial(cls, aspect_ratio: float = 1.0, zoom: float = 1.0) -> "UploadSession":
        return cls(aspect_ratio=float(aspect_ratio), zoom=float(zoom))
