from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Tuple, Union


@dataclass(frozen=True)
class FileTooLarge:
    max_size: int
    code: ClassVar[str] = "FILE_TOO_LARGE"


@dataclass(frozen=True)
class InvalidFileType:
    allowed_types: Tuple[str, ...]
    code: ClassVar[str] = "INVALID_FILE_TYPE"


@dataclass(frozen=True)
class FileReadError:
    message: str
    code: ClassVar[str] = "FILE_READ_ERROR"


@dataclass(frozen=True)
class CropError:
    message: str
    code: ClassVar[str] = "CROP_ERROR"


@dataclass(frozen=True)
class CanvasError:
    message: str
    code: ClassVar[str] = "CANVAS_ERROR"


ErrorKind = Union[FileTooLarge, InvalidFileType, FileReadError, CropError, CanvasError]

# Rejection codes reported by a file selection / drop surface
REJECT_FILE_TOO_LARGE = "file-too-large"
REJECT_FILE_INVALID_TYPE = "file-invalid-type"


class RenderFailure(Exception):
    """Carries an ErrorKind out of the render pipeline."""

    def __init__(self, error: ErrorKind):
        super().__init__(error_message(error))
        self.error = error


def error_message(error: ErrorKind | None) -> str:
    if error is None:
        return ""
    if isinstance(error, FileTooLarge):
        mb = int(error.max_size / 1024 / 1024 + 0.5)
        return f"File size exceeds {mb}MB limit"
    if isinstance(error, InvalidFileType):
        return f"Only {', '.join(error.allowed_types)} files are supported"
    if isinstance(error, (FileReadError, CropError, CanvasError)):
        return error.message
    return "An unknown error occurred"


def error_from_rejection(
    code: str,
    max_size: int,
    allowed_types: Tuple[str, ...],
    message: str = "",
) -> ErrorKind:
    if code == REJECT_FILE_TOO_LARGE:
        return FileTooLarge(max_size=int(max_size))
    if code == REJECT_FILE_INVALID_TYPE:
        return InvalidFileType(allowed_types=tuple(allowed_types))
    return FileReadError(message=message or "File selection failed")
