from __future__ import annotations

import math
from numbers import Real
from typing import Iterable, Optional

from cropcore.errors import ErrorKind, FileTooLarge, InvalidFileType
from cropcore.state import SourceFile


def validate_file_size(file: SourceFile, max_size: int) -> Optional[ErrorKind]:
    if file.size > max_size:
        return FileTooLarge(max_size=int(max_size))
    return None


def validate_file_type(file: SourceFile, allowed_types: Iterable[str]) -> Optional[ErrorKind]:
    allowed = tuple(allowed_types)
    if file.type not in allowed:
        return InvalidFileType(allowed_types=allowed)
    return None


def validate_file(
    file: SourceFile,
    max_size: int,
    allowed_types: Iterable[str],
) -> Optional[ErrorKind]:
    """Size is checked before type; a file failing both reports FileTooLarge."""
    size_error = validate_file_size(file, max_size)
    if size_error is not None:
        return size_error
    return validate_file_type(file, allowed_types)


def validate_quality(quality: float) -> float:
    return max(0.0, min(1.0, float(quality)))


def is_valid_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(float(value))


def format_file_size(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    k = 1024
    sizes = ("Bytes", "KB", "MB", "GB")
    i = 0
    while i < len(sizes) - 1 and num_bytes >= k ** (i + 1):
        i += 1
    value = round(num_bytes / k ** i, 2)
    # 1.0 -> "1", 1.5 -> "1.5"
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {sizes[i]}"


def get_file_extension(file_name: str) -> str:
    idx = file_name.rfind(".")
    return file_name[idx:] if idx != -1 else ""


def is_image_file(file: SourceFile) -> bool:
    return file.type.startswith("image/")
