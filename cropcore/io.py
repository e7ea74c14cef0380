from __future__ import annotations

import base64
import binascii
import re
from io import BytesIO
from typing import Union

from PIL import Image

from cropcore.state import Blob, NamedFile, SourceFile

ALLOWED_IMAGE_MIME_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/svg+xml",
)

_DATA_URL_MIME = re.compile(r"^data:(image/[^;]+);")
_HEADER_MIME = re.compile(r":(.*?);")


def encode_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def read_file_as_data_url(file: SourceFile) -> str:
    result = encode_data_url(file.data, file.type)
    if not result.startswith("data:image/"):
        raise ValueError("Invalid image data: File content is not a valid image")
    m = _DATA_URL_MIME.match(result)
    if m is None:
        raise ValueError("Invalid image data: Could not parse MIME type")
    if m.group(1) not in ALLOWED_IMAGE_MIME_TYPES:
        raise ValueError(f"Unsupported image type: {m.group(1)}")
    return result


def _split_data_url(data_url: str) -> tuple[str, bytes]:
    header, _, payload = data_url.partition(",")
    m = _HEADER_MIME.search(header)
    if m is None or not m.group(1):
        raise ValueError("Invalid data URL: Could not extract MIME type")
    mime = m.group(1)
    if mime not in ALLOWED_IMAGE_MIME_TYPES:
        raise ValueError(f"Invalid MIME type: {mime}. Only image types are allowed.")
    try:
        raw = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid data URL: {exc}") from exc
    return mime, raw


def data_url_to_blob(data_url: str) -> Blob:
    mime, raw = _split_data_url(data_url)
    return Blob(data=raw, type=mime)


def data_url_to_file(data_url: str, file_name: str) -> NamedFile:
    mime, raw = _split_data_url(data_url)
    return NamedFile(data=raw, type=mime, name=file_name)


def blob_to_file(blob: Blob, file_name: str) -> NamedFile:
    return NamedFile(data=blob.data, type=blob.type, name=file_name)


def load_image(source: Union[str, bytes, Image.Image]) -> Image.Image:
    """Decode a data URL (or raw bytes) into an RGBA image."""
    if isinstance(source, Image.Image):
        return source.convert("RGBA")
    try:
        if isinstance(source, str):
            _, raw = _split_data_url(source)
        else:
            raw = bytes(source)
        img = Image.open(BytesIO(raw))
        img.load()
    except Exception as exc:
        raise ValueError("Failed to load image") from exc
    # Convert to RGBA for consistent alpha work
    return img.convert("RGBA")
