from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from cropcore.geometry import FREE_ASPECT, OBJECT_FITS, sanitize_aspect_ratio
from cropcore.state import OUTPUT_FORMATS, OUTPUT_TYPES, OutputSpec
from cropcore.validation import validate_quality

DEFAULT_FILE_NAME = "cropped-image.jpg"
DEFAULT_CIRCULAR_FILE_NAME = "cropped-image.png"


@dataclass(frozen=True)
class AspectRatioPreset:
    label: str
    value: Union[float, str]


def default_presets() -> List[AspectRatioPreset]:
    return [
        AspectRatioPreset("Free", FREE_ASPECT),
        AspectRatioPreset("1:1", 1.0),
        AspectRatioPreset("4:3", 4 / 3),
        AspectRatioPreset("16:9", 16 / 9),
    ]


@dataclass
class CropConfig:
    # Crop settings
    aspect_ratio: float = 1.0
    aspect_ratio_presets: List[AspectRatioPreset] = field(default_factory=default_presets)
    circular_crop: bool = False
    show_grid: bool = True

    # Upload constraints
    max_file_size: int = 10 * 1024 * 1024
    allowed_formats: Tuple[str, ...] = ("image/jpeg", "image/png", "image/webp", "image/gif")

    # Zoom
    min_zoom: float = 1.0
    max_zoom: float = 3.0
    initial_zoom: float = 1.0

    # Rotation
    enable_rotation: bool = True
    rotation_step: float = 90.0

    # Touch gestures
    enable_pinch_zoom: bool = True
    enable_touch_rotation: bool = True
    rotation_sensitivity: float = 1.0

    # Output
    output_format: str = "base64"
    output_quality: float = 0.95
    output_type: str = "image/jpeg"
    output_max_width: Optional[float] = None
    output_max_height: Optional[float] = None

    # Positioning
    restrict_position: bool = True
    object_fit: str = "contain"

    # Preview
    show_preview: bool = True
    preview_size: int = 150

    def output_spec(self, file_name: Optional[str] = None) -> OutputSpec:
        fallback = DEFAULT_CIRCULAR_FILE_NAME if self.circular_crop else DEFAULT_FILE_NAME
        return OutputSpec(
            format=self.output_format,
            quality=validate_quality(self.output_quality),
            type=self.output_type,
            max_width=self.output_max_width,
            max_height=self.output_max_height,
            file_name=file_name or fallback,
        )


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _choice(value: str, allowed: Tuple[str, ...], key: str) -> str:
    text = str(value).strip().lower()
    if text not in allowed:
        raise ValueError(f"{key} must be one of {', '.join(allowed)}; got {value!r}")
    return text


def _presets_from_raw(raw_presets: list) -> List[AspectRatioPreset]:
    presets: List[AspectRatioPreset] = []
    for idx, item in enumerate(raw_presets):
        if not isinstance(item, dict):
            continue
        value = item.get("value", FREE_ASPECT)
        if value != FREE_ASPECT:
            value = float(sanitize_aspect_ratio(float(value)))
        presets.append(AspectRatioPreset(label=str(item.get("label", f"Preset {idx + 1}")), value=value))
    return presets


def config_from_raw(raw: dict) -> CropConfig:
    """Build a config from a plain mapping, filling defaults for missing keys."""
    d = CropConfig()
    presets_raw = raw.get("aspect_ratio_presets")
    presets = _presets_from_raw(presets_raw) if isinstance(presets_raw, list) else default_presets()

    min_zoom = float(raw.get("min_zoom", d.min_zoom))
    max_zoom = float(raw.get("max_zoom", d.max_zoom))
    if min_zoom > max_zoom:
        raise ValueError(f"min_zoom ({min_zoom}) exceeds max_zoom ({max_zoom})")

    return CropConfig(
        aspect_ratio=float(sanitize_aspect_ratio(raw.get("aspect_ratio", d.aspect_ratio))),
        aspect_ratio_presets=presets,
        circular_crop=bool(raw.get("circular_crop", d.circular_crop)),
        show_grid=bool(raw.get("show_grid", d.show_grid)),
        max_file_size=int(raw.get("max_file_size", d.max_file_size)),
        allowed_formats=tuple(str(t) for t in raw.get("allowed_formats", d.allowed_formats)),
        min_zoom=min_zoom,
        max_zoom=max_zoom,
        initial_zoom=float(raw.get("initial_zoom", d.initial_zoom)),
        enable_rotation=bool(raw.get("enable_rotation", d.enable_rotation)),
        rotation_step=float(raw.get("rotation_step", d.rotation_step)),
        enable_pinch_zoom=bool(raw.get("enable_pinch_zoom", d.enable_pinch_zoom)),
        enable_touch_rotation=bool(raw.get("enable_touch_rotation", d.enable_touch_rotation)),
        rotation_sensitivity=float(raw.get("rotation_sensitivity", d.rotation_sensitivity)),
        output_format=_choice(raw.get("output_format", d.output_format), OUTPUT_FORMATS, "output_format"),
        output_quality=validate_quality(raw.get("output_quality", d.output_quality)),
        output_type=_choice(raw.get("output_type", d.output_type), OUTPUT_TYPES, "output_type"),
        output_max_width=_optional_float(raw.get("output_max_width")),
        output_max_height=_optional_float(raw.get("output_max_height")),
        restrict_position=bool(raw.get("restrict_position", d.restrict_position)),
        object_fit=_choice(raw.get("object_fit", d.object_fit), OBJECT_FITS, "object_fit"),
        show_preview=bool(raw.get("show_preview", d.show_preview)),
        preview_size=int(raw.get("preview_size", d.preview_size)),
    )
