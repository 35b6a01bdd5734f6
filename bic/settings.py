from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from PIL import features

from .errors import SettingsError, UnsupportedFormatError


# Target formats, in the order they are listed to the user.
SUPPORTED_FORMATS = ("png", "jpg", "webp", "avif")

FORMAT_ALIASES = {
    "jpeg": "jpg",
}

# Formats whose encoder is optional in a Pillow build.
# Maps our format name -> PIL.features module name.
OPTIONAL_CODECS = {
    "webp": "webp",
    "avif": "avif",
}

DEFAULT_WORKERS = os.cpu_count() or 1


@dataclass(frozen=True)
class WebpOptions:
    lossless: bool = False
    near_lossless: bool = False
    effort: int = 6  # 0 (fastest) to 6 (slowest)


@dataclass(frozen=True)
class AvifOptions:
    lossless: bool = True
    effort: int = 4  # 0 (fastest) to 9 (slowest)


@dataclass(frozen=True)
class ConvertSettings:
    """
    Everything one conversion run needs to know.

    Built once at startup, validated once with validate_settings(), then
    handed to every component. Keep it a pure data object: the CLI,
    presets and tests all build it with plain keyword arguments.
    """

    # ----- Locations -----
    input_dir: Path = Path("input")
    output_dir: Path = Path("output")

    # True: input/a/b.png -> output/a/b.webp
    # False: everything lands flat in output_dir
    mirror_subdirs: bool = True

    # ----- Output -----
    output_format: str = "webp"
    quality: int = 90  # 0-100
    overwrite: bool = True

    # ----- Resize (fit inside, keeps aspect, never crops) -----
    # If both are None, resizing is skipped.
    resize_width: Optional[int] = None
    resize_height: Optional[int] = None
    allow_upscale: bool = False

    # ----- Metadata -----
    strip_metadata: bool = True
    auto_orient: bool = True  # forced ON if strip_metadata is ON

    # ----- Format specific -----
    png_compress_level: int = 9  # zlib level 0-9
    jpeg_progressive: bool = True
    # Used when a source with transparency is saved as JPEG.
    jpeg_background: tuple[int, int, int] = (255, 255, 255)
    webp: WebpOptions = field(default_factory=WebpOptions)
    avif: AvifOptions = field(default_factory=AvifOptions)

    # ----- Run -----
    workers: int = DEFAULT_WORKERS
    # Above this many files the CLI warns that the run may take a while.
    large_batch_threshold: int = 50


def normalize_format(fmt: str) -> str:
    fmt = fmt.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(fmt, fmt)


def format_available(fmt: str) -> bool:
    """True when this Pillow build can encode fmt."""
    module = OPTIONAL_CODECS.get(fmt)
    if module is None:
        return fmt in SUPPORTED_FORMATS
    return bool(features.check(module))


def validate_settings(s: ConvertSettings) -> ConvertSettings:
    """
    Check every knob and return a normalized copy.

    Raises UnsupportedFormatError for an unknown target format or one this
    Pillow build cannot encode, SettingsError for any other bad value.
    """
    fmt = normalize_format(s.output_format)
    if fmt not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(s.output_format)
    if not format_available(fmt):
        raise UnsupportedFormatError(fmt, "no encoder for this format in the installed Pillow")

    _check_range("quality", s.quality, 0, 100)
    _check_range("png_compress_level", s.png_compress_level, 0, 9)
    _check_range("webp.effort", s.webp.effort, 0, 6)
    _check_range("avif.effort", s.avif.effort, 0, 9)

    for name in ("resize_width", "resize_height"):
        value = getattr(s, name)
        if value is not None and (not isinstance(value, int) or value <= 0):
            raise SettingsError(f"{name} must be a positive integer, got {value!r}")

    if not isinstance(s.workers, int) or s.workers < 1:
        raise SettingsError(f"workers must be >= 1, got {s.workers!r}")

    if len(s.jpeg_background) != 3 or not all(0 <= c <= 255 for c in s.jpeg_background):
        raise SettingsError(f"jpeg_background must be an RGB triple, got {s.jpeg_background!r}")

    input_dir = Path(s.input_dir).resolve()
    output_dir = Path(s.output_dir).resolve()
    if input_dir == output_dir:
        raise SettingsError("input and output directories must differ")

    return replace(
        s,
        output_format=fmt,
        input_dir=input_dir,
        output_dir=output_dir,
        # Guardrail: stripping EXIF loses the orientation tag, so bake it in.
        auto_orient=s.auto_orient or s.strip_metadata,
    )


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise SettingsError(f"{name} must be an integer in {low}-{high}, got {value!r}")
