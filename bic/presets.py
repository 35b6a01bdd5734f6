from __future__ import annotations

from dataclasses import replace

from .settings import AvifOptions, ConvertSettings, WebpOptions


PRESET_NAMES = ("web", "archive", "thumbnail", "jpeg")


def apply_preset(name: str, base: ConvertSettings) -> ConvertSettings:
    name = name.lower()

    if name == "web":
        return replace(
            base,
            output_format="webp",
            quality=80,
            resize_width=1920,
            resize_height=1920,
            webp=WebpOptions(lossless=False, near_lossless=False, effort=6),
        )

    # Keep every pixel, squeeze harder.
    if name == "archive":
        return replace(
            base,
            output_format="avif",
            strip_metadata=False,
            avif=AvifOptions(lossless=True, effort=9),
        )

    if name == "thumbnail":
        return replace(
            base,
            output_format="webp",
            quality=70,
            resize_width=320,
            resize_height=320,
        )

    if name == "jpeg":
        return replace(
            base,
            output_format="jpg",
            quality=82,
        )

    raise ValueError(f"Unknown preset: {name}")
