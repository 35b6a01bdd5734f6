from __future__ import annotations

from PIL import Image

from .errors import UnsupportedFormatError
from .settings import ConvertSettings


FORMAT_TO_EXT = {
    "png": ".png",
    "jpg": ".jpg",
    "webp": ".webp",
    "avif": ".avif",
}

# Pillow chooses the encoder by format=..., not by extension
PIL_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "webp": "WEBP",
    "avif": "AVIF",
}

# Pillow's AVIF encoder speed runs 0 (slowest) to 10 (fastest).
AVIF_MAX_SPEED = 10


def apply_format(im: Image.Image, s: ConvertSettings) -> tuple[Image.Image, dict]:
    """
    Prepare an image for the configured target format.

    Returns the (possibly converted) image and the keyword arguments for
    Image.save(). The caller passes format=PIL_FORMATS[...] itself.
    """
    fmt = s.output_format

    if fmt == "png":
        im, kwargs = _png(im, s)
    elif fmt == "jpg":
        im, kwargs = _jpeg(im, s)
    elif fmt == "webp":
        im, kwargs = _webp(im, s)
    elif fmt == "avif":
        im, kwargs = _avif(im, s)
    else:
        raise UnsupportedFormatError(fmt)

    kwargs.update(_metadata_kwargs(im, s))
    return im, kwargs


def _png(im: Image.Image, s: ConvertSettings) -> tuple[Image.Image, dict]:
    kwargs: dict = {
        "optimize": True,
        "compress_level": int(s.png_compress_level),
    }

    # PNG is lossless; "quality" means fewer palette colours.
    if s.quality < 100:
        im = _to_rgb_or_rgba(im)
        colors = max(2, round(256 * s.quality / 100))
        # MEDIANCUT can't handle alpha
        method = Image.Quantize.FASTOCTREE if im.mode == "RGBA" else Image.Quantize.MEDIANCUT
        im = im.quantize(colors=colors, method=method)
    elif im.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
        im = _to_rgb_or_rgba(im)

    return im, kwargs


def _jpeg(im: Image.Image, s: ConvertSettings) -> tuple[Image.Image, dict]:
    if has_alpha(im):
        im = flatten_alpha(im, s.jpeg_background)
    elif im.mode not in ("L", "RGB", "CMYK"):
        im = im.convert("RGB")

    kwargs = {
        "quality": max(1, min(100, int(s.quality))),
        "optimize": True,
        "progressive": bool(s.jpeg_progressive),
    }
    return im, kwargs


def _webp(im: Image.Image, s: ConvertSettings) -> tuple[Image.Image, dict]:
    im = _to_rgb_or_rgba(im)
    opts = s.webp

    # Pillow has no near-lossless preprocessing switch; encode losslessly.
    lossless = opts.lossless or opts.near_lossless

    kwargs = {
        "quality": int(s.quality),
        "lossless": bool(lossless),
        "method": int(opts.effort),
    }
    return im, kwargs


def _avif(im: Image.Image, s: ConvertSettings) -> tuple[Image.Image, dict]:
    im = _to_rgb_or_rgba(im)
    opts = s.avif

    kwargs: dict = {
        "quality": int(s.quality),
        "speed": max(0, min(AVIF_MAX_SPEED, 9 - int(opts.effort))),
    }
    if opts.lossless:
        kwargs["quality"] = 100
        kwargs["subsampling"] = "4:4:4"
    return im, kwargs


def _metadata_kwargs(im: Image.Image, s: ConvertSettings) -> dict:
    # If strip_metadata is True we simply don't pass exif / icc_profile.
    kwargs: dict = {}
    if s.strip_metadata:
        return kwargs

    exif = im.info.get("exif")
    if exif is not None:
        kwargs["exif"] = exif

    icc = im.info.get("icc_profile")
    if icc is not None:
        kwargs["icc_profile"] = icc

    return kwargs


def _to_rgb_or_rgba(im: Image.Image) -> Image.Image:
    if im.mode in ("RGB", "RGBA"):
        return im
    return im.convert("RGBA" if has_alpha(im) else "RGB")


def flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    # Ensure we are in RGBA so alpha exists
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, tuple(background_rgb) + (255,))
    comp = Image.alpha_composite(bg, rgba)
    return comp.convert("RGB")


def has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False
