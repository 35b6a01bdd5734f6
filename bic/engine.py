from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from PIL import Image, ImageOps

from .errors import OutputConflictError
from .formats import FORMAT_TO_EXT, PIL_FORMATS, apply_format
from .results import FileTask, ProcessResult
from .settings import ConvertSettings


log = logging.getLogger(__name__)


def build_output_path(src_path: Path, s: ConvertSettings) -> Path:
    """
    photo.png -> <output_dir>/photo.webp, keeping the subdirectory the
    source sits in below input_dir unless mirror_subdirs is off.
    """
    src_path = Path(src_path)
    name = src_path.stem + FORMAT_TO_EXT[s.output_format]

    if s.mirror_subdirs:
        try:
            relative = src_path.parent.relative_to(s.input_dir)
        except ValueError:
            relative = Path()
        return s.output_dir / relative / name

    return s.output_dir / name


def process_image(task: FileTask, s: ConvertSettings) -> ProcessResult:
    """
    Convert one file. Never raises: every failure comes back as a
    ProcessResult with status "failed" so one bad file can't stop a batch.
    """
    src_path, out_path = task.src_path, task.out_path

    if task.conflict_with is not None:
        err = OutputConflictError(out_path, task.conflict_with)
        return ProcessResult(src_path=src_path, out_path=out_path, status="failed", error=str(err))

    try:
        if not s.overwrite and out_path.exists():
            return ProcessResult(
                src_path=src_path,
                out_path=out_path,
                status="skipped",
                skipped_reason="output_exists",
            )

        src_bytes = src_path.stat().st_size
        _transcode(src_path, out_path, s)
        out_bytes = out_path.stat().st_size
    except Exception as e:
        # Per-file boundary: Pillow raises anything from OSError to SyntaxError
        # on broken input.
        log.debug("Failed to convert %s", src_path, exc_info=True)
        return ProcessResult(
            src_path=src_path,
            out_path=out_path,
            status="failed",
            error=_describe(e),
        )

    log.debug("Converted %s -> %s (%d -> %d bytes)", src_path, out_path, src_bytes, out_bytes)
    return ProcessResult(
        src_path=src_path,
        out_path=out_path,
        status="converted",
        src_bytes=src_bytes,
        out_bytes=out_bytes,
    )


def _transcode(src_path: Path, out_path: Path, s: ConvertSettings) -> None:
    with Image.open(src_path) as im:
        im.load()

        # Auto-orient (important if we're stripping EXIF)
        if s.auto_orient:
            im = ImageOps.exif_transpose(im)

        im = apply_resize(im, s)
        im, save_kwargs = apply_format(im, s)

        out_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a temp file first so a failed encode never leaves a
        # truncated output, and an overwrite replaces the file in one step.
        tmp_path = _save_to_temp(im, out_path, s, save_kwargs)
        try:
            tmp_path.replace(out_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise


def _save_to_temp(im: Image.Image, out_path: Path, s: ConvertSettings, save_kwargs: dict) -> Path:
    # Create temp file next to the output so the rename is cheap
    fd, tmp_name = tempfile.mkstemp(prefix=".bic_", suffix=out_path.suffix, dir=str(out_path.parent))
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        im.save(tmp_path, format=PIL_FORMATS[s.output_format], **save_kwargs)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    return tmp_path


def apply_resize(im: Image.Image, s: ConvertSettings) -> Image.Image:
    """
    Fit the image inside resize_width x resize_height.

    - a missing bound doesn't constrain that side
    - aspect ratio is kept, nothing is cropped
    - never upscale unless allow_upscale=True
    """
    if s.resize_width is None and s.resize_height is None:
        return im

    w, h = im.size
    if w <= 0 or h <= 0:
        return im

    scales = []
    if s.resize_width is not None:
        scales.append(s.resize_width / w)
    if s.resize_height is not None:
        scales.append(s.resize_height / h)
    scale = min(scales)

    if not s.allow_upscale and scale >= 1.0:
        return im

    new_w = max(1, round(w * scale))
    new_h = max(1, round(h * scale))

    if (new_w, new_h) == (w, h):
        return im

    return im.resize((new_w, new_h), Image.Resampling.LANCZOS)


def _describe(e: BaseException) -> str:
    text = str(e)
    return f"{type(e).__name__}: {text}" if text else type(e).__name__
