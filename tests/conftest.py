from __future__ import annotations

import logging
import random
from pathlib import Path

import pytest
from PIL import Image

from bic.settings import ConvertSettings, validate_settings


def make_image(path: Path, size=(64, 48), mode="RGB", fmt=None, noise=True) -> Path:
    """Write a small test image. Noise keeps encoders from making it trivially tiny."""
    path.parent.mkdir(parents=True, exist_ok=True)
    im = Image.new(mode, size, (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30))
    if noise:
        rng = random.Random(str(path.name))
        px = im.load()
        for x in range(0, size[0], 3):
            for y in range(0, size[1], 3):
                v = rng.randrange(256)
                px[x, y] = (v, 255 - v, v // 2, 255) if mode == "RGBA" else (v, 255 - v, v // 2)
    im.save(path, format=fmt)
    return path


@pytest.fixture(autouse=True)
def _restore_root_logging():
    # The CLI reconfigures the root logger; don't leak its handlers into other tests.
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def dirs(tmp_path: Path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()
    return input_dir, output_dir


@pytest.fixture
def settings_for(dirs):
    input_dir, output_dir = dirs

    def build(**kwargs) -> ConvertSettings:
        base = dict(input_dir=input_dir, output_dir=output_dir, output_format="png", workers=2)
        base.update(kwargs)
        return validate_settings(ConvertSettings(**base))

    return build
