import random
from pathlib import Path

from PIL import Image

from bic.engine import apply_resize, build_output_path, process_image
from bic.results import FileTask

from conftest import make_image


def _task(src: Path, s) -> FileTask:
    return FileTask(src_path=src.resolve(), out_path=build_output_path(src.resolve(), s))


def test_output_path_mirrors_subdirs(settings_for, dirs):
    input_dir, output_dir = dirs
    s = settings_for(output_format="webp")
    src = input_dir.resolve() / "holiday" / "beach.photo.JPG"
    assert build_output_path(src, s) == output_dir.resolve() / "holiday" / "beach.photo.webp"


def test_output_path_flat(settings_for, dirs):
    input_dir, output_dir = dirs
    s = settings_for(output_format="jpg", mirror_subdirs=False)
    src = input_dir.resolve() / "holiday" / "beach.png"
    assert build_output_path(src, s) == output_dir.resolve() / "beach.jpg"


def test_saved_bytes_is_exact_difference(settings_for, dirs):
    input_dir, output_dir = dirs
    src = make_image(input_dir / "pic.png", size=(200, 150))
    s = settings_for(output_format="webp", quality=50)

    r = process_image(_task(src, s), s)

    out = output_dir / "pic.webp"
    assert r.status == "converted"
    assert r.src_bytes == src.stat().st_size
    assert r.out_bytes == out.stat().st_size
    assert r.saved_bytes == src.stat().st_size - out.stat().st_size
    with Image.open(out) as im:
        assert im.format == "WEBP"
        assert im.size == (200, 150)


def test_saved_bytes_can_be_negative(settings_for, dirs):
    input_dir, _ = dirs
    # Pixel noise squeezed into a low quality JPEG grows when stored losslessly.
    src = input_dir / "noise.jpg"
    noise = random.Random(0).randbytes(128 * 128 * 3)
    Image.frombytes("RGB", (128, 128), noise).save(src, quality=10)
    s = settings_for(output_format="png", quality=100)

    r = process_image(_task(src, s), s)

    assert r.ok
    assert r.saved_bytes == r.src_bytes - r.out_bytes
    assert r.saved_bytes < 0


def test_existing_output_skipped_without_overwrite(settings_for, dirs):
    input_dir, output_dir = dirs
    src = make_image(input_dir / "pic.png")
    out = output_dir / "pic.png"
    output_dir.mkdir()
    out.write_bytes(b"keep me")
    s = settings_for(overwrite=False)

    r = process_image(_task(src, s), s)

    assert r.status == "skipped"
    assert r.skipped_reason == "output_exists"
    assert r.saved_bytes == 0
    assert out.read_bytes() == b"keep me"


def test_existing_output_replaced_with_overwrite(settings_for, dirs):
    input_dir, output_dir = dirs
    src = make_image(input_dir / "pic.png", size=(30, 20))
    out = output_dir / "pic.jpg"
    output_dir.mkdir()
    out.write_bytes(b"stale" * 10000)
    s = settings_for(output_format="jpg", overwrite=True)

    r = process_image(_task(src, s), s)

    assert r.ok
    assert not out.read_bytes().startswith(b"stale")
    with Image.open(out) as im:
        assert im.format == "JPEG"
        assert im.size == (30, 20)


def test_corrupt_input_fails_without_output(settings_for, dirs):
    input_dir, output_dir = dirs
    src = input_dir / "broken.png"
    src.write_bytes(b"\x89PNG\r\n\x1a\n garbage")
    s = settings_for()

    r = process_image(_task(src, s), s)

    assert r.status == "failed"
    assert r.error
    assert r.saved_bytes == 0
    assert not output_dir.exists() or list(output_dir.iterdir()) == []


def test_missing_input_fails(settings_for, dirs):
    input_dir, _ = dirs
    s = settings_for()
    r = process_image(_task(input_dir / "gone.png", s), s)
    assert r.status == "failed"
    assert "FileNotFoundError" in r.error


def test_conflicting_task_fails_untouched(settings_for, dirs):
    input_dir, output_dir = dirs
    src = make_image(input_dir / "pic.png")
    s = settings_for()
    task = FileTask(src_path=src, out_path=output_dir / "pic.png", conflict_with=input_dir / "pic.jpg")

    r = process_image(task, s)

    assert r.status == "failed"
    assert "already claimed" in r.error
    assert not output_dir.exists()


def test_resize_fits_inside(settings_for, dirs):
    input_dir, output_dir = dirs
    src = make_image(input_dir / "wide.png", size=(400, 200))
    s = settings_for(resize_width=100, resize_height=100)

    process_image(_task(src, s), s)

    with Image.open(output_dir / "wide.png") as im:
        assert im.size == (100, 50)


def test_resize_single_bound():
    from bic.settings import ConvertSettings

    im = Image.new("RGB", (400, 200))
    assert apply_resize(im, ConvertSettings(resize_height=50)).size == (100, 50)
    assert apply_resize(im, ConvertSettings(resize_width=200)).size == (200, 100)


def test_resize_never_upscales_by_default():
    from bic.settings import ConvertSettings

    im = Image.new("RGB", (40, 20))
    assert apply_resize(im, ConvertSettings(resize_width=400)) is im
    assert apply_resize(im, ConvertSettings(resize_width=400, allow_upscale=True)).size == (400, 200)
    assert apply_resize(im, ConvertSettings()) is im
