"""
Frame normalisation: ordering, format conversion, naming, failures.
"""
import random
from io import BytesIO

from PIL import Image
import pytest

from slideshow_worker.pipeline.errors import DecodeError, InputError
from slideshow_worker.pipeline.frames import (
    frame_name,
    frame_pattern,
    index_digits,
    normalize_frames,
)
from slideshow_worker.pipeline.models import ImageAsset
from tests.conftest import make_asset


RED, GREEN, BLUE = (255, 0, 0), (0, 255, 0), (0, 0, 255)


def test_order_follows_field_names_not_upload_order(tmp_path):
    assets = [
        make_asset("image_002", BLUE),
        make_asset("image_000", RED),
        make_asset("image_001", GREEN),
    ]
    frames = normalize_frames(assets, tmp_path)

    assert [f.name for f in frames] == ["frame-000.png", "frame-001.png", "frame-002.png"]
    colours = [Image.open(f.path).convert("RGB").getpixel((0, 0)) for f in frames]
    assert colours == [RED, GREEN, BLUE]


def test_every_source_format_becomes_png(tmp_path):
    assets = [
        make_asset("image_000", RED, fmt="JPEG"),
        make_asset("image_001", GREEN, fmt="GIF"),
        make_asset("image_002", BLUE, fmt="BMP"),
    ]
    frames = normalize_frames(assets, tmp_path)

    for frame in frames:
        with Image.open(frame.path) as img:
            assert img.format == "PNG"
            assert img.mode in ("RGB", "RGBA")


def test_frame_records_dimensions(tmp_path):
    frames = normalize_frames([make_asset("image_000", size=(120, 80))], tmp_path)
    assert (frames[0].width, frames[0].height) == (120, 80)


def test_no_images_is_input_error(tmp_path):
    with pytest.raises(InputError):
        normalize_frames([], tmp_path)


def test_undecodable_buffer_is_decode_error(tmp_path):
    assets = [make_asset("image_000"), ImageAsset(field_name="image_001", data=b"not an image")]
    with pytest.raises(DecodeError) as exc:
        normalize_frames(assets, tmp_path)
    assert exc.value.details["field"] == "image_001"


def test_index_width_is_at_least_three_digits():
    assert index_digits(1) == 3
    assert index_digits(1000) == 3
    assert index_digits(1001) == 4
    assert frame_name(7, 3) == "frame-007.png"
    assert frame_name(999, 3) == "frame-999.png"


def test_pattern_matches_names(tmp_path):
    assert frame_pattern(tmp_path, 5) == str(tmp_path / "frame-%03d.png")
    assert frame_pattern(tmp_path, 1500) == str(tmp_path / "frame-%04d.png")


def _noisy_png(size=(256, 256)) -> bytes:
    """Incompressible RGB image, so the PNG carries several IDAT chunks."""
    raw = random.Random(7).randbytes(size[0] * size[1] * 3)
    buf = BytesIO()
    Image.frombytes("RGB", size, raw).save(buf, format="PNG")
    return buf.getvalue()


def _end_of_first_idat(png: bytes) -> int:
    pos = 8
    while pos < len(png):
        length = int.from_bytes(png[pos:pos + 4], "big")
        chunk_type = png[pos + 4:pos + 8]
        end = pos + 12 + length
        if chunk_type == b"IDAT":
            return end
        pos = end
    raise AssertionError("no IDAT chunk")


def test_garbage_between_image_data_chunks_is_decode_error(tmp_path):
    png = _noisy_png()
    cut = _end_of_first_idat(png)
    assert png[cut + 4:cut + 8] == b"IDAT"
    broken = png[:cut] + b"\xff" * 20 + png[cut:]

    assets = [make_asset("image_000"), ImageAsset(field_name="image_001", data=broken)]
    with pytest.raises(DecodeError) as exc:
        normalize_frames(assets, tmp_path)
    assert exc.value.details["field"] == "image_001"
    assert exc.value.code == "DECODE_ERROR"


def test_decompression_bomb_is_decode_error(tmp_path, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    with pytest.raises(DecodeError):
        normalize_frames([make_asset("image_000", size=(64, 48))], tmp_path)
