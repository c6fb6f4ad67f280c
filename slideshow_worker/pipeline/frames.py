"""
Step 1: Frame normalisation.

Decodes every uploaded image with PIL, re-encodes it as PNG and writes it to
the run's frame directory as frame-000.png, frame-001.png, ...

Frame order is the ascending sort of the upload field names, never the order
in which the uploads arrived.
"""

import logging
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, InputError
from .models import ImageAsset, NormalizedFrame

logger = logging.getLogger(__name__)

FRAME_PREFIX = "frame-"
FRAME_FORMAT = "PNG"
MIN_INDEX_DIGITS = 3


def order_assets(assets: list[ImageAsset]) -> list[ImageAsset]:
    """Sort assets by field name (image_000, image_001, ...)."""
    return sorted(assets, key=lambda asset: asset.field_name)


def index_digits(count: int) -> int:
    """Zero-pad width for `count` frames; at least 3 so 1000 frames fit."""
    return max(MIN_INDEX_DIGITS, len(str(max(count - 1, 0))))


def frame_name(index: int, digits: int) -> str:
    return f"{FRAME_PREFIX}{index:0{digits}d}.png"


def frame_pattern(frame_dir: Path, count: int) -> str:
    """printf-style input pattern understood by the encoder."""
    return str(frame_dir / f"{FRAME_PREFIX}%0{index_digits(count)}d.png")


def _to_png(data: bytes, label: str) -> tuple[bytes, int, int]:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    # Pillow reports corrupt chunk streams as SyntaxError
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(
            f"Could not decode image '{label}': {e}",
            details={"field": label},
        ) from e

    # PNG can't hold CMYK/YCbCr etc.; keep alpha where the source had it
    if img.mode not in ("RGB", "RGBA"):
        has_alpha = img.mode in ("LA", "PA", "RGBa") or "transparency" in img.info
        img = img.convert("RGBA" if has_alpha else "RGB")

    output = BytesIO()
    img.save(output, format=FRAME_FORMAT)
    return output.getvalue(), img.width, img.height


def normalize_frames(assets: list[ImageAsset], frame_dir: Path) -> list[NormalizedFrame]:
    """
    Convert every asset to PNG and write it to `frame_dir`.

    Args:
        assets:    Uploaded images, in any order.
        frame_dir: Existing directory owned by the current run.

    Returns:
        NormalizedFrame list where frame N comes from the Nth asset by sorted field name.

    Raises:
        InputError:  No assets were supplied.
        DecodeError: Any buffer is not a readable image.
    """
    if not assets:
        raise InputError("At least one image is required")

    ordered = order_assets(assets)
    digits = index_digits(len(ordered))
    frames: list[NormalizedFrame] = []

    for index, asset in enumerate(ordered):
        png_bytes, width, height = _to_png(asset.data, asset.field_name)
        name = frame_name(index, digits)
        path = frame_dir / name
        path.write_bytes(png_bytes)
        frames.append(NormalizedFrame(
            index=index,
            name=name,
            path=str(path),
            width=width,
            height=height,
        ))
        logger.debug(f"{asset.field_name} ({asset.filename or 'unnamed'}) → {name} {width}x{height}")

    logger.info(f"Normalised {len(frames)} frame(s) into {frame_dir}")
    return frames
