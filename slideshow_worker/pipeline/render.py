"""
Step 2: Video assembly via ffmpeg.

Stitches the normalised frame sequence into one H.264/MP4:
  - input rate = 1 / frame duration (floored at 0.1 fps)
  - output resampled to a constant OUTPUT_FPS
  - letter-boxed onto a canvas whose long edge is <= MAX_VIDEO_DIMENSION
  - yuv420p + faststart for broad / progressive playback

The encoder runs as an asyncio subprocess with a wall-clock budget.
"""

import os
import re
import math
import time
import uuid
import asyncio
import logging
from fractions import Fraction
from pathlib import Path

from .errors import EncodeError
from .frames import frame_pattern
from .models import NormalizedFrame, VideoArtifact, VIDEO_MIME_TYPE

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
RENDER_TIMEOUT_SECONDS = float(os.getenv("RENDER_TIMEOUT_SECONDS", "120"))
MAX_VIDEO_DIMENSION = int(os.getenv("MAX_VIDEO_DIMENSION", "1920"))
OUTPUT_FPS = int(os.getenv("OUTPUT_FPS", "30"))

MIN_INPUT_FRAME_RATE = Fraction(1, 10)
VIDEO_CODEC = "libx264"
PIXEL_FORMAT = "yuv420p"
STDERR_TAIL = 2000


# ── Timing ───────────────────────────────────────────────────────────────────

def input_frame_rate(frame_duration: float) -> Fraction:
    """Frames per second for the still sequence, never below 0.1."""
    if not math.isfinite(frame_duration) or frame_duration <= 0:
        raise ValueError(f"frame_duration must be positive and finite, got {frame_duration}")
    rate = (1 / Fraction(frame_duration)).limit_denominator(10000)
    return max(MIN_INPUT_FRAME_RATE, rate)


def effective_frame_duration(frame_duration: float) -> float:
    """Seconds each frame is actually held once the rate floor applies."""
    return float(1 / input_frame_rate(frame_duration))


def nominal_duration(frame_count: int, frame_duration: float) -> float:
    return frame_count * effective_frame_duration(frame_duration)


# ── Geometry ─────────────────────────────────────────────────────────────────

def _even(value: int) -> int:
    return max(2, value - value % 2)


def output_size(width: int, height: int, max_dimension: int = MAX_VIDEO_DIMENSION) -> tuple[int, int]:
    """
    Fit (width, height) inside max_dimension on the long edge without
    upscaling, keeping aspect ratio, with both sides even.
    """
    long_edge = max(width, height)
    if long_edge > max_dimension:
        scale = max_dimension / long_edge
        width = round(width * scale)
        height = round(height * scale)
    return _even(width), _even(height)


def video_filter(width: int, height: int) -> str:
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
        f"setsar=1"
    )


# ── Naming ───────────────────────────────────────────────────────────────────

def artifact_file_name(title: str) -> str:
    """Slugify the title into a safe .mp4 file name."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")[:60]
    if not slug:
        slug = f"workflow-video-{int(time.time() * 1000)}"
    return f"{slug}.mp4"


# ── Encoder ──────────────────────────────────────────────────────────────────

def build_ffmpeg_command(
    frames: list[NormalizedFrame],
    frame_duration: float,
    output_path: Path,
    ffmpeg_binary: str = FFMPEG_BINARY,
) -> list[str]:
    frame_dir = Path(frames[0].path).parent
    width, height = output_size(frames[0].width, frames[0].height)
    return [
        ffmpeg_binary, "-y",
        "-hide_banner",
        "-loglevel", "error",
        "-start_number", "0",
        "-framerate", str(input_frame_rate(frame_duration)),
        "-i", frame_pattern(frame_dir, len(frames)),
        "-c:v", VIDEO_CODEC,
        "-pix_fmt", PIXEL_FORMAT,
        "-vf", video_filter(width, height),
        "-r", str(OUTPUT_FPS),
        "-movflags", "+faststart",
        str(output_path),
    ]


async def _run_encoder(cmd: list[str], timeout: float) -> tuple[int, str]:
    """Run the encoder; returns (exit code, stderr). Kills it on timeout."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise EncodeError(f"Encoder not found: {cmd[0]}") from e

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise EncodeError(
            f"Encoder timed out after {timeout:g}s",
            details={"timeout_seconds": timeout},
        )

    return proc.returncode, stderr.decode("utf-8", errors="replace")


async def render_video(
    frames: list[NormalizedFrame],
    frame_duration: float,
    workspace: Path,
    file_name: str,
    timeout: float = RENDER_TIMEOUT_SECONDS,
) -> VideoArtifact:
    """
    Encode `frames` into an MP4 inside `workspace`.

    Args:
        frames:         Ordered frames from normalize_frames.
        frame_duration: Seconds each frame is displayed (> 0).
        workspace:      Run-owned directory; the output file is written here.
        file_name:      Display name for the artifact.
        timeout:        Wall-clock budget for the encoder.

    Returns:
        VideoArtifact holding the encoded bytes.

    Raises:
        EncodeError: Non-zero exit, timeout, or a missing/empty output file.
    """
    if not frames:
        raise EncodeError("No frames to assemble")

    output_path = workspace / f"video-{uuid.uuid4()}.mp4"
    cmd = build_ffmpeg_command(frames, frame_duration, output_path)
    logger.info(f"Encoding {len(frames)} frame(s) at {input_frame_rate(frame_duration)} fps → {output_path.name}")

    returncode, stderr = await _run_encoder(cmd, timeout)

    if returncode != 0:
        raise EncodeError(
            f"Encoder exited with status {returncode}",
            details={"returncode": returncode, "stderr": stderr[-STDERR_TAIL:]},
        )

    if not output_path.exists() or output_path.stat().st_size == 0:
        raise EncodeError(
            "Encoder produced no output file",
            details={"stderr": stderr[-STDERR_TAIL:]},
        )

    data = output_path.read_bytes()
    logger.info(f"Encoded {output_path.name}: {len(data)} bytes")

    return VideoArtifact(
        data=data,
        file_name=file_name,
        mime_type=VIDEO_MIME_TYPE,
        frame_count=len(frames),
        frame_duration_seconds=effective_frame_duration(frame_duration),
        nominal_duration_seconds=nominal_duration(len(frames), frame_duration),
    )
