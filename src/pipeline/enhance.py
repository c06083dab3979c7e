"""
Enhancement pipeline for meter photos.

Stages, in order:
1. Color reduction to a luminance channel (gray, or YCrCb keeping chroma)
2. CLAHE on luminance only (uneven lighting and glare across display/label)
3. Optional 3x3 sharpening, strictly after CLAHE
4. Resize to the configured target width with area averaging
5. JPEG encode at the configured quality

The function is pure: the source frame is never written to, and every
intermediate raster lives in a RasterArena released before returning.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from domain.errors import InvalidFrame
from models.config import COLOR_MODES, EnhancementConfig
from models.frame import CaptureFrame, EnhancedImage
from .arena import RasterArena

SHARPEN_KERNEL = np.array(
    [
        [0, -1, 0],
        [-1, 5, -1],
        [0, -1, 0],
    ],
    dtype=np.float32,
)

Chroma = Optional[Tuple[np.ndarray, np.ndarray]]


def scaled_size(width: int, height: int, target_width: int) -> Tuple[int, int]:
    """Size after scaling to target_width, height rounded half-up (min 1)."""
    scaled_height = int(np.floor(height * target_width / width + 0.5))
    return target_width, max(1, scaled_height)


def enhance(
    frame: CaptureFrame,
    config: Optional[EnhancementConfig] = None,
    arena_factory: Callable[[], RasterArena] = RasterArena,
) -> EnhancedImage:
    """
    Turn a raw capture into an enhanced, resized JPEG.

    Args:
        frame: Captured raster (BGR, BGRA or grayscale).
        config: Pipeline settings; defaults to the "standard" profile.
        arena_factory: Scope for intermediate rasters.

    Raises:
        InvalidFrame: empty, zero-dimension or malformed frame.
    """
    cfg = config or EnhancementConfig()
    if cfg.color_mode not in COLOR_MODES:
        raise ValueError(f"Unknown color mode: {cfg.color_mode}")

    with arena_factory() as arena:
        _validate(frame)

        working = arena.track(np.array(frame.pixels, copy=True))
        luma, chroma = _reduce_color(working, cfg.color_mode, arena)

        clahe = arena.track(
            cv2.createCLAHE(clipLimit=float(cfg.clip_limit), tileGridSize=tuple(cfg.tile_grid))
        )
        luma = arena.track(clahe.apply(luma))

        if cfg.sharpen:
            luma = arena.track(cv2.filter2D(luma, -1, SHARPEN_KERNEL))

        image = luma if chroma is None else _restore_color(luma, chroma, arena)

        width, height = scaled_size(frame.width, frame.height, cfg.target_width)
        resized = arena.track(cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA))
        encoded = _encode_jpeg(resized, cfg.jpeg_quality)

    logging.debug(
        f"Enhanced frame {frame.width}x{frame.height} -> {width}x{height} "
        f"({len(encoded)} bytes, profile={cfg.profile})"
    )
    return EnhancedImage(width=width, height=height, encoded_bytes=encoded)


def _validate(frame: Optional[CaptureFrame]) -> None:
    if frame is None or frame.pixels is None:
        raise InvalidFrame("No frame data")
    pixels = frame.pixels
    if frame.width <= 0 or frame.height <= 0 or pixels.size == 0:
        raise InvalidFrame(f"Zero-dimension frame ({frame.width}x{frame.height})")
    if pixels.dtype != np.uint8:
        raise InvalidFrame(f"Expected 8-bit raster, got {pixels.dtype}")
    if pixels.ndim not in (2, 3):
        raise InvalidFrame(f"Unsupported raster shape {pixels.shape}")
    if pixels.shape[:2] != (frame.height, frame.width):
        raise InvalidFrame(
            f"Frame size {frame.width}x{frame.height} does not match raster shape {pixels.shape}"
        )
    if pixels.ndim == 3 and pixels.shape[2] not in (1, 3, 4):
        raise InvalidFrame(f"Unsupported channel count {pixels.shape[2]}")


def _reduce_color(pixels: np.ndarray, color_mode: str, arena: RasterArena) -> Tuple[np.ndarray, Chroma]:
    """Return (luma, chroma); chroma is None for single-channel output."""
    if pixels.ndim == 2:
        return pixels, None
    channels = pixels.shape[2]
    if channels == 1:
        return arena.track(np.ascontiguousarray(pixels[:, :, 0])), None

    if color_mode == "gray":
        code = cv2.COLOR_BGRA2GRAY if channels == 4 else cv2.COLOR_BGR2GRAY
        return arena.track(cv2.cvtColor(pixels, code)), None

    if channels == 4:
        pixels = arena.track(cv2.cvtColor(pixels, cv2.COLOR_BGRA2BGR))
    ycrcb = arena.track(cv2.cvtColor(pixels, cv2.COLOR_BGR2YCrCb))
    y, cr, cb = (arena.track(c) for c in cv2.split(ycrcb))
    return y, (cr, cb)


def _restore_color(luma: np.ndarray, chroma: Tuple[np.ndarray, np.ndarray], arena: RasterArena) -> np.ndarray:
    merged = arena.track(cv2.merge([luma, chroma[0], chroma[1]]))
    return arena.track(cv2.cvtColor(merged, cv2.COLOR_YCrCb2BGR))


def _encode_jpeg(image: np.ndarray, quality: float) -> bytes:
    quality_pct = int(min(100, max(1, round(quality * 100))))
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality_pct])
    if not ok:
        raise RuntimeError("Failed to encode JPEG")
    return buf.tobytes()
