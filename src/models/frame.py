"""
Raster models for captured and enhanced frames.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class CaptureFrame:
    """
    Immutable snapshot of one frame from the active stream.

    Attributes:
        pixels: Raster data as a read-only numpy array (BGR, BGRA or grayscale).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when the frame was drawn.
        device_id: Actual device the frame came from.
    """
    pixels: np.ndarray
    width: int
    height: int
    timestamp: float = 0.0
    device_id: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        pixels: np.ndarray,
        timestamp: float = 0.0,
        device_id: Optional[str] = None,
    ) -> "CaptureFrame":
        """Copy a numpy raster into a new read-only frame."""
        snapshot = np.array(pixels, copy=True)
        snapshot.setflags(write=False)
        if snapshot.ndim >= 2:
            h, w = snapshot.shape[:2]
        else:
            h, w = 0, 0
        return cls(
            pixels=snapshot,
            width=int(w),
            height=int(h),
            timestamp=timestamp,
            device_id=device_id,
        )

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])


@dataclass(frozen=True)
class EnhancedImage:
    """Encoded output of the enhancement pipeline, ready for transmission."""
    width: int
    height: int
    encoded_bytes: bytes = field(repr=False)
    mime_type: str = "image/jpeg"

    def to_base64(self) -> str:
        """Base64 payload without a data-URI prefix."""
        return base64.b64encode(self.encoded_bytes).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"
