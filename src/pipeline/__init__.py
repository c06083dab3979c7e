"""
Image enhancement pipeline.

Turns a captured frame into a compact JPEG tuned for digit and label
legibility before it leaves the device.
"""

from .arena import RasterArena
from .enhance import enhance, scaled_size, SHARPEN_KERNEL

__all__ = [
    "RasterArena",
    "enhance",
    "scaled_size",
    "SHARPEN_KERNEL",
]
