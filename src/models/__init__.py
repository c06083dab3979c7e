"""
Typed models for the meter capture application.

These models are plain dataclasses shared by the camera, capture, pipeline
and extraction layers.
"""

from .device import VideoDevice, FacingMode, CameraSelection
from .frame import CaptureFrame, EnhancedImage
from .extraction import ExtractionResult, Confidence
from .config import (
    Config,
    CameraConfig,
    EnhancementConfig,
    VisionConfig,
    StorageConfig,
    WebConfig,
    ENHANCEMENT_PROFILES,
)

__all__ = [
    # Devices
    "VideoDevice",
    "FacingMode",
    "CameraSelection",
    # Frames
    "CaptureFrame",
    "EnhancedImage",
    # Extraction
    "ExtractionResult",
    "Confidence",
    # Config
    "Config",
    "CameraConfig",
    "EnhancementConfig",
    "VisionConfig",
    "StorageConfig",
    "WebConfig",
    "ENHANCEMENT_PROFILES",
]
