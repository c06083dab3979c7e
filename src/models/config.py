"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# Deployment profiles: (target_width, jpeg_quality)
ENHANCEMENT_PROFILES: Dict[str, Tuple[int, float]] = {
    "compact": (512, 0.6),
    "standard": (720, 0.9),
    "detailed": (1280, 0.8),
}
DEFAULT_PROFILE = "standard"

COLOR_MODES = ("gray", "ycrcb")


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    preferred_facing: str = "environment"
    resolution: List[int] = field(default_factory=lambda: [1920, 1080])
    fps: int = 30
    max_devices: int = 16
    # device id -> label, for hosts whose driver names are missing or misleading
    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            preferred_facing=d.get("preferred_facing", "environment"),
            resolution=d.get("resolution", [1920, 1080]),
            fps=d.get("fps", 30),
            max_devices=d.get("max_devices", 16),
            labels=dict(d.get("labels") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "preferred_facing": self.preferred_facing,
            "resolution": self.resolution,
            "fps": self.fps,
            "max_devices": self.max_devices,
            "labels": self.labels,
        }


@dataclass
class EnhancementConfig:
    """
    Enhancement pipeline configuration.

    target_width is the one place the resize width is defined; profiles only
    provide defaults for it and jpeg_quality.
    """
    profile: str = DEFAULT_PROFILE
    target_width: int = 720
    jpeg_quality: float = 0.9
    sharpen: bool = True
    color_mode: str = "gray"
    clip_limit: float = 2.0
    tile_grid: Tuple[int, int] = (8, 8)

    @classmethod
    def for_profile(cls, profile: str, **overrides: Any) -> "EnhancementConfig":
        if profile not in ENHANCEMENT_PROFILES:
            raise ValueError(f"Unknown enhancement profile: {profile}")
        width, quality = ENHANCEMENT_PROFILES[profile]
        cfg = cls(profile=profile, target_width=width, jpeg_quality=quality)
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        return cfg

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EnhancementConfig":
        tile_grid = d.get("tile_grid")
        return cls.for_profile(
            d.get("profile", DEFAULT_PROFILE),
            target_width=d.get("target_width"),
            jpeg_quality=d.get("jpeg_quality"),
            sharpen=d.get("sharpen"),
            color_mode=d.get("color_mode"),
            clip_limit=d.get("clip_limit"),
            tile_grid=tuple(tile_grid) if tile_grid else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.profile,
            "target_width": self.target_width,
            "jpeg_quality": self.jpeg_quality,
            "sharpen": self.sharpen,
            "color_mode": self.color_mode,
            "clip_limit": self.clip_limit,
            "tile_grid": list(self.tile_grid),
        }


@dataclass
class VisionConfig:
    """Remote vision-extraction endpoint."""
    enabled: bool = True
    endpoint: str = "http://localhost:3000/api/ocr"
    timeout_s: float = 30.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VisionConfig":
        return cls(
            enabled=d.get("enabled", True),
            endpoint=d.get("endpoint", "http://localhost:3000/api/ocr"),
            timeout_s=d.get("timeout_s", 30.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "endpoint": self.endpoint,
            "timeout_s": self.timeout_s,
        }


@dataclass
class StorageConfig:
    """Storage configuration."""
    local_database_path: str = "data/meter_records.sqlite"
    enabled: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/meter_records.sqlite"),
            enabled=d.get("enabled", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_database_path": self.local_database_path,
            "enabled": self.enabled,
        }


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(host=d.get("host", "0.0.0.0"), port=d.get("port", 5000))

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    enhancement: EnhancementConfig = field(default_factory=EnhancementConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/meter_capture.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            enhancement=EnhancementConfig.from_dict(d.get("enhancement") or {}),
            vision=VisionConfig.from_dict(d.get("vision") or {}),
            storage=StorageConfig.from_dict(d.get("storage") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            log_path=d.get("log_path", "logs/meter_capture.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "camera": self.camera.to_dict(),
            "enhancement": self.enhancement.to_dict(),
            "vision": self.vision.to_dict(),
            "storage": self.storage.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
