"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os
import sys
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from camera.base import MediaDevices, MediaStream, MediaTrack, StreamConstraints  # noqa: E402
from camera.selector import select_default, select_for_facing  # noqa: E402
from domain.errors import ConstraintUnsatisfiable, DeviceBusy, PermissionDenied  # noqa: E402
from models.device import VideoDevice  # noqa: E402


def make_pixels(width: int = 640, height: int = 480, channels: int = 3) -> np.ndarray:
    """Gradient raster with some structure so CLAHE and JPEG have work to do."""
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    base = ((x[None, :] + y[:, None]) / 2).astype(np.uint8)
    if channels == 1:
        return base
    return np.dstack([base] * channels)


class FakeTrack(MediaTrack):
    def __init__(self, device_id: str, pixels: Optional[np.ndarray]):
        self._device_id = device_id
        self._pixels = pixels
        self._live = True

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def is_live(self) -> bool:
        return self._live

    def latest_frame(self) -> Optional[np.ndarray]:
        return None if self._pixels is None else self._pixels.copy()

    def stop(self) -> None:
        self._live = False


class FakeMediaDevices(MediaDevices):
    """
    In-memory camera host.

    Counts every acquired and released track so tests can assert that no
    hardware session leaks.
    """

    def __init__(
        self,
        devices: Sequence[VideoDevice] = (),
        busy: Sequence[str] = (),
        deny: bool = False,
        granted: bool = True,
        hide_labels: bool = False,
        substitute: Optional[Dict[str, str]] = None,
        delay: float = 0.0,
        pixels: Optional[np.ndarray] = None,
    ):
        self.devices: List[VideoDevice] = list(devices)
        self.busy = set(busy)
        self.deny = deny
        self.granted = granted
        self.hide_labels = hide_labels
        self.substitute = dict(substitute or {})
        self.delay = delay
        self.pixels = make_pixels() if pixels is None else pixels
        self.fail_enumeration = False

        self.requests: List[StreamConstraints] = []
        self.open_tracks: List[FakeTrack] = []
        self.acquired = 0
        self.released = 0

    @property
    def live_tracks(self) -> int:
        return sum(1 for t in self.open_tracks if t.is_live)

    async def permission_granted(self) -> bool:
        return self.granted

    async def list_video_devices(self) -> List[VideoDevice]:
        if self.fail_enumeration:
            raise OSError("enumeration failed")
        if self.hide_labels:
            return [VideoDevice(d.id, "", d.group_id) for d in self.devices]
        return list(self.devices)

    async def acquire_stream(self, constraints: StreamConstraints) -> MediaStream:
        self.requests.append(constraints)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.deny:
            raise PermissionDenied("Camera permission denied")

        if constraints.device_id is not None:
            device = next((d for d in self.devices if d.id == constraints.device_id), None)
            if device is None:
                raise ConstraintUnsatisfiable(f"No camera {constraints.device_id}", constraints.device_id)
        else:
            device = select_for_facing(self.devices, constraints.facing) or select_default(self.devices)
            if device is None:
                raise ConstraintUnsatisfiable("No camera available")

        device_id = self.substitute.get(device.id, device.id)
        if device_id in self.busy:
            raise DeviceBusy(f"Camera {device_id} is busy", device_id)

        track = FakeTrack(device_id, self.pixels)
        self.open_tracks.append(track)
        self.acquired += 1
        self.granted = True
        self.hide_labels = False
        return MediaStream([track])

    async def release_track(self, track: MediaTrack) -> None:
        track.stop()
        self.released += 1


PHONE_DEVICES = [
    VideoDevice("front-id", "camera2 1, facing front", "g1"),
    VideoDevice("tele-id", "camera2 2, facing back", "g1"),
    VideoDevice("wide-id", "camera2 0, facing back", "g1"),
]

LAPTOP_DEVICES = [
    VideoDevice("usb-a", "Integrated Webcam", "a"),
    VideoDevice("usb-b", "HD Pro Webcam C920", "b"),
]


@pytest.fixture
def phone_devices():
    return list(PHONE_DEVICES)


@pytest.fixture
def media(phone_devices):
    return FakeMediaDevices(phone_devices)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  preferred_facing: "environment"
  resolution: [640, 480]
  fps: 30

enhancement:
  profile: "standard"
  sharpen: true
  color_mode: "gray"

vision:
  enabled: true
  endpoint: "http://localhost:3000/api/ocr"
  timeout_s: 30

storage:
  local_database_path: "data/test.sqlite"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "preferred_facing": "environment",
            "resolution": [1280, 720],
            "fps": 30,
        },
        "enhancement": {
            "profile": "standard",
            "target_width": 720,
            "jpeg_quality": 0.9,
            "sharpen": True,
            "color_mode": "gray",
            "clip_limit": 2.0,
            "tile_grid": [8, 8],
        },
        "vision": {
            "enabled": True,
            "endpoint": "http://localhost:3000/api/ocr",
            "timeout_s": 30,
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
