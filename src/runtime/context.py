from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from camera.backends.opencv import OpenCVMediaDevices
from camera.base import MediaDevices
from camera.catalog import DeviceCatalog
from camera.stream import StreamManager
from capture.state_machine import CaptureController
from extraction.client import VisionClient
from models.config import Config
from models.device import FacingMode
from storage.database import ReadingStore


@dataclass
class RuntimeContext:
    """Holds the wired-up services; avoids global singletons."""

    config: Config
    media: MediaDevices
    catalog: DeviceCatalog
    streams: StreamManager
    controller: CaptureController
    vision_client: Optional[VisionClient] = None
    store: Optional[ReadingStore] = None

    def close(self) -> None:
        if self.store is not None:
            self.store.close()


def build_runtime(config: Config, media: Optional[MediaDevices] = None) -> RuntimeContext:
    """Create every service from config. `media` overrides the camera backend."""
    if media is None:
        media = OpenCVMediaDevices(config.camera)

    catalog = DeviceCatalog(media)
    streams = StreamManager(
        media,
        resolution=tuple(config.camera.resolution) if config.camera.resolution else None,
        fps=config.camera.fps,
    )

    vision_client = VisionClient(config.vision) if config.vision.enabled else None

    store = None
    if config.storage.enabled:
        store = ReadingStore(config.storage.local_database_path)
        store.initialize()

    controller = CaptureController(
        catalog,
        streams,
        enhancement=config.enhancement,
        vision_client=vision_client,
        store=store,
        preferred_facing=FacingMode.parse(config.camera.preferred_facing) or FacingMode.ENVIRONMENT,
    )

    return RuntimeContext(
        config=config,
        media=media,
        catalog=catalog,
        streams=streams,
        controller=controller,
        vision_client=vision_client,
        store=store,
    )
