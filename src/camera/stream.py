"""
Stream manager: sole owner of the live capture session.

At most one ActiveStream exists at a time. Starting a new stream always
releases every track of the previous one first, so hosts that allow a single
open session per camera never report the device as busy because of us.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from domain.errors import (
    DeviceBusy,
    InvalidFrame,
    StreamError,
    StreamNotActive,
    StreamSuperseded,
)
from models.device import CameraSelection, FacingMode, VideoDevice
from models.frame import CaptureFrame
from .base import MediaDevices, MediaStream, StreamConstraints

StartRequest = Union[str, FacingMode, CameraSelection]


class ActiveStream:
    """A live capture session and the constraints that produced it."""

    def __init__(self, media_stream: MediaStream, requested: StreamConstraints):
        self.media_stream = media_stream
        self.requested = requested
        self.started_at = time.time()

    @property
    def device_id(self) -> Optional[str]:
        """Device the host actually opened (may differ from the request)."""
        return self.media_stream.device_id

    @property
    def is_live(self) -> bool:
        return any(track.is_live for track in self.media_stream.tracks)

    def latest_pixels(self) -> Optional[np.ndarray]:
        track = self.media_stream.video_track
        if track is None or not track.is_live:
            return None
        return track.latest_frame()

    def grab_frame(self) -> CaptureFrame:
        """Draw the current frame into an immutable CaptureFrame."""
        pixels = self.latest_pixels()
        if pixels is None or pixels.size == 0:
            raise InvalidFrame(f"No frame available from device {self.device_id}")
        return CaptureFrame.from_numpy(pixels, timestamp=time.time(), device_id=self.device_id)


class StreamManager:
    """
    Starts and stops capture streams through a MediaDevices backend.

    Start/stop are serialized by a lock. Each start takes a generation number;
    a request overtaken by a newer one either skips acquisition or releases
    what it acquired, and raises StreamSuperseded.

    Example:
        streams = StreamManager(OpenCVMediaDevices())
        await streams.start(FacingMode.ENVIRONMENT)
        frame = streams.grab_frame()
        await streams.stop()
    """

    def __init__(
        self,
        media: MediaDevices,
        resolution: Optional[Tuple[int, int]] = None,
        fps: Optional[int] = None,
    ):
        self._media = media
        self._resolution = resolution
        self._fps = fps
        self._active: Optional[ActiveStream] = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self.current_device_id: Optional[str] = None

    @property
    def active(self) -> Optional[ActiveStream]:
        return self._active

    def constraints_for(
        self, request: StartRequest, catalog: Sequence[VideoDevice] = ()
    ) -> StreamConstraints:
        if isinstance(request, CameraSelection):
            selection = request.resolve(catalog)
        elif isinstance(request, FacingMode):
            selection = CameraSelection.for_facing(request)
        else:
            selection = CameraSelection.for_device(str(request)).resolve(catalog)
        return StreamConstraints.from_selection(selection, resolution=self._resolution, fps=self._fps)

    async def start(self, request: StartRequest, catalog: Sequence[VideoDevice] = ()) -> ActiveStream:
        """
        Stop the current stream, then acquire a new one.

        Args:
            request: Device id, facing hint, or CameraSelection.
            catalog: Latest device snapshot used to validate a chosen id.

        Raises:
            PermissionDenied, DeviceBusy, ConstraintUnsatisfiable: acquisition failed.
                The previous stream is already fully released.
            StreamSuperseded: a newer start request took over.
        """
        constraints = self.constraints_for(request, catalog)
        self._generation += 1
        generation = self._generation

        async with self._lock:
            if generation != self._generation:
                raise StreamSuperseded(f"Start ({constraints.describe()}) superseded before acquisition")

            await self._stop_locked()

            logging.info(f"Acquiring camera stream ({constraints.describe()})")
            try:
                media_stream = await self._media.acquire_stream(constraints)
            except StreamError as e:
                logging.warning(f"Camera acquisition failed ({constraints.describe()}): {e.cause}")
                raise
            except Exception as e:
                logging.error(f"Camera acquisition error ({constraints.describe()}): {e}")
                raise DeviceBusy(f"Camera acquisition failed: {e}", constraints.device_id) from e

            if generation != self._generation:
                await self._release(media_stream)
                raise StreamSuperseded(f"Start ({constraints.describe()}) superseded during acquisition")

            self._active = ActiveStream(media_stream, constraints)
            self.current_device_id = self._active.device_id
            if constraints.device_id and self.current_device_id != constraints.device_id:
                logging.warning(
                    f"Host substituted device {self.current_device_id} for requested {constraints.device_id}"
                )
            logging.info(f"Camera stream active: device={self.current_device_id}")
            return self._active

    async def stop(self) -> None:
        """Release the active stream. No-op when nothing is active."""
        async with self._lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        if self._active is None:
            return
        stream, self._active = self._active, None
        self.current_device_id = None
        await self._release(stream.media_stream)
        logging.info(f"Camera stream stopped: device={stream.device_id}")

    async def _release(self, media_stream: MediaStream) -> None:
        for track in media_stream.tracks:
            try:
                await self._media.release_track(track)
            except Exception as e:
                logging.error(f"Failed to release {track.kind} track on {track.device_id}: {e}")

    def grab_frame(self) -> CaptureFrame:
        """
        Synchronously snapshot the current frame.

        Raises:
            StreamNotActive: no stream is running.
            InvalidFrame: the stream has not produced a frame yet.
        """
        if self._active is None:
            raise StreamNotActive("No active camera stream")
        return self._active.grab_frame()

    def preview_pixels(self) -> Optional[np.ndarray]:
        """Latest live frame for previews, or None."""
        if self._active is None:
            return None
        return self._active.latest_pixels()
