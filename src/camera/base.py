"""
Media-device boundary.

The rest of the project talks to cameras only through MediaDevices:
- list_video_devices() -> [VideoDevice]
- acquire_stream(constraints) -> MediaStream
- release_track(track)
- permission_granted() -> bool

Backends map host failures onto the StreamError taxonomy in domain.errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from models.device import CameraSelection, FacingMode, VideoDevice


@dataclass(frozen=True)
class StreamConstraints:
    """
    Acquisition request.

    Attributes:
        device_id: Exact device to open. Takes precedence over facing.
        facing: Symbolic orientation preference when no device id is given.
        resolution: Preferred (width, height); the host may ignore it.
        fps: Preferred frame rate.
        audio: Always False; audio is never captured.
    """
    device_id: Optional[str] = None
    facing: Optional[FacingMode] = None
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None
    audio: bool = False

    @classmethod
    def from_selection(
        cls,
        selection: CameraSelection,
        resolution: Optional[Tuple[int, int]] = None,
        fps: Optional[int] = None,
    ) -> "StreamConstraints":
        return cls(
            device_id=selection.chosen_id,
            facing=None if selection.chosen_id else selection.facing_hint,
            resolution=resolution,
            fps=fps,
            audio=False,
        )

    def describe(self) -> str:
        if self.device_id is not None:
            return f"device={self.device_id}"
        if self.facing is not None:
            return f"facing={self.facing.value}"
        return "any camera"


class MediaTrack(ABC):
    """A single hardware track owned by a MediaStream."""

    kind = "video"

    @property
    @abstractmethod
    def device_id(self) -> str:
        """Device actually opened by the host."""

    @property
    @abstractmethod
    def is_live(self) -> bool:
        """False once the track has been released."""

    @abstractmethod
    def latest_frame(self) -> Optional[np.ndarray]:
        """Most recent frame, or None if nothing has arrived yet."""


class MediaStream:
    """Group of tracks returned by one acquisition."""

    def __init__(self, tracks: Sequence[MediaTrack]):
        self.tracks: List[MediaTrack] = list(tracks)

    @property
    def video_track(self) -> Optional[MediaTrack]:
        for track in self.tracks:
            if track.kind == "video":
                return track
        return None

    @property
    def device_id(self) -> Optional[str]:
        track = self.video_track
        return track.device_id if track is not None else None


class MediaDevices(ABC):
    """Host camera access."""

    @abstractmethod
    async def list_video_devices(self) -> List[VideoDevice]:
        pass

    @abstractmethod
    async def acquire_stream(self, constraints: StreamConstraints) -> MediaStream:
        """
        Open a capture session.

        Raises:
            PermissionDenied, DeviceBusy, ConstraintUnsatisfiable
        """
        pass

    @abstractmethod
    async def release_track(self, track: MediaTrack) -> None:
        pass

    async def permission_granted(self) -> bool:
        return True
