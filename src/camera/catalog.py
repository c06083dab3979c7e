"""
Device catalog: enumerates video inputs, priming labels when needed.
"""

from __future__ import annotations

import logging
from typing import List

from domain.errors import StreamError
from models.device import VideoDevice
from .base import MediaDevices, StreamConstraints


class DeviceCatalog:
    """
    Snapshot-producing wrapper around MediaDevices.list_video_devices().

    Some hosts only populate labels after camera access was granted once.
    When permission is missing or labels come back empty, a throwaway
    stream is opened and released before enumerating.

    Enumeration never raises; failures yield an empty or label-less list.
    """

    def __init__(self, media: MediaDevices):
        self._media = media
        self._primed = False
        self.snapshot: List[VideoDevice] = []

    @property
    def primed(self) -> bool:
        return self._primed

    async def list_video_devices(self) -> List[VideoDevice]:
        try:
            if not self._primed and not await self._media.permission_granted():
                await self._prime()

            devices = await self._media.list_video_devices()

            if not self._primed and devices and any(not d.label for d in devices):
                if await self._prime():
                    devices = await self._media.list_video_devices()
        except Exception as e:
            logging.warning(f"Video device enumeration failed: {e}")
            devices = []

        self.snapshot = list(devices)
        logging.debug(f"Device catalog: {[d.label or d.id for d in self.snapshot]}")
        return list(self.snapshot)

    async def _prime(self) -> bool:
        """Open and immediately release any camera so labels get populated."""
        logging.info("Priming camera access to populate device labels")
        try:
            stream = await self._media.acquire_stream(StreamConstraints(audio=False))
        except StreamError as e:
            logging.warning(f"Camera access priming failed: {e.cause}")
            return False

        for track in stream.tracks:
            try:
                await self._media.release_track(track)
            except Exception as e:
                logging.error(f"Failed to release priming track: {e}")
        self._primed = True
        return True
