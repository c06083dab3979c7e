"""
OpenCV media-device backend.

Supports:
- V4L2 cameras on Linux (device ids are /dev/videoN paths, labels come from
  /sys/class/video4linux/videoN/name)
- Index-scanned cameras elsewhere (device ids are "0", "1", ...)

Each acquired track runs a reader thread that keeps the latest frame, so
drawing a frame for capture never blocks on the device.
"""

from __future__ import annotations

import asyncio
import glob
import logging
import os
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

import cv2
import numpy as np

from domain.errors import ConstraintUnsatisfiable, DeviceBusy, PermissionDenied
from models.config import CameraConfig
from models.device import VideoDevice
from ..base import MediaDevices, MediaStream, MediaTrack, StreamConstraints
from ..selector import select_default, select_for_facing

SYSFS_ROOT = Path("/sys/class/video4linux")


class OpenCVTrack(MediaTrack):
    """
    cv2.VideoCapture wrapped as a video track.

    The reader thread stops on release; frames are copied out under a lock.
    """

    def __init__(self, cap: cv2.VideoCapture, device_id: str, first_frame: Optional[np.ndarray] = None):
        self._cap = cap
        self._device_id = device_id
        self._frame = first_frame
        self._frame_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._consecutive_failures = 0
        self._thread = threading.Thread(
            target=self._read_loop, name=f"camera-reader-{device_id}", daemon=True
        )
        self._thread.start()

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def is_live(self) -> bool:
        return self._cap is not None and not self._stop_event.is_set()

    def _read_loop(self) -> None:
        cap = self._cap
        while not self._stop_event.is_set():
            ret, frame = cap.read()
            if not ret or frame is None:
                self._consecutive_failures += 1
                if self._consecutive_failures in (1, 30):
                    logging.warning(
                        f"Failed to read frame from {self._device_id} "
                        f"(consecutive failures: {self._consecutive_failures})"
                    )
                time.sleep(0.05)
                continue
            self._consecutive_failures = 0
            with self._frame_lock:
                self._frame = frame

    def latest_frame(self) -> Optional[np.ndarray]:
        with self._frame_lock:
            if self._frame is None:
                return None
            return self._frame.copy()

    def stop(self) -> None:
        """Stop the reader thread and release the device. Safe to call twice."""
        if self._cap is None:
            return
        self._stop_event.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=2.0)
        self._cap.release()
        self._cap = None
        logging.info(f"Camera released: {self._device_id}")


class OpenCVMediaDevices(MediaDevices):
    """
    MediaDevices implementation on top of cv2.VideoCapture.

    Facing preferences are resolved against device labels with the selector
    heuristics; when nothing matches, the default camera is substituted, the
    same way a browser treats an "ideal" facing mode.
    """

    def __init__(self, camera_cfg: Optional[CameraConfig] = None):
        self._cfg = camera_cfg or CameraConfig()
        # device id -> track this backend currently holds open
        self._open_tracks: Dict[str, OpenCVTrack] = {}
        self._scanned: Dict[str, VideoDevice] = {}

    # -- enumeration -------------------------------------------------------

    async def list_video_devices(self) -> List[VideoDevice]:
        return await asyncio.to_thread(self._enumerate)

    def _enumerate(self) -> List[VideoDevice]:
        indices = _detect_from_dev_nodes()
        if indices:
            devices = [
                VideoDevice(
                    id=f"/dev/video{index}",
                    label=self._label_for(f"/dev/video{index}", _read_sysfs_name(index)),
                    group_id=_read_sysfs_group(index),
                )
                for index in indices
                if _is_capture_node(index)
            ]
        else:
            devices = self._scan_indices()
        return devices[: self._cfg.max_devices]

    def _scan_indices(self) -> List[VideoDevice]:
        """
        Best-effort scan for hosts without /dev/video* nodes.

        Indices held by an acquired track are never reopened; they are
        listed from the previous scan instead.
        """
        devices: List[VideoDevice] = []
        for index in range(min(self._cfg.max_devices, 4)):
            device_id = str(index)
            if device_id in self._open_tracks:
                devices.append(self._scanned.get(device_id) or self._indexed_device(device_id))
                continue
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    devices.append(self._indexed_device(device_id))
            finally:
                cap.release()
        self._scanned = {d.id: d for d in devices}
        return devices

    def _indexed_device(self, device_id: str) -> VideoDevice:
        return VideoDevice(id=device_id, label=self._label_for(device_id, None), group_id=device_id)

    def _label_for(self, device_id: str, driver_name: Optional[str]) -> str:
        return self._cfg.labels.get(device_id) or driver_name or ""

    async def permission_granted(self) -> bool:
        nodes = [f"/dev/video{index}" for index in _detect_from_dev_nodes()]
        return all(os.access(node, os.R_OK | os.W_OK) for node in nodes)

    # -- acquisition -------------------------------------------------------

    async def acquire_stream(self, constraints: StreamConstraints) -> MediaStream:
        devices = await self.list_video_devices()
        device_id = self._resolve_device(constraints, devices)

        if device_id.startswith("/dev/") and not os.access(device_id, os.R_OK | os.W_OK):
            raise PermissionDenied(f"No read/write access to {device_id} (is the user in the 'video' group?)", device_id)

        track = await asyncio.to_thread(self._open, device_id, constraints)
        self._open_tracks[device_id] = track
        return MediaStream([track])

    def _resolve_device(self, constraints: StreamConstraints, devices: List[VideoDevice]) -> str:
        if constraints.device_id is not None:
            if devices and all(d.id != constraints.device_id for d in devices):
                raise ConstraintUnsatisfiable(f"Camera {constraints.device_id} is not connected", constraints.device_id)
            return constraints.device_id

        chosen = select_for_facing(devices, constraints.facing) or select_default(devices)
        if chosen is None:
            raise ConstraintUnsatisfiable("No video input devices found")
        return chosen.id

    def _open(self, device_id: str, constraints: StreamConstraints) -> OpenCVTrack:
        cap = cv2.VideoCapture(_capture_source(device_id))
        if not cap.isOpened():
            cap.release()
            raise DeviceBusy(f"Failed to open camera device {device_id}", device_id)

        if constraints.resolution:
            w, h = constraints.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        if constraints.fps:
            cap.set(cv2.CAP_PROP_FPS, constraints.fps)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        ret, frame = cap.read()
        if not ret or frame is None:
            cap.release()
            raise DeviceBusy(f"Camera device {device_id} opened but produced no frames", device_id)

        actual_w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        actual_h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        actual_fps = cap.get(cv2.CAP_PROP_FPS)
        logging.info(
            f"Camera opened: {device_id} - Resolution: ({actual_w}x{actual_h}), FPS: {actual_fps}"
        )
        return OpenCVTrack(cap, device_id, first_frame=frame)

    async def release_track(self, track: MediaTrack) -> None:
        if isinstance(track, OpenCVTrack):
            if self._open_tracks.get(track.device_id) is track:
                del self._open_tracks[track.device_id]
            await asyncio.to_thread(track.stop)


def _capture_source(device_id: str) -> Union[int, str]:
    return int(device_id) if device_id.isdigit() else device_id


def _detect_from_dev_nodes() -> List[int]:
    """Gather numeric indices from /dev/video*."""
    indices: List[int] = []
    for path in sorted(glob.glob("/dev/video*")):
        try:
            indices.append(int(Path(path).name.replace("video", "")))
        except ValueError:
            continue
    return sorted(indices)


def _is_capture_node(index: int) -> bool:
    """UVC cameras expose a metadata node next to the capture node; skip it."""
    index_file = SYSFS_ROOT / f"video{index}" / "index"
    try:
        if index_file.exists():
            return index_file.read_text(encoding="utf-8").strip() == "0"
    except OSError:
        pass
    return True


def _read_sysfs_name(index: int) -> Optional[str]:
    sys_name = SYSFS_ROOT / f"video{index}" / "name"
    try:
        if sys_name.exists():
            return sys_name.read_text(encoding="utf-8").strip() or None
    except OSError:
        return None
    return None


def _read_sysfs_group(index: int) -> str:
    device_link = SYSFS_ROOT / f"video{index}" / "device"
    try:
        if device_link.exists():
            return str(device_link.resolve())
    except OSError:
        pass
    return f"/dev/video{index}"
