#!/usr/bin/env python3
"""
List the cameras this machine exposes and what the selector would pick.
This utility helps verify labels before deploying a config.

Usage:
    python tools/list_cameras.py
    python tools/list_cameras.py --open
"""

import argparse
import asyncio
import os
import sys

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from camera.backends.opencv import OpenCVMediaDevices  # noqa: E402
from camera.base import StreamConstraints  # noqa: E402
from camera.catalog import DeviceCatalog  # noqa: E402
from camera.selector import is_front, is_rear, select_counterpart, select_default  # noqa: E402
from domain.errors import StreamError  # noqa: E402
from models.config import CameraConfig  # noqa: E402


async def run(open_devices: bool) -> int:
    media = OpenCVMediaDevices(CameraConfig())
    catalog = DeviceCatalog(media)
    devices = await catalog.list_video_devices()

    if not devices:
        print("No video input devices found")
        return 1

    print(f"Found {len(devices)} video input device(s):")
    for device in devices:
        kind = "rear" if is_rear(device) else "front" if is_front(device) else "-"
        print(f"  {device.id:<14} {kind:<6} {device.label or '(no label)'}")

    default = select_default(devices)
    print(f"\nDefault camera: {default.id} ({default.label})")
    counterpart = select_counterpart(devices, default.id)
    if counterpart is not None and counterpart.id != default.id:
        print(f"Flip target:    {counterpart.id} ({counterpart.label})")
    else:
        print("Flip target:    none (single camera)")

    if open_devices:
        print("\nOpening each device:")
        for device in devices:
            try:
                stream = await media.acquire_stream(StreamConstraints(device_id=device.id))
            except StreamError as e:
                print(f"  {device.id}: FAILED ({e.cause})")
                continue
            try:
                frame = stream.video_track.latest_frame()
                shape = "no frame" if frame is None else f"{frame.shape[1]}x{frame.shape[0]}"
                print(f"  {device.id}: OK, {shape}")
            finally:
                for track in stream.tracks:
                    await media.release_track(track)
    return 0


def main():
    """Main function for camera listing."""
    parser = argparse.ArgumentParser(description='List cameras and selector choices')
    parser.add_argument('--open', action='store_true',
                        help='Open each device once and report the frame size')
    args = parser.parse_args()
    return asyncio.run(run(args.open))


if __name__ == "__main__":
    sys.exit(main())
