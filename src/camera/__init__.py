"""
Camera package: device discovery, selection and stream ownership.

Canonical imports:
- `from camera.catalog import DeviceCatalog`
- `from camera.selector import select_default, select_counterpart`
- `from camera.stream import StreamManager`
- `from camera.backends.opencv import OpenCVMediaDevices` (V4L2 / index-scanned)
"""
