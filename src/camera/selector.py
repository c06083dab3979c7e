"""
Camera selection heuristics.

Labels are opaque, locale-dependent strings from the host driver. The rules
below are a documented fallback order, not a hardware guarantee:

1. first label containing "back" and "0" (primary wide lens on multi-lens phones)
2. first label containing "back", "rear" or "environment"
3. first device in catalog order
4. None for an empty catalog
"""

from __future__ import annotations

from typing import Optional, Sequence

from models.device import FacingMode, VideoDevice

REAR_KEYWORDS = ("back", "rear", "environment")
FRONT_KEYWORDS = ("front", "user")


def _label(device: VideoDevice) -> str:
    return (device.label or "").lower()


def is_primary_rear(device: VideoDevice) -> bool:
    label = _label(device)
    return "back" in label and "0" in label


def is_rear(device: VideoDevice) -> bool:
    label = _label(device)
    return any(keyword in label for keyword in REAR_KEYWORDS)


def is_front(device: VideoDevice) -> bool:
    label = _label(device)
    return any(keyword in label for keyword in FRONT_KEYWORDS)


def select_rear(catalog: Sequence[VideoDevice]) -> Optional[VideoDevice]:
    """Rear-lens match (rules 1 and 2 only)."""
    for device in catalog:
        if is_primary_rear(device):
            return device
    for device in catalog:
        if is_rear(device):
            return device
    return None


def select_front(catalog: Sequence[VideoDevice]) -> Optional[VideoDevice]:
    for device in catalog:
        if is_front(device):
            return device
    return None


def select_default(catalog: Sequence[VideoDevice]) -> Optional[VideoDevice]:
    """Pick the startup camera, preferring the primary rear lens."""
    if not catalog:
        return None
    return select_rear(catalog) or catalog[0]


def select_for_facing(catalog: Sequence[VideoDevice], facing: Optional[FacingMode]) -> Optional[VideoDevice]:
    """Resolve a facing hint against labels; None when no label matches."""
    if facing is FacingMode.USER:
        return select_front(catalog)
    if facing is FacingMode.ENVIRONMENT:
        return select_rear(catalog)
    return None


def select_counterpart(catalog: Sequence[VideoDevice], current_id: Optional[str]) -> Optional[VideoDevice]:
    """
    Pick the camera a flip command should switch to.

    Rear -> first front/user device; anything else -> the rear match. If
    neither applies, cycle to the next device after the current one.
    """
    devices = list(catalog)
    if not devices:
        return None

    index = next((i for i, d in enumerate(devices) if d.id == current_id), None)
    if index is None:
        return devices[0]
    current = devices[index]

    if is_rear(current):
        candidate = next((d for d in devices if d.id != current.id and is_front(d)), None)
    else:
        rear = select_rear(devices)
        candidate = rear if rear is not None and rear.id != current.id else None

    if candidate is not None:
        return candidate
    return devices[(index + 1) % len(devices)]
