"""
Camera device models.

VideoDevice snapshots are produced by every enumeration and never mutated;
a newer enumeration supersedes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class FacingMode(str, Enum):
    """Symbolic camera orientation preference."""
    ENVIRONMENT = "environment"
    USER = "user"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["FacingMode"]:
        if value is None or isinstance(value, FacingMode):
            return value
        value = str(value).strip().lower()
        aliases = {"rear": "environment", "back": "environment", "front": "user"}
        return cls(aliases.get(value, value))


@dataclass(frozen=True)
class VideoDevice:
    """
    A video input device as reported by the host.

    Attributes:
        id: Opaque, host-assigned identifier (unique within one snapshot).
        label: Human-readable name. Empty until camera permission is granted
            on some hosts.
        group_id: Opaque identifier shared by nodes of one physical device.
    """
    id: str
    label: str = ""
    group_id: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "group_id": self.group_id}


@dataclass(frozen=True)
class CameraSelection:
    """
    Which camera a start request should open.

    chosen_id wins when it resolves against the latest catalog snapshot;
    otherwise the request falls back to facing_hint.
    """
    chosen_id: Optional[str] = None
    facing_hint: Optional[FacingMode] = FacingMode.ENVIRONMENT

    @classmethod
    def for_device(cls, device_id: str, fallback: Optional[FacingMode] = FacingMode.ENVIRONMENT) -> "CameraSelection":
        return cls(chosen_id=device_id, facing_hint=fallback)

    @classmethod
    def for_facing(cls, facing: FacingMode) -> "CameraSelection":
        return cls(chosen_id=None, facing_hint=facing)

    def resolve(self, catalog: Sequence[VideoDevice]) -> "CameraSelection":
        """Return a selection with exactly one authoritative field."""
        if self.chosen_id is not None:
            if not catalog or any(d.id == self.chosen_id for d in catalog):
                return CameraSelection(chosen_id=self.chosen_id, facing_hint=None)
        return CameraSelection(chosen_id=None, facing_hint=self.facing_hint or FacingMode.ENVIRONMENT)

    def to_dict(self) -> dict:
        return {
            "chosen_id": self.chosen_id,
            "facing_hint": self.facing_hint.value if self.facing_hint else None,
        }
