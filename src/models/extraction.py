"""
ExtractionResult model: the fixed-shape record produced from a vision response.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ExtractionResult:
    """
    Structured fields read from a meter photo.

    Every field is always present; unknown values are None, confidence
    defaults to LOW and notes to an empty string.
    """
    reading: Optional[str] = None
    unit: Optional[str] = None
    serial_number: Optional[str] = None
    confidence: Confidence = Confidence.LOW
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reading": self.reading,
            "unit": self.unit,
            "serial_number": self.serial_number,
            "confidence": self.confidence.value,
            "notes": self.notes,
        }

    def to_record(self) -> Dict[str, Any]:
        """Row shape for the persistence boundary."""
        return {
            "reading": self.reading,
            "unit": self.unit,
            "meter_number": self.serial_number,
            "notes": self.notes,
        }
