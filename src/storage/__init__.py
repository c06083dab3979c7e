"""
Meter Capture - Storage Module

Persists submitted meter readings.
"""

from .database import ReadingStore, EXPECTED_SCHEMA_VERSION

__all__ = ["ReadingStore", "EXPECTED_SCHEMA_VERSION"]
