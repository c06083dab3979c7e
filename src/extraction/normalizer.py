"""
Normalization of vision-model responses into ExtractionResult records.

The upstream model may answer with prose, markdown-fenced JSON or strict
JSON. Whatever comes back, callers always get a fully populated record;
unparseable text becomes a LOW-confidence result whose notes carry the raw
text for diagnosis.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from domain.errors import MalformedExtractionResponse
from models.extraction import Confidence, ExtractionResult

NOTES_LIMIT = 500

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*")

READING_KEYS = ("reading", "meter_reading")
UNIT_KEYS = ("unit", "register_type")
SERIAL_KEYS = ("serial_number", "serialNumber", "meter_number")


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def parse_strict(raw_text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of fence-stripped text.

    Raises:
        MalformedExtractionResponse: not JSON, or JSON that is not an object.
    """
    cleaned = strip_code_fences(raw_text or "")
    try:
        data = json.loads(cleaned)
    except ValueError as e:
        raise MalformedExtractionResponse(f"Response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedExtractionResponse(f"Expected a JSON object, got {type(data).__name__}")
    return data


def normalize(raw_text: str) -> ExtractionResult:
    """Parse raw model output; never raises."""
    try:
        data = parse_strict(raw_text)
    except MalformedExtractionResponse as e:
        logging.warning(f"Malformed extraction response: {e}")
        return fallback_result(raw_text)
    return normalize_record(data)


def normalize_record(data: Dict[str, Any]) -> ExtractionResult:
    """Map an already-decoded object onto the fixed record shape."""
    notes = data.get("notes")
    return ExtractionResult(
        reading=_first_text(data, READING_KEYS),
        unit=_first_text(data, UNIT_KEYS),
        serial_number=_first_text(data, SERIAL_KEYS),
        confidence=parse_confidence(data.get("confidence")),
        notes="" if notes is None else str(notes),
    )


def fallback_result(raw_text: Optional[str]) -> ExtractionResult:
    text = (raw_text or "").strip()
    if len(text) > NOTES_LIMIT:
        text = text[:NOTES_LIMIT] + "..."
    return ExtractionResult(
        confidence=Confidence.LOW,
        notes=text or "Empty response from vision service",
    )


def parse_confidence(value: Any) -> Confidence:
    """Accept low/medium/high labels or a 0..1 score."""
    if isinstance(value, bool) or value is None:
        return Confidence.LOW
    if isinstance(value, (int, float)):
        # scores live in [0, 1]; NaN fails this comparison too
        if not (0 <= value <= 1):
            return Confidence.LOW
        if value < 0.5:
            return Confidence.LOW
        if value < 0.8:
            return Confidence.MEDIUM
        return Confidence.HIGH
    try:
        return Confidence(str(value).strip().lower())
    except ValueError:
        return Confidence.LOW


def _first_text(data: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None
