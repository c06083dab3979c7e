"""
Vision-extraction boundary: response normalization and the HTTP client.
"""

from .normalizer import normalize, normalize_record, parse_confidence, strip_code_fences
from .client import VisionClient

__all__ = [
    "normalize",
    "normalize_record",
    "parse_confidence",
    "strip_code_fences",
    "VisionClient",
]
