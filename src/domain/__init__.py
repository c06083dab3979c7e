"""
Domain-level error taxonomy shared by camera, pipeline and extraction layers.
"""

from .errors import (  # noqa: F401
    MeterCaptureError,
    StreamError,
    PermissionDenied,
    DeviceBusy,
    ConstraintUnsatisfiable,
    StreamNotActive,
    StreamSuperseded,
    InvalidFrame,
    MalformedExtractionResponse,
    VisionServiceError,
    InvalidTransition,
)
