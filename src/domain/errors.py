from __future__ import annotations


class MeterCaptureError(Exception):
    """Base class for errors raised by the capture core."""


class StreamError(MeterCaptureError):
    """Recoverable stream acquisition/ownership failure."""

    def __init__(self, cause: str, device_id: str | None = None):
        super().__init__(cause)
        self.cause = cause
        self.device_id = device_id


class PermissionDenied(StreamError):
    """No camera access. User-actionable."""


class DeviceBusy(StreamError):
    """Device is held by another session or process."""


class ConstraintUnsatisfiable(StreamError):
    """No device matches the requested id or facing preference."""


class StreamNotActive(StreamError):
    """An operation needed a live stream but none is active."""


class StreamSuperseded(StreamError):
    """A newer start request replaced this one before it completed."""


class InvalidFrame(MeterCaptureError):
    """Empty or zero-dimension frame handed to the enhancement pipeline."""


class MalformedExtractionResponse(MeterCaptureError):
    """Vision response text was not a JSON object."""


class VisionServiceError(MeterCaptureError):
    """The vision endpoint failed or reported ok=false."""


class InvalidTransition(MeterCaptureError):
    """Command issued in a capture mode that does not accept it."""
