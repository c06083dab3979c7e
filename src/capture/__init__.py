"""
Capture/preview state machine.
"""

from .state_machine import CaptureController, CaptureMode

__all__ = ["CaptureController", "CaptureMode"]
