"""
Recoverable capture/analysis failures.

Every error carries the message shown to the user; `code` is the name used in
ErrorState.
"""
from __future__ import annotations
from typing import Optional


class CaptureError(RuntimeError):
    """Base class for every locally recoverable pipeline failure."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, user_message: Optional[str] = None, *, log_message: Optional[str] = None) -> None:
        self.user_message = user_message or self.default_message
        super().__init__(log_message or self.user_message)

    @property
    def code(self) -> str:
        return type(self).__name__


class PermissionDenied(CaptureError):
    default_message = "Could not access the device. Please check permissions."


class DeviceUnavailable(CaptureError):
    default_message = "The requested device is not available."


class NoFaceDetected(CaptureError):
    default_message = "No face detected. Please ensure your face is clearly visible."


class RecordingTooShort(CaptureError):
    default_message = "Recording too short. Please speak for at least 3 seconds."


class AnalysisFailed(CaptureError):
    default_message = "Analysis failed. Please try again."
