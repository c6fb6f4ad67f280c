"""
Exception classes for the slideshow workflow.

InputError, DecodeError and EncodeError abort a run. UploadError and
PublishError are raised inside a single stage or target and converted into a
failed result record at that stage's boundary.
"""

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base exception for workflow failures."""

    def __init__(self, message: str, code: str = "WORKFLOW_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details,
        }


class InputError(WorkflowError):
    """No usable images or a missing prompt."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INPUT_ERROR", details=details)


class DecodeError(WorkflowError):
    """An uploaded buffer could not be read as an image."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="DECODE_ERROR", details=details)


class EncodeError(WorkflowError):
    """The encoder failed, timed out, or produced no output."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="ENCODE_ERROR", details=details)


class UploadError(WorkflowError):
    """A storage call could not complete at the transport level."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="UPLOAD_ERROR", details=details)


class PublishError(WorkflowError):
    """A platform call could not complete at the transport level."""

    def __init__(self, target: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PUBLISH_ERROR", details=details)
        self.target = target
