"""Error taxonomy of the upload pipeline."""
from __future__ import annotations

from typing import Any, Dict, Optional


class UploadError(Exception):
    """Base class for upload pipeline failures."""


class CredentialUnavailable(UploadError):
    """No usable credentials; sync cannot start until configuration changes."""


class NetworkFailure(UploadError):
    """No authoritative answer was received. Always retryable."""

    def __init__(self, message: str, *, code: str = "connect", status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class BusinessRejection(UploadError):
    """The backend understood the operation and refused it."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class MappingGap(BusinessRejection):
    """No remote mapping exists for an operation."""


__all__ = [
    "UploadError",
    "CredentialUnavailable",
    "NetworkFailure",
    "BusinessRejection",
    "MappingGap",
]
