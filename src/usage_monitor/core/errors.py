# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error handling for the usage monitor.

Defines the exception taxonomy raised by credential gates and usage sources,
plus the classification helpers the scheduler uses to decide between the
authentication path (no retry, invalidate credentials) and the transient
path (retry with backoff).
"""

from enum import Enum
from typing import Optional


# =============================================================================
# EXCEPTIONS
# =============================================================================


class UsageMonitorError(Exception):
    """Base class for all usage monitor errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(UsageMonitorError):
    """Raised by an AuthGate when no valid credential is available."""

    def __init__(self, message: str = "Not authenticated. Please log in."):
        super().__init__(message)


class UsageSourceError(UsageMonitorError):
    """Base class for failures reported by a UsageSource."""


class NetworkError(UsageSourceError):
    """
    Transport-level failure (connection refused, DNS, timeout).

    Attributes:
        cause: The underlying exception, if any
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class HttpError(UsageSourceError):
    """
    Non-success HTTP status returned by the usage API.

    Attributes:
        status_code: HTTP status code of the response
    """

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"HTTP error: {status_code}")
        self.status_code = status_code


class DecodeError(UsageSourceError):
    """The response body could not be decoded as a usage payload."""


class AuthError(UsageSourceError):
    """The usage API rejected the credential (session expired / revoked)."""

    def __init__(
        self,
        message: str = "Session expired. Please log in again.",
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================


class ErrorCategory(str, Enum):
    """How the scheduler reacts to a failed fetch."""

    AUTH = "auth"  # Invalidate credentials, never retried
    TRANSIENT = "transient"  # Retried with exponential backoff


AUTH_STATUS_CODES = frozenset({401, 403})


def is_auth_error(error: BaseException) -> bool:
    """True if the error means the credential is no longer valid."""
    if isinstance(error, (NotAuthenticatedError, AuthError)):
        return True
    if isinstance(error, HttpError):
        return error.status_code in AUTH_STATUS_CODES
    return False


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Classify a fetch failure.

    Authentication failures bypass the retry policy. Everything else,
    including timeouts and undecodable payloads, is treated as transient.

    Args:
        error: Exception raised while fetching usage

    Returns:
        ErrorCategory for the failure
    """
    if is_auth_error(error):
        return ErrorCategory.AUTH
    return ErrorCategory.TRANSIENT


def describe_error(error: BaseException) -> str:
    """Human-readable message suitable for the observable last_error."""
    if isinstance(error, UsageMonitorError):
        return error.message
    if isinstance(error, TimeoutError):
        return "Network error: request timed out"
    text = str(error)
    return f"Error: {text}" if text else f"Error: {type(error).__name__}"


# =============================================================================
# UTILITIES
# =============================================================================


def mask_credential(credential: Optional[str], style: str = "short") -> str:
    """
    Mask a credential for logging.

    Args:
        credential: Token or file path to mask
        style: "short" keeps the last 4 characters, "full" keeps the
               first 6 and last 4

    Returns:
        Masked representation, never the full secret
    """
    if not credential:
        return "<none>"
    if len(credential) <= 10:
        return "****"
    if style == "full":
        return f"{credential[:6]}...{credential[-4:]}"
    return f"...{credential[-4:]}"


__all__ = [
    "UsageMonitorError",
    "NotAuthenticatedError",
    "UsageSourceError",
    "NetworkError",
    "HttpError",
    "DecodeError",
    "AuthError",
    "ErrorCategory",
    "AUTH_STATUS_CODES",
    "is_auth_error",
    "classify_error",
    "describe_error",
    "mask_credential",
]
