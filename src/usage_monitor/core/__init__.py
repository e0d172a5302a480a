# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Core package for the usage monitor.

Provides shared infrastructure used by the usage engine and the providers:
- errors: All custom exceptions and error classification
- constants: Default values and magic numbers
- config: ConfigLoader for environment-driven configuration
"""

from .errors import (
    UsageMonitorError,
    NotAuthenticatedError,
    UsageSourceError,
    NetworkError,
    HttpError,
    DecodeError,
    AuthError,
    ErrorCategory,
    classify_error,
    is_auth_error,
    describe_error,
    mask_credential,
)

from .config import ConfigLoader

__all__ = [
    # Errors
    "UsageMonitorError",
    "NotAuthenticatedError",
    "UsageSourceError",
    "NetworkError",
    "HttpError",
    "DecodeError",
    "AuthError",
    # Error classification
    "ErrorCategory",
    "classify_error",
    "is_auth_error",
    "describe_error",
    "mask_credential",
    # Config
    "ConfigLoader",
]
