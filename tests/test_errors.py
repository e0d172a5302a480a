# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio

import pytest

from usage_monitor.core.errors import (
    AuthError,
    DecodeError,
    ErrorCategory,
    HttpError,
    NetworkError,
    NotAuthenticatedError,
    classify_error,
    describe_error,
    is_auth_error,
    mask_credential,
)


@pytest.mark.parametrize(
    "error, category",
    [
        (AuthError(status_code=401), ErrorCategory.AUTH),
        (NotAuthenticatedError(), ErrorCategory.AUTH),
        (HttpError(401), ErrorCategory.AUTH),
        (HttpError(403), ErrorCategory.AUTH),
        (HttpError(429), ErrorCategory.TRANSIENT),
        (HttpError(500), ErrorCategory.TRANSIENT),
        (NetworkError("Network error: boom"), ErrorCategory.TRANSIENT),
        (DecodeError("Failed to parse response: bad"), ErrorCategory.TRANSIENT),
        (asyncio.TimeoutError(), ErrorCategory.TRANSIENT),
    ],
)
def test_classify_error(error, category):
    assert classify_error(error) == category
    assert is_auth_error(error) == (category == ErrorCategory.AUTH)


def test_describe_error():
    assert describe_error(HttpError(502)) == "HTTP error: 502"
    assert describe_error(AuthError()) == "Session expired. Please log in again."
    assert describe_error(NotAuthenticatedError()) == "Not authenticated. Please log in."
    assert describe_error(asyncio.TimeoutError()) == "Network error: request timed out"
    assert describe_error(RuntimeError("odd")) == "Error: odd"
    assert describe_error(RuntimeError()) == "Error: RuntimeError"


def test_network_error_keeps_cause():
    cause = ConnectionRefusedError()
    error = NetworkError("Network error: refused", cause=cause)

    assert error.cause is cause
    assert str(error) == "Network error: refused"


def test_mask_credential():
    token = "sk-ant-oat01-abcdefghijkl"

    assert mask_credential(token) == "...ijkl"
    assert mask_credential(token, style="full") == "sk-ant...ijkl"
    assert mask_credential("short") == "****"
    assert mask_credential(None) == "<none>"
