# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Usage window decoding, display derivations and reset detection."""

from .windows import build_summary, decode_windows, ordered_keys, parse_timestamp
from .resets import ResetDetector

__all__ = [
    "build_summary",
    "decode_windows",
    "ordered_keys",
    "parse_timestamp",
    "ResetDetector",
]
