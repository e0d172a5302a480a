# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Configuration for the usage refresh engine.

This module contains the RefreshConfig dataclass handed to the scheduler and
the helpers used to parse human-friendly durations from the environment.
"""

import re
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional

from ..core.constants import (
    DEFAULT_CACHE_MAX_AGE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESET_SOUND,
    DEFAULT_RESUME_GRACE,
    DEFAULT_RETRY_BASE_DELAY,
)


# =============================================================================
# REFRESH INTERVAL
# =============================================================================


class RefreshInterval(IntEnum):
    """Allowed poll intervals, in seconds."""

    ONE_MINUTE = 60
    THREE_MINUTES = 180
    FIVE_MINUTES = 300
    TEN_MINUTES = 600

    @property
    def label(self) -> str:
        return f"{self.value // 60} min"

    @property
    def seconds(self) -> float:
        return float(self.value)


# =============================================================================
# REFRESH CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class RefreshConfig:
    """
    Tunables for the refresh scheduler.

    Passed explicitly into RefreshScheduler; replaced as a whole on a
    SettingsChanged event.
    """

    refresh_interval: RefreshInterval = RefreshInterval(DEFAULT_REFRESH_INTERVAL)
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    max_retries: int = DEFAULT_MAX_RETRIES
    resume_grace: float = DEFAULT_RESUME_GRACE  # Added after resets_at
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    cache_max_age: float = DEFAULT_CACHE_MAX_AGE
    reset_sound: str = DEFAULT_RESET_SOUND  # "none" disables the alert

    def retry_delay(self, attempt: int) -> float:
        """
        Backoff delay for a retry attempt (1-based).

        base * 2^(attempt - 1): 30s, 60s, 120s with the defaults.
        """
        return self.retry_base_delay * (2 ** (attempt - 1))

    @property
    def reset_alert_enabled(self) -> bool:
        return self.reset_sound.lower() != "none"

    def with_interval(self, interval: RefreshInterval) -> "RefreshConfig":
        """Copy of this config with a different poll interval."""
        return replace(self, refresh_interval=interval)


# =============================================================================
# DURATION PARSING
# =============================================================================


def _parse_duration_string(duration_str: str) -> Optional[int]:
    """
    Parse duration strings in various formats to total seconds.

    Handles:
    - Plain seconds (no unit): '300', '30'
    - Simple durations: '3600s', '60m', '2h', '1d'
    - Compound durations: '2h30m', '1h30m45s'

    Args:
        duration_str: Duration string to parse

    Returns:
        Total seconds as integer, or None if parsing fails.
    """
    if not duration_str:
        return None

    remaining = duration_str.strip().lower()

    # Try parsing as plain number first (no units)
    try:
        return int(float(remaining))
    except ValueError:
        pass

    total_seconds = 0.0

    day_match = re.match(r"(\d+)d", remaining)
    if day_match:
        total_seconds += int(day_match.group(1)) * 86400
        remaining = remaining[day_match.end() :]

    hour_match = re.match(r"(\d+)h", remaining)
    if hour_match:
        total_seconds += int(hour_match.group(1)) * 3600
        remaining = remaining[hour_match.end() :]

    # Negative lookahead to avoid matching 'ms'
    min_match = re.match(r"(\d+)m(?!s)", remaining)
    if min_match:
        total_seconds += int(min_match.group(1)) * 60
        remaining = remaining[min_match.end() :]

    sec_match = re.match(r"([\d.]+)s", remaining)
    if sec_match:
        total_seconds += float(sec_match.group(1))
        remaining = remaining[sec_match.end() :]

    # Trailing garbage means the whole string is invalid
    if remaining:
        return None

    if total_seconds > 0:
        return int(total_seconds)
    return None


def parse_refresh_interval(value: str) -> Optional[RefreshInterval]:
    """
    Parse a refresh interval from a duration string.

    Only the RefreshInterval choices are accepted ("60", "3m", "5m", "10m").
    """
    seconds = _parse_duration_string(value)
    if seconds is None:
        return None
    try:
        return RefreshInterval(seconds)
    except ValueError:
        return None
