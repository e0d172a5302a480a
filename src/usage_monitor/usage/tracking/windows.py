# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage window decoding and ranking.

Turns the open-ended usage payload (arbitrary key -> {utilization, resets_at})
into a deterministic, ranked UsageSummary. The API may add or remove keys at
any time, so decoding is done per key: a key that cannot be decoded is
skipped without failing the whole payload.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ...core.constants import (
    PRIMARY_WINDOW_KEY,
    SEVEN_DAY_PREFIX,
    SEVEN_DAY_WINDOW_KEY,
)
from ...core.errors import DecodeError
from ..types import UsageSummary, UsageWindow

lib_logger = logging.getLogger("usage_monitor")


# =============================================================================
# RANKING
# =============================================================================


def rank_key(key: str) -> Tuple[int, str]:
    """
    Sort key implementing the window ranking.

    1. "five_hour"
    2. "seven_day"
    3. "seven_day_*" variants, alphabetically
    4. everything else, alphabetically
    """
    if key == PRIMARY_WINDOW_KEY:
        return (0, "")
    if key == SEVEN_DAY_WINDOW_KEY:
        return (1, "")
    if key.startswith(SEVEN_DAY_PREFIX):
        return (2, key)
    return (3, key)


def ordered_keys(keys: Iterable[str]) -> List[str]:
    """Return keys in ranked order."""
    return sorted(keys, key=rank_key)


# =============================================================================
# TIMESTAMP PARSING
# =============================================================================


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp with or without fractional seconds.

    Naive timestamps are assumed to be UTC.

    Raises:
        ValueError: If the string is not a valid ISO-8601 timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """ISO-8601 representation used for persistence."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# =============================================================================
# PAYLOAD DECODING
# =============================================================================


def _decode_utilization(raw: Any) -> Optional[int]:
    """Utilization must be a non-negative number; floats are rounded."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if raw != raw:  # NaN
            return None
        value = int(round(raw))
    else:
        return None
    return value if value >= 0 else None


def decode_window(key: str, raw: Any) -> Optional[UsageWindow]:
    """
    Attempt a typed decode of a single payload entry.

    Returns:
        UsageWindow, or None if the entry is not decodable as a window.
        A resets_at that fails to parse is kept as a parse_error instead
        of dropping the utilization number.
    """
    if not isinstance(raw, Mapping):
        return None

    utilization = _decode_utilization(raw.get("utilization"))
    if utilization is None:
        return None

    resets_raw = raw.get("resets_at")
    if resets_raw is None:
        return UsageWindow(key=key, utilization=utilization)
    if not isinstance(resets_raw, str):
        return None

    try:
        resets_at = parse_timestamp(resets_raw)
    except ValueError:
        lib_logger.warning(f"Failed to parse resets_at for '{key}': {resets_raw}")
        return UsageWindow(
            key=key,
            utilization=utilization,
            resets_at=None,
            parse_error=f"Invalid reset time: {resets_raw}",
        )

    return UsageWindow(key=key, utilization=utilization, resets_at=resets_at)


def decode_windows(payload: Any) -> Dict[str, UsageWindow]:
    """
    Decode a raw usage payload into windows keyed by API key.

    Raises:
        DecodeError: If the payload as a whole is not a JSON object
    """
    if not isinstance(payload, Mapping):
        raise DecodeError(
            f"Failed to parse response: expected object, got {type(payload).__name__}"
        )

    windows: Dict[str, UsageWindow] = {}
    skipped: List[str] = []
    for key, raw in payload.items():
        window = decode_window(str(key), raw)
        if window is None:
            skipped.append(str(key))
            continue
        windows[window.key] = window

    if skipped:
        lib_logger.debug(f"Skipped non-window payload keys: {', '.join(sorted(skipped))}")

    return windows


def build_summary(payload: Any, fetched_at: datetime) -> UsageSummary:
    """
    Build a ranked UsageSummary from a raw usage payload.

    Args:
        payload: Decoded JSON body returned by the usage source
        fetched_at: Time of the fetch

    Returns:
        UsageSummary with windows in ranked order

    Raises:
        DecodeError: If the payload as a whole is not decodable
    """
    windows = decode_windows(payload)
    ranked = tuple(windows[key] for key in ordered_keys(windows))
    return UsageSummary(windows=ranked, fetched_at=fetched_at)


def summary_from_windows(
    windows: Iterable[UsageWindow], fetched_at: datetime
) -> UsageSummary:
    """Build a ranked summary from already-typed windows (e.g. from cache)."""
    by_key = {w.key: w for w in windows}
    ranked = tuple(by_key[key] for key in ordered_keys(by_key))
    return UsageSummary(windows=ranked, fetched_at=fetched_at)
