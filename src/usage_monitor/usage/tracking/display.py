# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Display-time derivations for usage windows.

Pure functions of a UsageWindow (or a number of seconds) and "now". Nothing
here ticks on its own; callers decide how often to recompute.
"""

from datetime import datetime, timedelta, tzinfo
from typing import Optional

from ...core.constants import PRIMARY_WINDOW_KEY, SEVEN_DAY_PREFIX, SEVEN_DAY_WINDOW_KEY
from ..types import UsageWindow

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

READY_TEXT = "ready"
UPDATING_TEXT = "updating"

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
}
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY"})


# =============================================================================
# TITLES
# =============================================================================


def _title_words(text: str) -> str:
    return " ".join(part.capitalize() for part in text.split("_") if part)


def display_title(key: str) -> str:
    """
    Human title for a window key.

    "five_hour" -> "5-Hour Usage", "seven_day" -> "7-Day Usage",
    "seven_day_opus" -> "7-Day Opus", "foo_bar" -> "Foo Bar".
    """
    if key == PRIMARY_WINDOW_KEY:
        return "5-Hour Usage"
    if key == SEVEN_DAY_WINDOW_KEY:
        return "7-Day Usage"
    if key.startswith(SEVEN_DAY_PREFIX):
        return f"7-Day {_title_words(key[len(SEVEN_DAY_PREFIX):])}"
    return _title_words(key)


def compact_title(key: str) -> str:
    """Short title for compact display ("5-Hour", "7-Day", "Opus")."""
    if key == PRIMARY_WINDOW_KEY:
        return "5-Hour"
    if key == SEVEN_DAY_WINDOW_KEY:
        return "7-Day"
    if key.startswith(SEVEN_DAY_PREFIX):
        return _title_words(key[len(SEVEN_DAY_PREFIX):])
    return display_title(key)


def display_text(window: UsageWindow) -> str:
    return f"{window.utilization}%"


# =============================================================================
# REMAINING TIME
# =============================================================================


def seconds_until(target: Optional[datetime], now: datetime) -> int:
    """Whole seconds from now until target, never negative."""
    if target is None:
        return 0
    return max(0, int((target - now).total_seconds()))


def format_remaining(seconds: float) -> str:
    """
    Format a duration using its largest two non-zero units.

    90061 -> "1d 1h", 3660 -> "1h 1m", 7200 -> "2h", 45 -> "<1m".
    """
    total = max(0, int(seconds))
    days, rest = divmod(total, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes = rest // SECONDS_PER_MINUTE

    parts = [
        f"{value}{unit}"
        for value, unit in ((days, "d"), (hours, "h"), (minutes, "m"))
        if value
    ]
    if not parts:
        return "<1m"
    return " ".join(parts[:2])


def reset_time_remaining(window: UsageWindow, now: datetime) -> Optional[str]:
    """
    Compact remaining time for a status bar ("2h30m", "2h", "45m").

    Returns None when there is no active window or it already reset.
    """
    if window.resets_at is None:
        return None
    interval = (window.resets_at - now).total_seconds()
    if interval <= 0:
        return None

    total_minutes = int(interval) // SECONDS_PER_MINUTE
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h{minutes}m" if minutes > 0 else f"{hours}h"
    return f"{max(1, minutes)}m"


def reset_display(window: UsageWindow, now: datetime) -> str:
    """
    Reset status for a window.

    "ready" when there is no active window, "updating" when resets_at has
    passed and a refresh is pending, otherwise "in <remaining>".
    """
    if window.resets_at is None:
        return READY_TEXT
    remaining = (window.resets_at - now).total_seconds()
    if remaining <= 0:
        return UPDATING_TEXT
    return f"in {format_remaining(remaining)}"


# =============================================================================
# CLOCK TIMES
# =============================================================================


def round_to_minute(value: datetime) -> datetime:
    """Round to the nearest minute (30s rounds up)."""
    floored = value.replace(second=0, microsecond=0)
    if value.second >= 30:
        return floored + timedelta(minutes=1)
    return floored


def until_label(window: UsageWindow, tz: Optional[tzinfo] = None) -> Optional[str]:
    """
    Fixed "until HH:MM" label for an at-limit window.

    Computed once per refresh rather than per countdown tick so it does
    not jitter. tz defaults to the local timezone.
    """
    if window.resets_at is None:
        return None
    local = round_to_minute(window.resets_at).astimezone(tz)
    return f"until {local:%H:%M}"


# =============================================================================
# COUNTDOWNS
# =============================================================================


def format_countdown(seconds: int) -> str:
    """Countdown to the next poll."""
    if seconds <= 0:
        return "Refreshing..."
    if seconds < SECONDS_PER_MINUTE:
        return f"in {seconds}s"
    return f"in {seconds // SECONDS_PER_MINUTE}m"


def format_reset_countdown(seconds: int) -> str:
    """Countdown to a quota reset while polling is paused."""
    if seconds <= 0:
        return "Resetting..."
    hours = seconds // SECONDS_PER_HOUR
    minutes = (seconds % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE
    if hours > 0:
        return f"resets in {hours}h {minutes}m"
    return f"resets in {minutes}m"


def format_currency(cents: int, currency: str) -> str:
    """Format an amount in minor units ("$12.50", "¥1250")."""
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    if code in ZERO_DECIMAL_CURRENCIES:
        return f"{symbol}{cents}"
    return f"{symbol}{cents / 100:,.2f}"
