# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Read-only Usage API facade for display layers.

The display layer never mutates scheduler state. It reads published
snapshots through this facade and triggers refreshes through the scheduler.

=============================================================================
ACCESSING THE API
=============================================================================

    api = UsageAPI(scheduler)

    # Headline
    print(api.menu_bar_title())              # "42%" or "–"

    # Windows
    primary = api.get_primary()
    opus = api.get_window("seven_day_opus")

    # JSON-ready status (status endpoints, --json output)
    status = api.get_status()
    status["countdown"]["seconds"]           # unified countdown
    status["windows"][0]["reset"]            # "in 2h 30m", "ready", "updating"

=============================================================================
STATUS STRUCTURE
=============================================================================

    {
        "state": "polling",                  # idle / polling / paused_at_limit / retrying
        "is_refreshing": false,
        "last_error": null,
        "fetched_at": "2026-01-01T12:00:00+00:00",
        "primary": "five_hour",
        "reset_label": null,                 # "until 17:00" when at limit
        "countdown": {"seconds": 298, "target": "...", "text": "in 4m"},
        "retry_attempt": 0,
        "windows": [
            {
                "key": "five_hour",
                "title": "5-Hour Usage",
                "utilization": 42,
                "status": "normal",
                "resets_at": "2026-01-01T17:00:00+00:00",
                "reset": "in 5h",
                "parse_error": null
            }
        ],
        "extra_usage": {...} or null
    }

=============================================================================
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..tracking.display import (
    display_title,
    format_countdown,
    format_currency,
    format_reset_countdown,
    reset_display,
)
from ..tracking.windows import format_timestamp
from ..types import RefreshPhase, UsageSummary, UsageWindow

if TYPE_CHECKING:
    from ..refresh.scheduler import RefreshScheduler

NO_DATA_TITLE = "–"


class UsageAPI:
    """
    Public read-only facade over a RefreshScheduler.

    Example:
        api = UsageAPI(scheduler)
        title = api.menu_bar_title()
        status = api.get_status()
    """

    def __init__(self, scheduler: "RefreshScheduler"):
        """
        Initialize the API facade.

        Args:
            scheduler: The RefreshScheduler instance to wrap.
        """
        self._scheduler = scheduler

    def get_summary(self) -> Optional[UsageSummary]:
        return self._scheduler.summary

    def get_primary(self) -> Optional[UsageWindow]:
        summary = self._scheduler.summary
        return summary.primary if summary else None

    def get_window(self, key: str) -> Optional[UsageWindow]:
        summary = self._scheduler.summary
        return summary.get_window(key) if summary else None

    def menu_bar_title(self) -> str:
        """Primary utilization ("42%"), or a dash without data."""
        primary = self.get_primary()
        if primary is None:
            return NO_DATA_TITLE
        return f"{primary.utilization}%"

    def countdown_text(self) -> str:
        """Unified countdown formatted for the current phase."""
        seconds = self._scheduler.seconds_until_next_event
        phase = self._scheduler.state.phase
        if phase == RefreshPhase.PAUSED_AT_LIMIT:
            return format_reset_countdown(seconds)
        if phase == RefreshPhase.IDLE:
            return ""
        return format_countdown(seconds)

    def get_status(self) -> Dict[str, Any]:
        """
        Snapshot of everything a display layer shows, as plain JSON types.
        """
        scheduler = self._scheduler
        summary = scheduler.summary
        now = scheduler.clock.now()
        target = scheduler.target_date

        windows: List[Dict[str, Any]] = []
        if summary is not None:
            for window in summary.windows:
                windows.append(
                    {
                        "key": window.key,
                        "title": display_title(window.key),
                        "utilization": window.utilization,
                        "status": window.status_level.value,
                        "resets_at": (
                            format_timestamp(window.resets_at)
                            if window.resets_at
                            else None
                        ),
                        "reset": reset_display(window, now),
                        "parse_error": window.parse_error,
                    }
                )

        primary = summary.primary if summary else None
        return {
            "state": scheduler.state.phase.value,
            "is_refreshing": scheduler.is_refreshing,
            "last_error": scheduler.last_error,
            "fetched_at": format_timestamp(summary.fetched_at) if summary else None,
            "primary": primary.key if primary else None,
            "reset_label": scheduler.reset_label,
            "countdown": {
                "seconds": scheduler.seconds_until_next_event,
                "target": format_timestamp(target) if target else None,
                "text": self.countdown_text(),
            },
            "retry_attempt": scheduler.state.attempt,
            "windows": windows,
            "extra_usage": self._extra_usage_status(),
        }

    def _extra_usage_status(self) -> Optional[Dict[str, Any]]:
        extra = self._scheduler.extra_usage
        if extra is None:
            return None

        status: Dict[str, Any] = {
            "enabled": extra.is_extra_usage_enabled,
            "auto_reload": extra.is_auto_reload_on,
            "balance": None,
            "spend_limit": None,
        }
        if extra.credits is not None:
            status["balance"] = format_currency(
                extra.credits.amount, extra.credits.currency
            )
        if extra.spend_limit is not None:
            limit = extra.spend_limit
            status["spend_limit"] = {
                "used": format_currency(limit.used_credits, limit.currency),
                "limit": format_currency(limit.monthly_credit_limit, limit.currency),
                "used_percentage": limit.used_percentage,
                "out_of_credits": limit.out_of_credits,
            }
        return status
