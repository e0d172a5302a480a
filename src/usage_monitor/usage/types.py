# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Type definitions for the usage package.

This module contains the dataclasses shared by the usage model, the cache
and the refresh scheduler: usage windows, ranked summaries, the scheduler's
refresh state and the optional extra-usage (credits / spend limit) data.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core.constants import (
    LIMIT_THRESHOLD,
    PRIMARY_WINDOW_KEY,
    WARNING_THRESHOLD,
)


# =============================================================================
# ENUMS
# =============================================================================


class StatusLevel(str, Enum):
    """Usage status level for color coding."""

    NORMAL = "normal"  # < 80%
    WARNING = "warning"  # 80-99%
    CRITICAL = "critical"  # >= 100%

    @classmethod
    def from_percentage(cls, percentage: int) -> "StatusLevel":
        """Create status level from a utilization percentage."""
        if percentage >= LIMIT_THRESHOLD:
            return cls.CRITICAL
        if percentage >= WARNING_THRESHOLD:
            return cls.WARNING
        return cls.NORMAL


class RefreshPhase(str, Enum):
    """Phases of the refresh state machine."""

    IDLE = "idle"  # No credentials
    POLLING = "polling"  # Normal timed polling
    PAUSED_AT_LIMIT = "paused_at_limit"  # Primary at limit, waiting for reset
    RETRYING = "retrying"  # Transient failure backoff


# =============================================================================
# USAGE WINDOWS
# =============================================================================


@dataclass(frozen=True)
class UsageWindow:
    """
    A single metering period reported by the usage API.

    Keys are API-defined and form an open set ("five_hour", "seven_day",
    "seven_day_opus", ...). A window without resets_at has no active period.
    """

    key: str
    utilization: int  # 0-100+, may exceed 100
    resets_at: Optional[datetime] = None
    parse_error: Optional[str] = None  # Set when resets_at failed to parse

    def __post_init__(self):
        if self.utilization < 0:
            raise ValueError(
                f"utilization must not be negative (window '{self.key}')"
            )

    @property
    def is_near_limit(self) -> bool:
        """True at or above the warning threshold."""
        return self.utilization >= WARNING_THRESHOLD

    @property
    def is_at_limit(self) -> bool:
        """True if the quota is exhausted."""
        return self.utilization >= LIMIT_THRESHOLD

    @property
    def status_level(self) -> StatusLevel:
        return StatusLevel.from_percentage(self.utilization)

    @property
    def percentage(self) -> float:
        """Utilization as a fraction (1.0 == 100%)."""
        return self.utilization / 100.0


@dataclass(frozen=True)
class UsageSummary:
    """
    Ranked snapshot of all usage windows.

    Replaced, never mutated, on each successful fetch.
    """

    windows: Tuple[UsageWindow, ...]
    fetched_at: datetime

    @property
    def primary(self) -> Optional[UsageWindow]:
        """
        Window used for headline display and pause/resume decisions.

        "five_hour" when present, otherwise the first ranked window.
        """
        for window in self.windows:
            if window.key == PRIMARY_WINDOW_KEY:
                return window
        return self.windows[0] if self.windows else None

    @property
    def is_primary_at_limit(self) -> bool:
        primary = self.primary
        return primary.is_at_limit if primary else False

    @property
    def primary_resets_at(self) -> Optional[datetime]:
        primary = self.primary
        return primary.resets_at if primary else None

    @property
    def should_pause(self) -> bool:
        """
        True if polling should be suspended until the primary resets.

        An at-limit primary without a reset time never pauses polling.
        """
        return self.is_primary_at_limit and self.primary_resets_at is not None

    def get_window(self, key: str) -> Optional[UsageWindow]:
        """Get a window by key."""
        for window in self.windows:
            if window.key == key:
                return window
        return None

    @property
    def keys(self) -> List[str]:
        return [w.key for w in self.windows]


# =============================================================================
# REFRESH STATE
# =============================================================================


@dataclass(frozen=True)
class RefreshState:
    """
    State of the refresh scheduler.

    Owned by RefreshScheduler and never persisted. Use the classmethod
    constructors rather than building instances directly.
    """

    phase: RefreshPhase
    next_fetch_at: Optional[datetime] = None  # POLLING
    reset_target: Optional[datetime] = None  # PAUSED_AT_LIMIT
    attempt: int = 0  # RETRYING
    next_attempt_at: Optional[datetime] = None  # RETRYING

    @classmethod
    def idle(cls) -> "RefreshState":
        return cls(phase=RefreshPhase.IDLE)

    @classmethod
    def polling(cls, next_fetch_at: datetime) -> "RefreshState":
        return cls(phase=RefreshPhase.POLLING, next_fetch_at=next_fetch_at)

    @classmethod
    def paused_at_limit(cls, reset_target: datetime) -> "RefreshState":
        return cls(phase=RefreshPhase.PAUSED_AT_LIMIT, reset_target=reset_target)

    @classmethod
    def retrying(cls, attempt: int, next_attempt_at: datetime) -> "RefreshState":
        return cls(
            phase=RefreshPhase.RETRYING,
            attempt=attempt,
            next_attempt_at=next_attempt_at,
        )

    @property
    def is_idle(self) -> bool:
        return self.phase == RefreshPhase.IDLE

    @property
    def target_date(self) -> Optional[datetime]:
        """The single date every countdown display reads from."""
        if self.phase == RefreshPhase.POLLING:
            return self.next_fetch_at
        if self.phase == RefreshPhase.PAUSED_AT_LIMIT:
            return self.reset_target
        if self.phase == RefreshPhase.RETRYING:
            return self.next_attempt_at
        return None


# =============================================================================
# EXTRA USAGE (prepaid credits / overage spend limit)
# =============================================================================


@dataclass(frozen=True)
class PrepaidCredits:
    """Prepaid credit balance, amounts in minor currency units (cents)."""

    amount: int
    currency: str
    auto_reload_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrepaidCredits":
        auto_reload = data.get("auto_reload_settings") or {}
        return cls(
            amount=int(data["amount"]),
            currency=str(data["currency"]),
            auto_reload_enabled=bool(auto_reload.get("enabled") or False),
        )


@dataclass(frozen=True)
class OverageSpendLimit:
    """Monthly overage spend limit, amounts in minor currency units."""

    is_enabled: bool
    monthly_credit_limit: int
    used_credits: int
    currency: str
    out_of_credits: bool = False

    @property
    def used_percentage(self) -> int:
        if self.monthly_credit_limit <= 0:
            return 0
        return int(self.used_credits / self.monthly_credit_limit * 100)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OverageSpendLimit":
        return cls(
            is_enabled=bool(data["is_enabled"]),
            monthly_credit_limit=int(data["monthly_credit_limit"]),
            used_credits=int(data["used_credits"]),
            currency=str(data["currency"]),
            out_of_credits=bool(data.get("out_of_credits", False)),
        )


@dataclass(frozen=True)
class ExtraUsageSummary:
    """Optional billing data fetched alongside usage windows."""

    credits: Optional[PrepaidCredits] = None
    spend_limit: Optional[OverageSpendLimit] = None

    @property
    def is_auto_reload_on(self) -> bool:
        return self.credits.auto_reload_enabled if self.credits else False

    @property
    def is_extra_usage_enabled(self) -> bool:
        return self.spend_limit.is_enabled if self.spend_limit else False


# =============================================================================
# STORAGE TYPES
# =============================================================================


@dataclass
class CachedSummary:
    """
    Envelope persisted by SummaryCache.

    Windows are stored as plain dicts (key, utilization, resets_at ISO string).
    """

    windows: List[Dict[str, Any]] = field(default_factory=list)
    fetched_at: Optional[str] = None  # ISO format
