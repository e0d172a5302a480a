# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Discrete events exchanged with the refresh scheduler.

Inbound events are delivered by the host through
RefreshScheduler.handle_event(). Outbound events are published through the
scheduler's EventDispatcher to display layers and side-effect handlers.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...providers.auth_gate import AuthState
from ..config import RefreshConfig
from ..types import RefreshState, UsageSummary


class Event:
    """Base class for all scheduler events."""


# =============================================================================
# INBOUND
# =============================================================================


@dataclass(frozen=True)
class AuthChanged(Event):
    """The AuthGate published a new authentication state."""

    state: AuthState


@dataclass(frozen=True)
class SettingsChanged(Event):
    """The user changed refresh settings; replaces the whole config."""

    config: RefreshConfig


@dataclass(frozen=True)
class SystemWillSleep(Event):
    """The machine is about to sleep."""


@dataclass(frozen=True)
class SystemDidWake(Event):
    """The machine woke from sleep."""


# =============================================================================
# OUTBOUND
# =============================================================================


@dataclass(frozen=True)
class SummaryUpdated(Event):
    """A new summary was published, or cleared (summary=None) on logout."""

    summary: Optional[UsageSummary]


@dataclass(frozen=True)
class RefreshStateChanged(Event):
    """The refresh state machine moved to a new state."""

    previous: RefreshState
    current: RefreshState


@dataclass(frozen=True)
class CountdownTick(Event):
    """Minute-aligned countdown tick."""

    seconds_until_next_event: int
    target_date: Optional[datetime]


@dataclass(frozen=True)
class UsageReset(Event):
    """The primary window genuinely reset (positive utilization to zero)."""

    key: str
    previous_utilization: int
    reset_sound: str


@dataclass(frozen=True)
class RefreshFailed(Event):
    """A fetch failed; is_auth_error tells which failure path was taken."""

    message: str
    is_auth_error: bool
    attempt: int = 0
