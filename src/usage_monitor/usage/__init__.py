# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage refresh engine package.

Public API:
    RefreshScheduler: Polling / pause / retry state machine
    UsageAPI: Read-only facade for display layers

Components (for advanced usage):
    build_summary: Payload decoding and window ranking
    SummaryCache: Cold-start cache with a freshness bound
    ResetDetector: Primary window reset edge detection
    TimerGroup: Cancellable named timers
"""

# Types first (no dependencies on other modules)
from .types import (
    StatusLevel,
    RefreshPhase,
    UsageWindow,
    UsageSummary,
    RefreshState,
    PrepaidCredits,
    OverageSpendLimit,
    ExtraUsageSummary,
    CachedSummary,
)

# Config
from .config import RefreshConfig, RefreshInterval

# Components
from .tracking.windows import build_summary, ordered_keys
from .tracking.resets import ResetDetector
from .persistence.storage import JsonFileStore, MemoryStore, SummaryCache
from .refresh.timers import Clock, SystemClock, TimerGroup
from .integration.events import (
    AuthChanged,
    SettingsChanged,
    SystemWillSleep,
    SystemDidWake,
    SummaryUpdated,
    RefreshStateChanged,
    CountdownTick,
    UsageReset,
    RefreshFailed,
)
from .integration.hooks import EventDispatcher
from .integration.api import UsageAPI

# Main scheduler (imports components above)
from .refresh.scheduler import RefreshScheduler

__all__ = [
    # Main public API
    "RefreshScheduler",
    "UsageAPI",
    # Types
    "StatusLevel",
    "RefreshPhase",
    "UsageWindow",
    "UsageSummary",
    "RefreshState",
    "PrepaidCredits",
    "OverageSpendLimit",
    "ExtraUsageSummary",
    "CachedSummary",
    # Config
    "RefreshConfig",
    "RefreshInterval",
    # Components
    "build_summary",
    "ordered_keys",
    "ResetDetector",
    "JsonFileStore",
    "MemoryStore",
    "SummaryCache",
    "Clock",
    "SystemClock",
    "TimerGroup",
    "EventDispatcher",
    # Events
    "AuthChanged",
    "SettingsChanged",
    "SystemWillSleep",
    "SystemDidWake",
    "SummaryUpdated",
    "RefreshStateChanged",
    "CountdownTick",
    "UsageReset",
    "RefreshFailed",
]
