# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Events, event dispatch and the read-only API facade."""

from .events import (
    Event,
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
from .hooks import EventDispatcher
from .api import UsageAPI

__all__ = [
    "Event",
    "AuthChanged",
    "SettingsChanged",
    "SystemWillSleep",
    "SystemDidWake",
    "SummaryUpdated",
    "RefreshStateChanged",
    "CountdownTick",
    "UsageReset",
    "RefreshFailed",
    "EventDispatcher",
    "UsageAPI",
]
