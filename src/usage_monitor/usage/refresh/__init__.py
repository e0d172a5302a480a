# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Refresh scheduling: clock, timers and the scheduler state machine."""

from .timers import Clock, SystemClock, TimerGroup
from .scheduler import RefreshScheduler

__all__ = ["Clock", "SystemClock", "TimerGroup", "RefreshScheduler"]
