# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Clock abstraction and cancellable timers for the refresh scheduler.

Every wait the scheduler performs goes through an injected Clock so tests
can drive simulated time. TimerGroup owns the named timers (poll, resume,
retry, countdown) and cancels them as a unit.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Union

from ...core.constants import COUNTDOWN_TICK_SECONDS

lib_logger = logging.getLogger("usage_monitor")

TimerCallback = Callable[[], Union[None, Awaitable[None]]]


# =============================================================================
# CLOCKS
# =============================================================================


class Clock(ABC):
    """Source of wall-clock time and sleeps."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for the given number of seconds."""
        ...


class SystemClock(Clock):
    """Real time backed by the running event loop."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


def seconds_to_next_minute(now: datetime) -> float:
    """Seconds until the next wall-clock minute boundary (never zero)."""
    into_minute = now.second + now.microsecond / 1_000_000
    return COUNTDOWN_TICK_SECONDS - into_minute


# =============================================================================
# TIMER GROUP
# =============================================================================


class TimerGroup:
    """
    Named asyncio timers that can be cancelled individually or together.

    Arming a timer under a name that is already active replaces it. A
    one-shot timer unregisters itself before running its callback, so the
    callback may re-arm the same name and is not cancelled by cancel_all()
    while it runs.
    """

    def __init__(self, clock: Clock):
        self._clock = clock
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def active(self) -> List[str]:
        """Names of timers currently armed."""
        return [name for name, task in self._tasks.items() if not task.done()]

    def is_active(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def schedule(self, name: str, delay: float, callback: TimerCallback) -> None:
        """
        Arm a one-shot timer.

        Args:
            name: Timer name; replaces any timer with the same name
            delay: Seconds until the callback runs
            callback: Plain callable or coroutine function
        """
        self.cancel(name)
        self._tasks[name] = asyncio.create_task(
            self._run_once(name, delay, callback), name=f"usage-timer-{name}"
        )

    def schedule_minute_ticker(
        self,
        name: str,
        callback: TimerCallback,
        interval: float = COUNTDOWN_TICK_SECONDS,
    ) -> None:
        """
        Arm a repeating ticker aligned to wall-clock minutes.

        The first tick fires at the next minute boundary, then every
        interval seconds until cancelled.
        """
        self.cancel(name)
        self._tasks[name] = asyncio.create_task(
            self._run_ticker(name, interval, callback), name=f"usage-timer-{name}"
        )

    def cancel(self, name: str) -> bool:
        """Cancel a timer. Returns True if one was armed."""
        task = self._tasks.pop(name, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel every armed timer."""
        for name in list(self._tasks):
            self.cancel(name)

    # =========================================================================
    # INTERNAL
    # =========================================================================

    async def _run_once(self, name: str, delay: float, callback: TimerCallback) -> None:
        await self._clock.sleep(delay)

        current = asyncio.current_task()
        if self._tasks.get(name) is current:
            del self._tasks[name]

        await self._invoke(name, callback)

    async def _run_ticker(
        self, name: str, interval: float, callback: TimerCallback
    ) -> None:
        await self._clock.sleep(seconds_to_next_minute(self._clock.now()))
        while True:
            await self._invoke(name, callback)
            await self._clock.sleep(interval)

    async def _invoke(self, name: str, callback: TimerCallback) -> None:
        try:
            result: Any = callback()
            if asyncio.iscoroutine(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            lib_logger.error(f"Timer '{name}' callback failed: {e}", exc_info=True)
