# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio
import heapq
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from usage_monitor.core.errors import NotAuthenticatedError
from usage_monitor.providers.auth_gate import AuthState, BaseAuthGate
from usage_monitor.providers.usage_source import UsageSource
from usage_monitor.usage.persistence.storage import MemoryStore, SummaryCache
from usage_monitor.usage.refresh.scheduler import RefreshScheduler
from usage_monitor.usage.refresh.timers import Clock
from usage_monitor.usage.types import ExtraUsageSummary

# Half a minute past the hour so the countdown ticker's first tick is 30s out
START = datetime(2026, 1, 1, 12, 0, 30, tzinfo=timezone.utc)


class ManualClock(Clock):
    """Simulated time. Sleepers only wake when advance() passes them."""

    def __init__(self, start: datetime = START):
        self._now = start
        self._sleepers: List[Tuple[datetime, int, asyncio.Future]] = []
        self._counter = itertools.count()

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        wake_at = self._now + timedelta(seconds=max(0.0, seconds))
        heapq.heappush(self._sleepers, (wake_at, next(self._counter), future))
        await future

    async def settle(self, rounds: int = 50) -> None:
        """Let every runnable task run until it blocks."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking sleepers in order."""
        target = self._now + timedelta(seconds=seconds)
        await self.settle()
        while True:
            while self._sleepers and self._sleepers[0][2].done():
                heapq.heappop(self._sleepers)
            if not self._sleepers or self._sleepers[0][0] > target:
                break
            wake_at, _, future = heapq.heappop(self._sleepers)
            self._now = max(self._now, wake_at)
            future.set_result(None)
            await self.settle()
        self._now = target
        await self.settle()


class FakeAuthGate(BaseAuthGate):
    def __init__(self, state: Optional[AuthState] = None, token: str = "sk-ant-REDACTED"):
        super().__init__(state or AuthState.authenticated("max"))
        self.token = token
        self.invalidate_calls = 0

    async def get_credential(self) -> str:
        if not self._state.is_authenticated:
            raise NotAuthenticatedError()
        return self.token

    async def invalidate(self) -> None:
        self.invalidate_calls += 1
        await self._set_state(AuthState.not_authenticated())

    async def login(self) -> None:
        await self._set_state(AuthState.authenticated("max"))

    async def logout(self) -> None:
        await self._set_state(AuthState.not_authenticated())


class FakeUsageSource(UsageSource):
    """
    Returns queued responses in order, then `default` forever.

    A response that is an exception instance is raised instead. Setting
    `gate` to an asyncio.Event holds every fetch until it is set.
    """

    def __init__(self, default: Any = None):
        self.responses: List[Any] = []
        self.default = default
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.extra: Optional[ExtraUsageSummary] = None
        self.update_calls: List[bool] = []
        self.update_error: Optional[BaseException] = None

    async def fetch_usage(self, credential: str) -> Any:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        return item

    async def fetch_extra_usage(self, credential: str) -> Optional[ExtraUsageSummary]:
        return self.extra

    async def update_extra_usage(self, credential: str, enabled: bool) -> None:
        self.update_calls.append(enabled)
        if self.update_error is not None:
            raise self.update_error


def window(utilization: Any, resets_at: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "utilization": utilization,
        "resets_at": resets_at.isoformat() if resets_at else None,
    }


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def gate() -> FakeAuthGate:
    return FakeAuthGate()


@pytest.fixture
def source(clock) -> FakeUsageSource:
    return FakeUsageSource(
        default={
            "five_hour": window(40, clock.now() + timedelta(hours=3)),
            "seven_day": window(20, clock.now() + timedelta(days=4)),
        }
    )


@pytest.fixture
def cache() -> SummaryCache:
    return SummaryCache(MemoryStore())


@pytest.fixture
async def make_scheduler(gate, source, cache, clock):
    created: List[RefreshScheduler] = []

    def factory(**kwargs) -> RefreshScheduler:
        kwargs.setdefault("cache", cache)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("tz", timezone.utc)
        scheduler = RefreshScheduler(gate, source, **kwargs)
        created.append(scheduler)
        return scheduler

    yield factory

    for scheduler in created:
        scheduler.stop()
    await clock.settle()
