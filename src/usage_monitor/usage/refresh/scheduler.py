# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage refresh scheduler.

Owns the polling / paused-at-limit / retrying state machine, every timer,
the retry policy and reset-expiry detection. All state transitions run on
one event loop, so timer callbacks and refresh_now() calls never interleave
partial updates.

=============================================================================
STATE MACHINE
=============================================================================

    idle --(authenticated)--> polling
    polling --(success, primary below limit)--> polling      +interval
    polling --(success, primary at limit)--> paused_at_limit  resets_at
    polling --(transient failure)--> retrying(1)              30s, 60s, 120s
    retrying --(attempts exhausted)--> polling
    paused_at_limit --(resets_at + grace, or wake)--> polling
    any --(not authenticated)--> idle                         summary/cache cleared
    any --(sleep)--> same state, all timers cancelled

=============================================================================
TIMERS
=============================================================================

    poll       next scheduled fetch while polling or retrying
    resume     resets_at + grace while paused at limit
    retry      next backoff attempt while retrying
    countdown  minute-aligned ticker; publishes CountdownTick and checks
               for windows whose resets_at has passed
"""

import asyncio
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Callable, List, Optional, Set

from ...core.errors import (
    ErrorCategory,
    NetworkError,
    NotAuthenticatedError,
    UsageMonitorError,
    classify_error,
    describe_error,
)
from ...providers.auth_gate import AuthGate, AuthState, AuthStatus
from ...providers.usage_source import UsageSource
from ..config import RefreshConfig
from ..integration.events import (
    AuthChanged,
    CountdownTick,
    Event,
    RefreshFailed,
    RefreshStateChanged,
    SettingsChanged,
    SummaryUpdated,
    SystemDidWake,
    SystemWillSleep,
    UsageReset,
)
from ..integration.hooks import EventDispatcher
from ..persistence.storage import SummaryCache
from ..tracking.display import seconds_until, until_label
from ..tracking.resets import ResetDetector
from ..tracking.windows import build_summary
from ..types import (
    ExtraUsageSummary,
    RefreshPhase,
    RefreshState,
    UsageSummary,
)
from .timers import Clock, SystemClock, TimerGroup

lib_logger = logging.getLogger("usage_monitor")

POLL_TIMER = "poll"
RESUME_TIMER = "resume"
RETRY_TIMER = "retry"
COUNTDOWN_TIMER = "countdown"

NO_NETWORK_MESSAGE = "No network connection"


def _describe_windows(summary: UsageSummary) -> str:
    if not summary.windows:
        return "no windows"
    return ", ".join(f"{w.key} {w.utilization}%" for w in summary.windows)


class RefreshScheduler:
    """
    Single scheduling authority for one credential scope.

    Usage:
        scheduler = RefreshScheduler(gate, source, config, cache=cache)
        scheduler.events.subscribe(SummaryUpdated, render)
        await scheduler.start()
        ...
        await scheduler.handle_event(SystemWillSleep())
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        auth_gate: AuthGate,
        source: UsageSource,
        config: Optional[RefreshConfig] = None,
        cache: Optional[SummaryCache] = None,
        connectivity: Optional[Callable[[], bool]] = None,
        clock: Optional[Clock] = None,
        tz: Optional[tzinfo] = None,
    ):
        """
        Args:
            auth_gate: Credential supplier and auth state publisher
            source: Performs the usage fetch
            config: Refresh tunables; defaults to RefreshConfig()
            cache: Cold-start summary cache; loaded once here
            connectivity: Returns False when the machine is offline
            clock: Time source for every timer; defaults to SystemClock
            tz: Timezone for the "until HH:MM" label; defaults to local
        """
        self._auth_gate = auth_gate
        self._source = source
        self._config = config or RefreshConfig()
        self._cache = cache
        self._connectivity = connectivity
        self._clock = clock or SystemClock()
        self._tz = tz

        self._timers = TimerGroup(self._clock)
        self._events = EventDispatcher()
        self._detector = ResetDetector()

        self._state = RefreshState.idle()
        self._summary: Optional[UsageSummary] = None
        self._extra_usage: Optional[ExtraUsageSummary] = None
        self._last_error: Optional[str] = None
        self._reset_label: Optional[str] = None
        self._target_date: Optional[datetime] = None

        self._running = False
        self._sleeping = False
        self._is_refreshing = False
        self._inflight: Optional[asyncio.Future] = None
        self._refresh_pending = False  # Fetch again once the in-flight one ends
        self._epoch = 0  # Bumped on every auth transition
        self._retry_count = 0
        self._processed_resets: Set[datetime] = set()
        self._background: Set[asyncio.Task] = set()
        self._unsubscribe_auth: Optional[Callable[[], None]] = None

        if self._cache is not None:
            self._summary = self._cache.load(self._clock.now())

    # =========================================================================
    # OBSERVABLE STATE
    # =========================================================================

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def summary(self) -> Optional[UsageSummary]:
        return self._summary

    @property
    def extra_usage(self) -> Optional[ExtraUsageSummary]:
        return self._extra_usage

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def reset_label(self) -> Optional[str]:
        """Fixed "until HH:MM" label for an at-limit primary, set per refresh."""
        return self._reset_label

    @property
    def target_date(self) -> Optional[datetime]:
        """Single source of truth for every countdown display."""
        return self._target_date

    @property
    def seconds_until_next_event(self) -> int:
        """
        Seconds until the next poll (polling), the next attempt (retrying)
        or the quota reset (paused at limit). Zero when idle, stopped or
        asleep.
        """
        return seconds_until(self._target_date, self._clock.now())

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def config(self) -> RefreshConfig:
        return self._config

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def active_timers(self) -> List[str]:
        return self._timers.active

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def _is_active(self) -> bool:
        return (
            self._running
            and not self._sleeping
            and self._auth_gate.current_state().is_authenticated
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Begin polling per the current auth state. Idempotent."""
        if self._running:
            return
        self._running = True
        self._unsubscribe_auth = self._auth_gate.subscribe(self._on_auth_state)

        state = self._auth_gate.current_state()
        lib_logger.info(f"Refresh scheduler started (auth: {state.status.value})")
        if state.is_authenticated:
            await self._on_authenticated()
        elif state.status == AuthStatus.NOT_AUTHENTICATED:
            await self._teardown()

    def stop(self) -> None:
        """Cancel every timer and zero the countdown. Idempotent."""
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        if not self._running:
            return
        self._running = False
        self._timers.cancel_all()
        self._target_date = None
        lib_logger.info("Refresh scheduler stopped")

    async def handle_event(self, event: Event) -> None:
        """Apply an inbound event (auth, settings, sleep/wake)."""
        if isinstance(event, AuthChanged):
            await self._handle_auth_changed(event.state)
        elif isinstance(event, SettingsChanged):
            await self._handle_settings_changed(event.config)
        elif isinstance(event, SystemWillSleep):
            await self._handle_sleep()
        elif isinstance(event, SystemDidWake):
            await self._handle_wake()
        else:
            raise TypeError(f"Unsupported event: {type(event).__name__}")

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh_now(self) -> None:
        """
        Fetch usage out of band.

        At most one fetch is in flight. A call made while one is running
        does not start another; it returns once the running fetch completes.
        """
        if self._is_refreshing and self._inflight is not None:
            lib_logger.debug("Refresh already in flight; waiting for it")
            await asyncio.shield(self._inflight)
            return

        if not self._auth_gate.current_state().is_authenticated:
            self._last_error = NotAuthenticatedError().message
            return

        self._is_refreshing = True
        self._inflight = asyncio.get_running_loop().create_future()
        try:
            await self._perform_refresh()
        finally:
            self._is_refreshing = False
            inflight, self._inflight = self._inflight, None
            if inflight is not None and not inflight.done():
                inflight.set_result(None)
            if self._refresh_pending:
                self._refresh_pending = False
                if self._is_active:
                    self._spawn_refresh()

    async def set_extra_usage_enabled(self, enabled: bool) -> None:
        """
        Turn extra usage (overage billing) on or off, then refresh.

        Raises:
            NotAuthenticatedError: If no credential is available
            UsageSourceError: If the update failed; a rejected credential
                is also invalidated
        """
        lib_logger.info(f"Setting extra usage to: {enabled}")
        try:
            credential = await self._auth_gate.get_credential()
            await asyncio.wait_for(
                self._source.update_extra_usage(credential, enabled),
                timeout=self._config.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError("Network error: request timed out", cause=e) from e
        except UsageMonitorError as e:
            self._last_error = e.message
            if classify_error(e) == ErrorCategory.AUTH:
                await self._auth_gate.invalidate()
            raise

        await self.refresh_now()

    async def _perform_refresh(self) -> None:
        epoch = self._epoch

        if self._connectivity is not None and not self._connectivity():
            lib_logger.warning("No network connection; skipping usage fetch")
            self._last_error = NO_NETWORK_MESSAGE
            await self._events.emit(
                RefreshFailed(message=NO_NETWORK_MESSAGE, is_auth_error=False)
            )
            if self._is_active:
                await self._reschedule()
            return

        try:
            credential = await self._auth_gate.get_credential()
            payload = await asyncio.wait_for(
                self._source.fetch_usage(credential),
                timeout=self._config.request_timeout,
            )
            summary = build_summary(payload, self._clock.now())
        except (UsageMonitorError, asyncio.TimeoutError) as e:
            if epoch != self._epoch:
                lib_logger.debug(f"Ignoring failure from before auth change: {e}")
                return
            await self._handle_failure(e)
            return

        if epoch != self._epoch:
            lib_logger.debug("Discarding usage fetched before auth change")
            return

        await self._apply_summary(summary)
        if self._is_active:
            await self._reschedule()

        await self._refresh_extra_usage(credential, epoch)

    async def _apply_summary(self, summary: UsageSummary) -> None:
        previous = self._summary
        primary = summary.primary

        last_utilization = self._detector.last_utilization
        if self._detector.observe(primary.utilization if primary else None):
            await self._events.emit(
                UsageReset(
                    key=primary.key,
                    previous_utilization=last_utilization,
                    reset_sound=self._config.reset_sound,
                )
            )

        # A new primary reset time means a new cycle
        previous_resets_at = previous.primary_resets_at if previous else None
        if previous_resets_at != summary.primary_resets_at:
            self._processed_resets.clear()

        self._summary = summary
        self._last_error = None
        self._retry_count = 0
        self._timers.cancel(RETRY_TIMER)
        self._reset_label = (
            until_label(primary, self._tz)
            if primary is not None and primary.is_at_limit
            else None
        )

        if self._cache is not None:
            self._cache.save(summary)

        lib_logger.info(f"Usage updated: {_describe_windows(summary)}")
        await self._events.emit(SummaryUpdated(summary=summary))

    async def _handle_failure(self, error: BaseException) -> None:
        message = describe_error(error)
        self._last_error = message

        if classify_error(error) == ErrorCategory.AUTH:
            lib_logger.warning(f"Authentication failed: {message}")
            self._retry_count = 0
            self._timers.cancel(RETRY_TIMER)
            await self._events.emit(RefreshFailed(message=message, is_auth_error=True))
            await self._auth_gate.invalidate()
            return

        lib_logger.error(f"Usage fetch failed: {message}")
        if self._is_active:
            await self._reschedule()
            await self._schedule_retry()
        await self._events.emit(
            RefreshFailed(
                message=message, is_auth_error=False, attempt=self._retry_count
            )
        )

    async def _refresh_extra_usage(self, credential: str, epoch: int) -> None:
        try:
            extra = await asyncio.wait_for(
                self._source.fetch_extra_usage(credential),
                timeout=self._config.request_timeout,
            )
        except (UsageMonitorError, asyncio.TimeoutError) as e:
            lib_logger.debug(f"Extra usage unavailable: {describe_error(e)}")
            return
        if epoch == self._epoch and extra is not None:
            self._extra_usage = extra

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    async def _transition(self, new_state: RefreshState) -> None:
        previous = self._state
        self._state = new_state
        if previous == new_state:
            return
        if previous.phase != new_state.phase:
            lib_logger.info(
                f"Refresh state: {previous.phase.value} -> {new_state.phase.value}"
            )
        await self._events.emit(
            RefreshStateChanged(previous=previous, current=new_state)
        )

    async def _reschedule(self) -> None:
        """Re-derive the schedule from the current summary."""
        self._timers.cancel(POLL_TIMER)
        self._timers.cancel(RESUME_TIMER)

        if self._summary is not None and self._summary.should_pause:
            await self._enter_paused(self._summary.primary_resets_at)
        else:
            await self._enter_polling()

        self._timers.schedule_minute_ticker(COUNTDOWN_TIMER, self._on_countdown_tick)

    async def _enter_polling(self) -> None:
        interval = self._config.refresh_interval.seconds
        next_fetch_at = self._clock.now() + timedelta(seconds=interval)
        self._timers.schedule(POLL_TIMER, interval, self._on_poll_timer)
        self._target_date = next_fetch_at
        await self._transition(RefreshState.polling(next_fetch_at))

    async def _enter_paused(self, reset_target: datetime) -> None:
        now = self._clock.now()
        grace = self._config.resume_grace

        if reset_target <= now:
            # Server still reports a past reset time: resume once, then poll
            if reset_target in self._processed_resets:
                lib_logger.warning(
                    f"Primary still at limit after reset time {reset_target.isoformat()}; "
                    f"falling back to normal polling"
                )
                await self._enter_polling()
                return
            self._processed_resets.add(reset_target)
            delay = grace
        else:
            delay = (reset_target - now).total_seconds() + grace

        self._timers.schedule(RESUME_TIMER, delay, self._on_resume_timer)
        self._target_date = reset_target
        if self._state.phase != RefreshPhase.PAUSED_AT_LIMIT:
            lib_logger.info(
                f"Primary usage at limit; pausing refresh until {reset_target.isoformat()}"
            )
        await self._transition(RefreshState.paused_at_limit(reset_target))

    async def _schedule_retry(self) -> None:
        if self._retry_count >= self._config.max_retries:
            lib_logger.warning(
                f"Giving up after {self._retry_count} retries; "
                f"waiting for next scheduled refresh"
            )
            return

        self._retry_count += 1
        delay = self._config.retry_delay(self._retry_count)
        next_attempt_at = self._clock.now() + timedelta(seconds=delay)
        self._timers.schedule(RETRY_TIMER, delay, self._on_retry_timer)
        self._target_date = next_attempt_at
        lib_logger.info(
            f"Retrying usage fetch in {int(delay)}s "
            f"(attempt {self._retry_count}/{self._config.max_retries})"
        )
        await self._transition(
            RefreshState.retrying(self._retry_count, next_attempt_at)
        )

    # =========================================================================
    # TIMER CALLBACKS
    # =========================================================================

    async def _on_poll_timer(self) -> None:
        await self.refresh_now()

    async def _on_retry_timer(self) -> None:
        await self.refresh_now()

    async def _on_resume_timer(self) -> None:
        lib_logger.info("Reset time reached; resuming refresh")
        await self.refresh_now()

    async def _on_countdown_tick(self) -> None:
        await self._events.emit(
            CountdownTick(
                seconds_until_next_event=self.seconds_until_next_event,
                target_date=self._target_date,
            )
        )
        self._check_expired_windows()

    def _check_expired_windows(self) -> None:
        """
        Trigger one refresh for the first window whose reset time has passed
        and was not already acted upon. While paused the primary is left to
        the resume timer.
        """
        if self._is_refreshing or self._summary is None or not self._is_active:
            return

        now = self._clock.now()
        paused = self._state.phase == RefreshPhase.PAUSED_AT_LIMIT
        primary = self._summary.primary

        for window in self._summary.windows:
            if paused and primary is not None and window.key == primary.key:
                continue
            if window.resets_at is None or window.resets_at > now:
                continue
            if window.resets_at in self._processed_resets:
                continue

            self._processed_resets.add(window.resets_at)
            lib_logger.info(f"Window '{window.key}' reset time passed; refreshing")
            self._spawn_refresh()
            break

    def _spawn_refresh(self) -> None:
        task = asyncio.create_task(self.refresh_now())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # =========================================================================
    # INBOUND EVENTS
    # =========================================================================

    async def _on_auth_state(self, state: AuthState) -> None:
        await self.handle_event(AuthChanged(state))

    async def _handle_auth_changed(self, state: AuthState) -> None:
        if state.status == AuthStatus.UNKNOWN:
            return
        if state.is_authenticated:
            if self._running:
                await self._on_authenticated()
        else:
            await self._teardown()

    async def _on_authenticated(self) -> None:
        self._epoch += 1
        self._retry_count = 0
        self._last_error = None
        self._timers.cancel(RETRY_TIMER)

        if self._sleeping:
            return

        await self._reschedule()
        if self._is_refreshing:
            # The running fetch belongs to the previous auth scope and may be
            # the one that published this state; its result is discarded
            self._refresh_pending = True
            return
        await self.refresh_now()

    async def _teardown(self) -> None:
        self._epoch += 1
        self._retry_count = 0
        self._refresh_pending = False
        self._timers.cancel_all()
        self._target_date = None
        self._processed_resets.clear()
        self._detector.clear()
        self._extra_usage = None
        self._reset_label = None

        had_summary = self._summary is not None
        self._summary = None
        if self._cache is not None:
            self._cache.clear()

        lib_logger.info("Not authenticated; refresh stopped and cached usage cleared")
        await self._transition(RefreshState.idle())
        if had_summary:
            await self._events.emit(SummaryUpdated(summary=None))

    async def _handle_settings_changed(self, config: RefreshConfig) -> None:
        previous = self._config
        self._config = config
        if self._cache is not None:
            self._cache.max_age = config.cache_max_age

        if previous.refresh_interval != config.refresh_interval:
            lib_logger.info(
                f"Refresh interval changed: {previous.refresh_interval.label} -> "
                f"{config.refresh_interval.label}"
            )

        if not self._is_active or self._state.is_idle:
            return
        if self._state.phase == RefreshPhase.RETRYING:
            # New interval takes effect once the retry chain settles
            return
        await self._reschedule()

    async def _handle_sleep(self) -> None:
        if self._sleeping:
            return
        self._sleeping = True
        self._timers.cancel_all()
        self._target_date = None
        lib_logger.info("System sleeping; all refresh timers cancelled")

    async def _handle_wake(self) -> None:
        if not self._sleeping:
            return
        self._sleeping = False
        lib_logger.info("System woke")

        if not self._is_active:
            return

        await self.refresh_now()
        if self._is_active and not (
            self._timers.is_active(POLL_TIMER) or self._timers.is_active(RESUME_TIMER)
        ):
            await self._reschedule()
