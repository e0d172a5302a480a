# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Event dispatcher for the refresh scheduler.

Display layers and side-effect handlers (sounds, notifications) subscribe to
the scheduler's outbound events here instead of observing its attributes.

=============================================================================
SUBSCRIBING
=============================================================================

    def on_summary(event: SummaryUpdated) -> None:
        render(event.summary)

    async def on_reset(event: UsageReset) -> None:
        await play_sound(event.reset_sound)

    unsubscribe = scheduler.events.subscribe(SummaryUpdated, on_summary)
    scheduler.events.subscribe(UsageReset, on_reset)

    # Receive every event
    scheduler.events.subscribe(None, log_everything)

Handlers may be plain callables or coroutine functions. A handler that
raises is logged and does not prevent other handlers from running.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Type

from .events import Event

lib_logger = logging.getLogger("usage_monitor")

EventHandler = Callable[[Any], Any]


class EventDispatcher:
    """
    Observer list keyed by event type.

    Usage:
        dispatcher = EventDispatcher()
        dispatcher.subscribe(CountdownTick, handler)
        await dispatcher.emit(CountdownTick(seconds_until_next_event=60, ...))
    """

    def __init__(self):
        self._handlers: Dict[Optional[Type[Event]], List[EventHandler]] = {}

    def subscribe(
        self, event_type: Optional[Type[Event]], handler: EventHandler
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            event_type: Event class to receive (subclasses included), or
                        None for every event
            handler: Callable taking the event; may return a coroutine

        Returns:
            Callable that removes the subscription
        """
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def handler_count(self, event_type: Optional[Type[Event]] = None) -> int:
        return len(self._handlers.get(event_type, []))

    def _handlers_for(self, event: Event) -> List[EventHandler]:
        matched: List[EventHandler] = []
        for event_type, handlers in self._handlers.items():
            if event_type is None or isinstance(event, event_type):
                matched.extend(handlers)
        return matched

    async def emit(self, event: Event) -> None:
        """
        Deliver an event to every matching handler.
        """
        for handler in self._handlers_for(event):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                lib_logger.error(
                    f"Event handler for {type(event).__name__} failed: {e}",
                    exc_info=True,
                )
