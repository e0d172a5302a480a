# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Authentication gate interface.

The refresh scheduler never acquires credentials itself. It asks an AuthGate
for the current state and a credential, subscribes to state changes, and
calls invalidate() when the usage API rejects the credential.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

lib_logger = logging.getLogger("usage_monitor")

AuthStateHandler = Callable[["AuthState"], Any]


class AuthStatus(str, Enum):
    """Authentication status reported by an AuthGate."""

    UNKNOWN = "unknown"  # Not yet checked (launch)
    NOT_AUTHENTICATED = "not_authenticated"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthState:
    """Snapshot of an AuthGate's state."""

    status: AuthStatus
    subscription_type: Optional[str] = None  # "pro", "max", ...

    @classmethod
    def unknown(cls) -> "AuthState":
        return cls(status=AuthStatus.UNKNOWN)

    @classmethod
    def not_authenticated(cls) -> "AuthState":
        return cls(status=AuthStatus.NOT_AUTHENTICATED)

    @classmethod
    def authenticated(cls, subscription_type: Optional[str] = None) -> "AuthState":
        return cls(status=AuthStatus.AUTHENTICATED, subscription_type=subscription_type)

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED

    @property
    def tier_display_name(self) -> Optional[str]:
        if not self.subscription_type:
            return None
        return self.subscription_type.replace("_", " ").title()


class AuthGate(ABC):
    """
    Abstract credential supplier.

    Implementations own credential storage and any token refresh; the
    scheduler only consumes this contract.
    """

    @abstractmethod
    def current_state(self) -> AuthState:
        """Current authentication state."""
        ...

    @abstractmethod
    def subscribe(self, handler: AuthStateHandler) -> Callable[[], None]:
        """
        Register for state changes.

        Args:
            handler: Called with the new AuthState; may return a coroutine

        Returns:
            Callable that removes the subscription
        """
        ...

    @abstractmethod
    async def get_credential(self) -> str:
        """
        Return a valid bearer credential.

        Raises:
            NotAuthenticatedError: If no valid credential is available
        """
        ...

    @abstractmethod
    async def invalidate(self) -> None:
        """
        Drop the current credential after the API rejected it.

        Must publish a NOT_AUTHENTICATED state.
        """
        ...


class BaseAuthGate(AuthGate):
    """
    AuthGate with subscriber bookkeeping.

    Subclasses call _set_state() whenever their state may have changed;
    subscribers are only notified on an actual change.
    """

    def __init__(self, initial_state: Optional[AuthState] = None):
        self._state = initial_state or AuthState.unknown()
        self._subscribers: List[AuthStateHandler] = []

    def current_state(self) -> AuthState:
        return self._state

    def subscribe(self, handler: AuthStateHandler) -> Callable[[], None]:
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    async def _set_state(self, state: AuthState) -> None:
        """Store a new state and notify subscribers if it changed."""
        if state == self._state:
            return

        previous = self._state
        self._state = state
        lib_logger.info(
            f"Auth state changed: {previous.status.value} -> {state.status.value}"
        )

        for handler in list(self._subscribers):
            result = handler(state)
            if asyncio.iscoroutine(result):
                await result
