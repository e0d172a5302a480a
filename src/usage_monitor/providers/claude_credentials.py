# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
File-backed AuthGate reading the Claude Code OAuth credentials file.

Expected shape:

    {
        "claudeAiOauth": {
            "accessToken": "sk-ant-oat01-...",
            "refreshToken": "...",
            "expiresAt": 1767225600000,      # milliseconds since epoch
            "subscriptionType": "max"
        }
    }

Token refresh is not performed here. An expired or missing token leaves the
gate NOT_AUTHENTICATED until the file is updated and check() runs again.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..core.constants import ENV_CREDENTIALS_PATH
from ..core.errors import NotAuthenticatedError, mask_credential
from .auth_gate import AuthState, BaseAuthGate

lib_logger = logging.getLogger("usage_monitor")

DEFAULT_CREDENTIALS_PATH = Path.home() / ".claude" / ".credentials.json"
OAUTH_SECTION = "claudeAiOauth"


def default_credentials_path() -> Path:
    """Credentials path from CLAUDE_CREDENTIALS_PATH, else ~/.claude/.credentials.json."""
    env_path = os.getenv(ENV_CREDENTIALS_PATH)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CREDENTIALS_PATH


class ClaudeCredentialsGate(BaseAuthGate):
    """
    AuthGate backed by a local credentials file.

    Usage:
        gate = ClaudeCredentialsGate()
        await gate.check()
        if gate.current_state().is_authenticated:
            token = await gate.get_credential()
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__()
        self.path = Path(path) if path else default_credentials_path()
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    def _is_expired(self) -> bool:
        return self._expires_at is not None and self._expires_at <= self._now()

    def _read_oauth_section(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                creds = json.load(f)
        except FileNotFoundError:
            lib_logger.debug(f"No credentials file at {self.path}")
            return None
        except (OSError, json.JSONDecodeError) as e:
            lib_logger.warning(f"Could not read credentials file {self.path}: {e}")
            return None

        section = creds.get(OAUTH_SECTION) if isinstance(creds, dict) else None
        if not isinstance(section, dict):
            lib_logger.warning(f"Credentials file {self.path} has no '{OAUTH_SECTION}' entry")
            return None
        return section

    async def check(self) -> AuthState:
        """
        Re-read the credentials file and publish the resulting state.

        Returns:
            The new AuthState
        """
        section = self._read_oauth_section()
        token = section.get("accessToken") if section else None

        if not isinstance(token, str) or not token:
            self._access_token = None
            self._expires_at = None
            await self._set_state(AuthState.not_authenticated())
            return self._state

        expires_ms = section.get("expiresAt")
        self._expires_at = (
            datetime.fromtimestamp(expires_ms / 1000, tz=timezone.utc)
            if isinstance(expires_ms, (int, float)) and not isinstance(expires_ms, bool)
            else None
        )
        self._access_token = token

        if self._is_expired():
            lib_logger.info(f"Access token {mask_credential(token)} has expired")
            self._access_token = None
            await self._set_state(AuthState.not_authenticated())
            return self._state

        subscription = section.get("subscriptionType")
        await self._set_state(
            AuthState.authenticated(
                subscription_type=subscription if isinstance(subscription, str) else None
            )
        )
        return self._state

    async def get_credential(self) -> str:
        if self._access_token is None or not self._state.is_authenticated:
            raise NotAuthenticatedError()

        if self._is_expired():
            lib_logger.info(
                f"Access token {mask_credential(self._access_token)} expired; re-checking credentials file"
            )
            await self.check()
            if self._access_token is None or not self._state.is_authenticated:
                raise NotAuthenticatedError("Session expired. Please log in again.")

        return self._access_token

    async def invalidate(self) -> None:
        if self._access_token:
            lib_logger.warning(
                f"Invalidating rejected access token {mask_credential(self._access_token)}"
            )
        self._access_token = None
        self._expires_at = None
        await self._set_state(AuthState.not_authenticated())
