# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from usage_monitor.core.constants import ENV_CREDENTIALS_PATH
from usage_monitor.core.errors import NotAuthenticatedError
from usage_monitor.providers.auth_gate import AuthStatus
from usage_monitor.providers.claude_credentials import (
    ClaudeCredentialsGate,
    default_credentials_path,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
TOKEN = "sk-ant-REDACTED"


def write_credentials(path: Path, expires_at=NOW + timedelta(hours=8), **extra):
    oauth = {
        "accessToken": TOKEN,
        "refreshToken": "sk-ant-ort01-refresh",
        "expiresAt": int(expires_at.timestamp() * 1000),
        "subscriptionType": "max",
    }
    oauth.update(extra)
    path.write_text(json.dumps({"claudeAiOauth": oauth}), encoding="utf-8")


class FrozenTime:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def creds_path(tmp_path):
    return tmp_path / ".credentials.json"


async def test_valid_credentials_authenticate(creds_path):
    write_credentials(creds_path)
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))
    states = []
    gate.subscribe(states.append)

    state = await gate.check()

    assert state.is_authenticated
    assert state.subscription_type == "max"
    assert state.tier_display_name == "Max"
    assert await gate.get_credential() == TOKEN
    assert gate.expires_at == NOW + timedelta(hours=8)
    assert [s.status for s in states] == [AuthStatus.AUTHENTICATED]


async def test_unchanged_state_does_not_notify(creds_path):
    write_credentials(creds_path)
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))
    states = []
    gate.subscribe(states.append)

    await gate.check()
    await gate.check()

    assert len(states) == 1


async def test_missing_file_is_not_authenticated(creds_path):
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))

    state = await gate.check()

    assert state.status == AuthStatus.NOT_AUTHENTICATED
    with pytest.raises(NotAuthenticatedError):
        await gate.get_credential()


@pytest.mark.parametrize(
    "content",
    ["{broken", json.dumps([]), json.dumps({"other": {}}),
     json.dumps({"claudeAiOauth": {"accessToken": ""}})],
)
async def test_unusable_file_is_not_authenticated(creds_path, content):
    creds_path.write_text(content, encoding="utf-8")
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))

    assert (await gate.check()).status == AuthStatus.NOT_AUTHENTICATED


async def test_expired_token_is_not_authenticated(creds_path):
    write_credentials(creds_path, expires_at=NOW - timedelta(minutes=1))
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))

    state = await gate.check()

    assert state.status == AuthStatus.NOT_AUTHENTICATED
    with pytest.raises(NotAuthenticatedError):
        await gate.get_credential()


async def test_token_expiring_after_check_is_rechecked(creds_path):
    write_credentials(creds_path, expires_at=NOW + timedelta(minutes=5))
    clock = FrozenTime(NOW)
    gate = ClaudeCredentialsGate(creds_path, now=clock)
    await gate.check()

    clock.now = NOW + timedelta(minutes=10)
    with pytest.raises(NotAuthenticatedError, match="Session expired"):
        await gate.get_credential()
    assert gate.current_state().status == AuthStatus.NOT_AUTHENTICATED

    # Claude Code refreshed the token on disk
    write_credentials(creds_path, expires_at=NOW + timedelta(hours=8))
    await gate.check()
    assert await gate.get_credential() == TOKEN


async def test_invalidate_publishes_not_authenticated(creds_path):
    write_credentials(creds_path)
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))
    await gate.check()

    await gate.invalidate()

    assert gate.current_state().status == AuthStatus.NOT_AUTHENTICATED
    with pytest.raises(NotAuthenticatedError):
        await gate.get_credential()


async def test_async_subscribers_are_awaited(creds_path):
    write_credentials(creds_path)
    gate = ClaudeCredentialsGate(creds_path, now=FrozenTime(NOW))
    seen = []

    async def handler(state):
        seen.append(state)

    unsubscribe = gate.subscribe(handler)
    await gate.check()
    unsubscribe()
    await gate.invalidate()

    assert len(seen) == 1


def test_default_path_honours_environment(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_CREDENTIALS_PATH, str(tmp_path / "creds.json"))
    assert default_credentials_path() == tmp_path / "creds.json"

    monkeypatch.delenv(ENV_CREDENTIALS_PATH)
    assert default_credentials_path() == Path.home() / ".claude" / ".credentials.json"
