# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json

import httpx
import pytest

from usage_monitor.core.errors import AuthError, DecodeError, HttpError, NetworkError
from usage_monitor.providers.anthropic_usage import AnthropicUsageSource

TOKEN = "sk-ant-REDACTED"
BASE_URL = "https://api.example.test/api/oauth"

USAGE_BODY = {
    "five_hour": {"utilization": 42, "resets_at": "2026-01-01T17:00:00.123Z"},
    "seven_day": {"utilization": 12, "resets_at": "2026-01-06T00:00:00Z"},
}


def make_source(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AnthropicUsageSource(base_url=BASE_URL + "/", client=client)


async def test_fetch_usage_sends_oauth_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=USAGE_BODY)

    async with make_source(handler) as source:
        payload = await source.fetch_usage(TOKEN)

    assert payload == USAGE_BODY
    request = seen[0]
    assert request.method == "GET"
    assert str(request.url) == f"{BASE_URL}/usage"
    assert request.headers["Authorization"] == f"Bearer {TOKEN}"
    assert request.headers["anthropic-beta"] == "oauth-2025-04-20"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["User-Agent"].startswith("claude-code/")


@pytest.mark.parametrize("status", [401, 403])
async def test_rejected_credential_raises_auth_error(status):
    source = make_source(lambda request: httpx.Response(status))

    with pytest.raises(AuthError) as exc_info:
        await source.fetch_usage(TOKEN)

    assert exc_info.value.status_code == status


@pytest.mark.parametrize("status", [429, 500, 503])
async def test_other_statuses_raise_http_error(status):
    source = make_source(lambda request: httpx.Response(status))

    with pytest.raises(HttpError, match=f"HTTP error: {status}") as exc_info:
        await source.fetch_usage(TOKEN)

    assert exc_info.value.status_code == status


async def test_invalid_json_raises_decode_error():
    source = make_source(lambda request: httpx.Response(200, content=b"<html>oops"))

    with pytest.raises(DecodeError, match="Failed to parse response"):
        await source.fetch_usage(TOKEN)


async def test_non_object_body_raises_decode_error():
    source = make_source(lambda request: httpx.Response(200, json=[1, 2, 3]))

    with pytest.raises(DecodeError, match="expected object, got list"):
        await source.fetch_usage(TOKEN)


async def test_connection_failure_raises_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    source = make_source(handler)

    with pytest.raises(NetworkError, match="Network error: connection refused") as exc_info:
        await source.fetch_usage(TOKEN)

    assert isinstance(exc_info.value.cause, httpx.ConnectError)


async def test_timeout_raises_network_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    source = make_source(handler)

    with pytest.raises(NetworkError, match="Network error: request timed out"):
        await source.fetch_usage(TOKEN)


async def test_fetch_extra_usage():
    def handler(request):
        if request.url.path.endswith("/prepaid/credits"):
            return httpx.Response(
                200,
                json={
                    "amount": 1250,
                    "currency": "USD",
                    "auto_reload_settings": {"enabled": True},
                },
            )
        return httpx.Response(
            200,
            json={
                "is_enabled": True,
                "monthly_credit_limit": 5000,
                "used_credits": 1250,
                "currency": "USD",
            },
        )

    extra = await make_source(handler).fetch_extra_usage(TOKEN)

    assert extra.credits.amount == 1250
    assert extra.is_auto_reload_on
    assert extra.is_extra_usage_enabled
    assert extra.spend_limit.used_percentage == 25
    assert not extra.spend_limit.out_of_credits


async def test_fetch_extra_usage_tolerates_partial_failure():
    def handler(request):
        if request.url.path.endswith("/prepaid/credits"):
            return httpx.Response(404)
        return httpx.Response(200, json={"is_enabled": False})

    assert await make_source(handler).fetch_extra_usage(TOKEN) is None


@pytest.mark.parametrize("enabled", [True, False])
async def test_update_extra_usage_puts_spend_limit(enabled):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"is_enabled": enabled})

    async with make_source(handler) as source:
        await source.update_extra_usage(TOKEN, enabled)

    request = seen[0]
    assert request.method == "PUT"
    assert str(request.url) == f"{BASE_URL}/overage_spend_limit"
    assert request.headers["Authorization"] == f"Bearer {TOKEN}"
    assert json.loads(request.content) == {"is_enabled": enabled}


async def test_update_extra_usage_maps_failures():
    with pytest.raises(AuthError):
        await make_source(lambda request: httpx.Response(401)).update_extra_usage(
            TOKEN, True
        )

    with pytest.raises(HttpError, match="HTTP error: 500"):
        await make_source(lambda request: httpx.Response(500)).update_extra_usage(
            TOKEN, True
        )


async def test_update_extra_usage_accepts_empty_body():
    source = make_source(lambda request: httpx.Response(204))

    await source.update_extra_usage(TOKEN, False)


async def test_close_leaves_external_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    source = AnthropicUsageSource(client=client)

    await source.close()

    assert not client.is_closed
    await client.aclose()


async def test_close_releases_owned_client():
    source = AnthropicUsageSource()
    client = source._get_client()

    await source.close()

    assert client.is_closed
