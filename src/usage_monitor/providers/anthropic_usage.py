# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
UsageSource for the Anthropic OAuth usage endpoint.

GET {base}/usage returns an object keyed by window name:

    {
        "five_hour": {"utilization": 42, "resets_at": "2026-01-01T17:00:00.123Z"},
        "seven_day": {"utilization": 12, "resets_at": "2026-01-06T00:00:00Z"},
        "seven_day_opus": {"utilization": 0, "resets_at": null}
    }

The billing endpoints (prepaid/credits, overage_spend_limit) are read best
effort to build an ExtraUsageSummary. PUT overage_spend_limit with
{"is_enabled": bool} turns extra usage on or off.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..core.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USER_AGENT,
    OAUTH_BETA_HEADER,
    OVERAGE_SPEND_LIMIT_ENDPOINT,
    PREPAID_CREDITS_ENDPOINT,
    USAGE_ENDPOINT,
)
from ..core.errors import (
    AUTH_STATUS_CODES,
    AuthError,
    DecodeError,
    HttpError,
    NetworkError,
    UsageSourceError,
    mask_credential,
)
from ..usage.types import ExtraUsageSummary, OverageSpendLimit, PrepaidCredits
from .usage_source import UsageSource

lib_logger = logging.getLogger("usage_monitor")


class AnthropicUsageSource(UsageSource):
    """
    httpx-backed usage source.

    Usage:
        source = AnthropicUsageSource()
        payload = await source.fetch_usage(token)
        await source.close()

    An externally supplied client is not closed by close().
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "AnthropicUsageSource":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self, credential: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "anthropic-beta": OAUTH_BETA_HEADER,
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        credential: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request and map transport and status failures."""
        url = f"{self.base_url}/{endpoint}"
        lib_logger.debug(
            f"Request: {method} /{endpoint} (token {mask_credential(credential)})"
        )

        try:
            response = await self._get_client().request(
                method,
                url,
                headers=self._headers(credential),
                json=body,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            lib_logger.error(f"Request to /{endpoint} timed out: {e}")
            raise NetworkError("Network error: request timed out", cause=e) from e
        except httpx.RequestError as e:
            lib_logger.error(f"Network error on /{endpoint}: {e}")
            raise NetworkError(f"Network error: {e}", cause=e) from e

        if response.status_code in AUTH_STATUS_CODES:
            lib_logger.warning(f"Session expired (HTTP {response.status_code})")
            raise AuthError(status_code=response.status_code)

        if not response.is_success:
            lib_logger.error(f"HTTP error: {response.status_code} on /{endpoint}")
            raise HttpError(response.status_code)

        return response

    async def _get_json(self, endpoint: str, credential: str) -> Any:
        """GET an endpoint and decode its JSON body."""
        response = await self._request("GET", endpoint, credential)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            lib_logger.error(f"Decoding error on /{endpoint}: {e}")
            raise DecodeError(f"Failed to parse response: {e}") from e

    async def fetch_usage(self, credential: str) -> Any:
        payload = await self._get_json(USAGE_ENDPOINT, credential)
        if not isinstance(payload, dict):
            raise DecodeError(
                f"Failed to parse response: expected object, got {type(payload).__name__}"
            )
        return payload

    async def fetch_extra_usage(self, credential: str) -> Optional[ExtraUsageSummary]:
        """
        Fetch prepaid credits and the overage spend limit concurrently.

        Each part is optional; a failing part is logged at debug and left
        as None. Returns None if both parts failed.
        """
        credits_result, limit_result = await asyncio.gather(
            self._get_json(PREPAID_CREDITS_ENDPOINT, credential),
            self._get_json(OVERAGE_SPEND_LIMIT_ENDPOINT, credential),
            return_exceptions=True,
        )

        credits = self._parse_part(credits_result, PrepaidCredits, "prepaid credits")
        spend_limit = self._parse_part(
            limit_result, OverageSpendLimit, "overage spend limit"
        )

        if credits is None and spend_limit is None:
            return None
        return ExtraUsageSummary(credits=credits, spend_limit=spend_limit)

    async def update_extra_usage(self, credential: str, enabled: bool) -> None:
        await self._request(
            "PUT",
            OVERAGE_SPEND_LIMIT_ENDPOINT,
            credential,
            body={"is_enabled": enabled},
        )
        lib_logger.info(f"Extra usage updated: {enabled}")

    @staticmethod
    def _parse_part(result: Any, model: Any, label: str) -> Any:
        if isinstance(result, UsageSourceError):
            lib_logger.debug(f"Failed to fetch {label}: {result.message}")
            return None
        if isinstance(result, BaseException):
            raise result
        if not isinstance(result, dict):
            lib_logger.debug(f"Unexpected {label} payload: {type(result).__name__}")
            return None
        try:
            return model.from_dict(result)
        except (KeyError, TypeError, ValueError) as e:
            lib_logger.debug(f"Failed to decode {label}: {e}")
            return None

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
