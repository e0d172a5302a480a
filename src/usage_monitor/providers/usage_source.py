# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage source interface.

A UsageSource performs the network fetch and returns the raw, open-ended
usage payload. Decoding into windows happens in the usage model, not here.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..core.errors import UsageSourceError
from ..usage.types import ExtraUsageSummary


class UsageSource(ABC):
    """
    Abstract fetcher for the usage API.

    fetch_usage() must fail only with the UsageSourceError family:
    NetworkError, HttpError, DecodeError or AuthError.
    """

    @abstractmethod
    async def fetch_usage(self, credential: str) -> Any:
        """
        Fetch the raw usage payload.

        Args:
            credential: Bearer credential from the AuthGate

        Returns:
            Decoded JSON body (expected to be an object)

        Raises:
            AuthError: Credential rejected (401/403)
            HttpError: Any other non-success status
            NetworkError: Transport failure or timeout
            DecodeError: Body is not valid JSON
        """
        ...

    async def fetch_extra_usage(self, credential: str) -> Optional[ExtraUsageSummary]:
        """
        Fetch optional billing data (prepaid credits, spend limit).

        Sources without billing data return None.
        """
        return None

    async def update_extra_usage(self, credential: str, enabled: bool) -> None:
        """
        Turn overage billing (extra usage) on or off.

        Raises:
            UsageSourceError: If the source cannot change billing settings
        """
        raise UsageSourceError("Extra usage settings are not supported by this source")

    async def close(self) -> None:
        """Release network resources."""
        return None
