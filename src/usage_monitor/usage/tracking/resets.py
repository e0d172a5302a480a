# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Reset edge detection for the primary usage window.
"""

import logging
from typing import Optional

lib_logger = logging.getLogger("usage_monitor")


class ResetDetector:
    """
    Detects a genuine reset of the primary window.

    A reset is a transition from a positive utilization to exactly zero.
    The first observation is a baseline and never reports a reset. The
    last value is updated on every observation.
    """

    def __init__(self):
        self._last_utilization: Optional[int] = None

    @property
    def last_utilization(self) -> Optional[int]:
        return self._last_utilization

    def observe(self, utilization: Optional[int]) -> bool:
        """
        Record the primary window's utilization from a successful fetch.

        Args:
            utilization: Primary utilization, or None if the summary has no
                         windows

        Returns:
            True if this observation is a reset edge
        """
        last = self._last_utilization
        self._last_utilization = utilization

        if last is None or utilization is None:
            return False

        is_reset = last > 0 and utilization == 0
        if is_reset:
            lib_logger.info(f"Usage reset detected: {last}% -> 0%")
        return is_reset

    def clear(self) -> None:
        """Forget the baseline (logout)."""
        self._last_utilization = None
