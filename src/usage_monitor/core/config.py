# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized configuration loader for the usage monitor.

This module provides a ConfigLoader class that builds a RefreshConfig from:
1. System defaults (from core/constants.py)
2. Explicit overrides passed by the host
3. Environment variables (ALWAYS override everything else)

The host is expected to load any .env file before constructing the loader.
"""

import logging
import os
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from ..usage.config import (
    RefreshConfig,
    _parse_duration_string,
    parse_refresh_interval,
)
from .constants import (
    ENV_CACHE_MAX_AGE,
    ENV_MAX_RETRIES,
    ENV_REFRESH_INTERVAL,
    ENV_REQUEST_TIMEOUT,
    ENV_RESET_SOUND,
    ENV_RESUME_DELAY,
    ENV_RETRY_DELAY,
    RESET_SOUND_CHOICES,
)

lib_logger = logging.getLogger("usage_monitor")


class ConfigLoader:
    """
    Centralized configuration loader.

    Parses configuration from:
    1. System defaults
    2. Host overrides
    3. Environment variables (ALWAYS override host overrides)

    Usage:
        loader = ConfigLoader()
        config = loader.load_refresh_config()
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize the ConfigLoader.

        Args:
            overrides: RefreshConfig field values supplied by the host.
                       Environment variables still win over these.
        """
        self._overrides = overrides or {}
        self._cache: Optional[RefreshConfig] = None

    def load_refresh_config(self, force_reload: bool = False) -> RefreshConfig:
        """
        Load the complete refresh configuration.

        Args:
            force_reload: If True, bypass cache and reload

        Returns:
            RefreshConfig with defaults, overrides and env values applied
        """
        if not force_reload and self._cache is not None:
            return self._cache

        config = RefreshConfig()

        if self._overrides:
            config = replace(config, **self._overrides)

        config = self._apply_env_overrides(config)

        self._cache = config
        return config

    def clear_cache(self) -> None:
        """Clear the cached configuration."""
        self._cache = None

    # =========================================================================
    # INTERNAL METHODS
    # =========================================================================

    def _apply_env_overrides(self, config: RefreshConfig) -> RefreshConfig:
        """
        Apply environment variable overrides to config.

        Invalid values are logged and ignored.
        """
        # Poll interval: USAGE_REFRESH_INTERVAL (60/180/300/600 or 1m/3m/5m/10m)
        env_val = os.getenv(ENV_REFRESH_INTERVAL)
        if env_val:
            interval = parse_refresh_interval(env_val)
            if interval is None:
                lib_logger.warning(
                    f"Invalid {ENV_REFRESH_INTERVAL}='{env_val}'. "
                    f"Using {int(config.refresh_interval)}s."
                )
            else:
                config = replace(config, refresh_interval=interval)

        config = self._apply_duration(
            config, ENV_RETRY_DELAY, "retry_base_delay", lambda s: s > 0
        )
        config = self._apply_duration(
            config, ENV_RESUME_DELAY, "resume_grace", lambda s: s >= 0
        )
        config = self._apply_duration(
            config, ENV_REQUEST_TIMEOUT, "request_timeout", lambda s: s > 0
        )
        config = self._apply_duration(
            config, ENV_CACHE_MAX_AGE, "cache_max_age", lambda s: s > 0
        )

        # Max retries: USAGE_MAX_RETRIES
        env_val = os.getenv(ENV_MAX_RETRIES)
        if env_val:
            try:
                max_retries = int(env_val)
                if max_retries < 0:
                    raise ValueError(env_val)
                config = replace(config, max_retries=max_retries)
            except ValueError:
                lib_logger.warning(
                    f"Invalid {ENV_MAX_RETRIES}='{env_val}'. Must be integer >= 0."
                )

        # Reset sound: USAGE_RESET_SOUND
        env_val = os.getenv(ENV_RESET_SOUND)
        if env_val:
            choices = {c.lower(): c for c in RESET_SOUND_CHOICES}
            sound = choices.get(env_val.strip().lower())
            if sound is None:
                lib_logger.warning(
                    f"Invalid {ENV_RESET_SOUND}='{env_val}'. "
                    f"Expected one of: {', '.join(RESET_SOUND_CHOICES)}."
                )
            else:
                config = replace(config, reset_sound=sound)

        return config

    def _apply_duration(
        self,
        config: RefreshConfig,
        env_key: str,
        field_name: str,
        is_valid: Callable[[int], bool],
    ) -> RefreshConfig:
        """Apply a duration-valued env var ("30", "90s", "1h30m") to a field."""
        env_val = os.getenv(env_key)
        if not env_val:
            return config

        seconds = _parse_duration_string(env_val)
        if seconds is None and env_val.strip() in ("0", "0s"):
            seconds = 0
        if seconds is None or not is_valid(seconds):
            lib_logger.warning(f"Invalid {env_key}='{env_val}'. Using default.")
            return config

        return replace(config, **{field_name: float(seconds)})
