# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Constants and default values for the usage monitor.

All tunable defaults live here so the ConfigLoader, the scheduler and the
providers agree on a single set of values.
"""

# =============================================================================
# REFRESH & SCHEDULING
# =============================================================================

# Seconds between normal polls
DEFAULT_REFRESH_INTERVAL = 300

# Allowed poll intervals (seconds)
REFRESH_INTERVAL_CHOICES = (60, 180, 300, 600)

# Retry backoff: base * 2^(attempt - 1) -> 30s, 60s, 120s
DEFAULT_RETRY_BASE_DELAY = 30.0
DEFAULT_MAX_RETRIES = 3

# Extra delay after a window's reset time before resuming (clock skew)
DEFAULT_RESUME_GRACE = 5.0

# Countdown ticker period, aligned to wall-clock minutes
COUNTDOWN_TICK_SECONDS = 60

# =============================================================================
# NETWORK
# =============================================================================

DEFAULT_REQUEST_TIMEOUT = 30.0

DEFAULT_API_BASE_URL = "https://api.anthropic.com/api/oauth"
USAGE_ENDPOINT = "usage"
PREPAID_CREDITS_ENDPOINT = "prepaid/credits"
OVERAGE_SPEND_LIMIT_ENDPOINT = "overage_spend_limit"
OAUTH_BETA_HEADER = "oauth-2025-04-20"
DEFAULT_USER_AGENT = "claude-code/2.1.5"

# =============================================================================
# CACHE
# =============================================================================

DEFAULT_CACHE_MAX_AGE = 3600.0
CACHE_KEY = "cached_usage_summary_v2"
CACHE_FILE_NAME = "usage_cache.json"

# =============================================================================
# USAGE WINDOWS
# =============================================================================

PRIMARY_WINDOW_KEY = "five_hour"
SEVEN_DAY_WINDOW_KEY = "seven_day"
SEVEN_DAY_PREFIX = "seven_day_"

WARNING_THRESHOLD = 80
LIMIT_THRESHOLD = 100

# =============================================================================
# RESET ALERT
# =============================================================================

DEFAULT_RESET_SOUND = "Glass"
RESET_SOUND_CHOICES = ("none", "Glass", "Ping", "Pop", "Purr", "Sosumi", "Tink")

# =============================================================================
# ENVIRONMENT VARIABLES
# =============================================================================

ENV_REFRESH_INTERVAL = "USAGE_REFRESH_INTERVAL"
ENV_RETRY_DELAY = "USAGE_RETRY_DELAY"
ENV_MAX_RETRIES = "USAGE_MAX_RETRIES"
ENV_RESUME_DELAY = "USAGE_RESUME_DELAY"
ENV_REQUEST_TIMEOUT = "USAGE_REQUEST_TIMEOUT"
ENV_CACHE_MAX_AGE = "USAGE_CACHE_MAX_AGE"
ENV_RESET_SOUND = "USAGE_RESET_SOUND"
ENV_CACHE_PATH = "USAGE_CACHE_PATH"
ENV_API_BASE_URL = "USAGE_API_BASE_URL"
ENV_CREDENTIALS_PATH = "CLAUDE_CREDENTIALS_PATH"

# Logging
LIB_LOGGER_NAME = "usage_monitor"

__all__ = [
    "DEFAULT_REFRESH_INTERVAL",
    "REFRESH_INTERVAL_CHOICES",
    "DEFAULT_RETRY_BASE_DELAY",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RESUME_GRACE",
    "COUNTDOWN_TICK_SECONDS",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_API_BASE_URL",
    "USAGE_ENDPOINT",
    "PREPAID_CREDITS_ENDPOINT",
    "OVERAGE_SPEND_LIMIT_ENDPOINT",
    "OAUTH_BETA_HEADER",
    "DEFAULT_USER_AGENT",
    "DEFAULT_CACHE_MAX_AGE",
    "CACHE_KEY",
    "CACHE_FILE_NAME",
    "PRIMARY_WINDOW_KEY",
    "SEVEN_DAY_WINDOW_KEY",
    "SEVEN_DAY_PREFIX",
    "WARNING_THRESHOLD",
    "LIMIT_THRESHOLD",
    "DEFAULT_RESET_SOUND",
    "RESET_SOUND_CHOICES",
    "ENV_REFRESH_INTERVAL",
    "ENV_RETRY_DELAY",
    "ENV_MAX_RETRIES",
    "ENV_RESUME_DELAY",
    "ENV_REQUEST_TIMEOUT",
    "ENV_CACHE_MAX_AGE",
    "ENV_RESET_SOUND",
    "ENV_CACHE_PATH",
    "ENV_API_BASE_URL",
    "ENV_CREDENTIALS_PATH",
    "LIB_LOGGER_NAME",
]
