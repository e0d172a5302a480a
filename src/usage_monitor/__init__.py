# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
usage_monitor - polling refresh engine for Claude plan usage windows.

Public API:
    RefreshScheduler: Polling / paused-at-limit / retry state machine
    UsageAPI: Read-only facade for display layers
    ConfigLoader: Environment-driven RefreshConfig loading
    ClaudeCredentialsGate, AnthropicUsageSource: shipped collaborators
"""

# Core first (errors and config have no dependency on the engine)
from .core.errors import (
    UsageMonitorError,
    NotAuthenticatedError,
    UsageSourceError,
    NetworkError,
    HttpError,
    DecodeError,
    AuthError,
)
from .core.config import ConfigLoader

from .usage import (
    RefreshScheduler,
    UsageAPI,
    RefreshConfig,
    RefreshInterval,
    UsageWindow,
    UsageSummary,
    RefreshState,
    RefreshPhase,
    StatusLevel,
    SummaryCache,
    JsonFileStore,
    MemoryStore,
    AuthChanged,
    SettingsChanged,
    SystemWillSleep,
    SystemDidWake,
    SummaryUpdated,
    RefreshStateChanged,
    CountdownTick,
    UsageReset,
    RefreshFailed,
)
from .providers import (
    AuthGate,
    AuthState,
    AuthStatus,
    BaseAuthGate,
    UsageSource,
    ClaudeCredentialsGate,
    AnthropicUsageSource,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "RefreshScheduler",
    "UsageAPI",
    "ConfigLoader",
    "RefreshConfig",
    "RefreshInterval",
    # Types
    "UsageWindow",
    "UsageSummary",
    "RefreshState",
    "RefreshPhase",
    "StatusLevel",
    # Cache
    "SummaryCache",
    "JsonFileStore",
    "MemoryStore",
    # Events
    "AuthChanged",
    "SettingsChanged",
    "SystemWillSleep",
    "SystemDidWake",
    "SummaryUpdated",
    "RefreshStateChanged",
    "CountdownTick",
    "UsageReset",
    "RefreshFailed",
    # Collaborators
    "AuthGate",
    "AuthState",
    "AuthStatus",
    "BaseAuthGate",
    "UsageSource",
    "ClaudeCredentialsGate",
    "AnthropicUsageSource",
    # Errors
    "UsageMonitorError",
    "NotAuthenticatedError",
    "UsageSourceError",
    "NetworkError",
    "HttpError",
    "DecodeError",
    "AuthError",
]
