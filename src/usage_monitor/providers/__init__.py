# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Collaborators consumed by the refresh engine.

- AuthGate: credential supply and auth state changes
- UsageSource: the network fetch
"""

from .auth_gate import AuthGate, AuthState, AuthStatus, BaseAuthGate
from .usage_source import UsageSource
from .claude_credentials import ClaudeCredentialsGate
from .anthropic_usage import AnthropicUsageSource

__all__ = [
    "AuthGate",
    "AuthState",
    "AuthStatus",
    "BaseAuthGate",
    "UsageSource",
    "ClaudeCredentialsGate",
    "AnthropicUsageSource",
]
