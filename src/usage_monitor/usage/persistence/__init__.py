# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Cached usage summary persistence."""

from .storage import JsonFileStore, KeyValueStore, MemoryStore, SummaryCache

__all__ = ["JsonFileStore", "KeyValueStore", "MemoryStore", "SummaryCache"]
