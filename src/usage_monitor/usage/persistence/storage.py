# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Cached usage summary persistence.

SummaryCache keeps the last known UsageSummary so a restarted process can
display something while the first live fetch is in flight. The concrete
key-value transport is pluggable: JsonFileStore for the host process,
MemoryStore for embedding and tests.

All persistence is best effort. Failures are logged and never propagated.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ...core.constants import CACHE_KEY, DEFAULT_CACHE_MAX_AGE
from ..tracking.windows import format_timestamp, parse_timestamp, summary_from_windows
from ..types import CachedSummary, UsageSummary, UsageWindow

lib_logger = logging.getLogger("usage_monitor")


# =============================================================================
# KEY-VALUE STORES
# =============================================================================


class KeyValueStore(ABC):
    """Minimal key-value contract the cache needs."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored JSON-compatible value, or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value. May raise OSError."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key if present. May raise OSError."""
        ...


class MemoryStore(KeyValueStore):
    """In-process store."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Single JSON file holding a key -> value object.

    Writes go to a temp file which is then renamed over the target.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object in {self.path}")
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self.path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        temp_path.replace(self.path)

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read_all()
        except ValueError:
            # Corrupt file: start over rather than refuse to save
            data = {}
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        try:
            data = self._read_all()
        except ValueError:
            data = {}
        if key in data:
            del data[key]
            self._write_all(data)


# =============================================================================
# SUMMARY CACHE
# =============================================================================


class SummaryCache:
    """
    Persists the last UsageSummary with a freshness bound.

    Entries older than max_age seconds are discarded and evicted on load.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        max_age: float = DEFAULT_CACHE_MAX_AGE,
        key: str = CACHE_KEY,
    ):
        self.store = store or MemoryStore()
        self.max_age = max_age
        self.key = key

    def save(self, summary: UsageSummary) -> bool:
        """
        Persist a summary.

        Returns:
            True if saved, False if the store failed (logged)
        """
        envelope = CachedSummary(
            windows=[
                {
                    "key": w.key,
                    "utilization": w.utilization,
                    "resets_at": format_timestamp(w.resets_at) if w.resets_at else None,
                }
                for w in summary.windows
            ],
            fetched_at=format_timestamp(summary.fetched_at),
        )
        try:
            self.store.set(self.key, asdict(envelope))
            lib_logger.debug(f"Cached usage summary ({len(summary.windows)} windows)")
            return True
        except (OSError, TypeError, ValueError) as e:
            lib_logger.warning(f"Failed to cache usage summary: {e}")
            return False

    def load(self, now: datetime) -> Optional[UsageSummary]:
        """
        Load the cached summary if it is fresh enough.

        Args:
            now: Current time, compared against the cached fetched_at

        Returns:
            UsageSummary, or None if missing, expired or unreadable
        """
        try:
            raw = self.store.get(self.key)
        except (OSError, ValueError) as e:
            lib_logger.warning(f"Failed to read cached usage summary: {e}")
            return None

        if raw is None:
            lib_logger.debug("No cached usage summary")
            return None

        try:
            envelope = CachedSummary(**raw)
            fetched_at = parse_timestamp(envelope.fetched_at)
            windows = [
                UsageWindow(
                    key=str(item["key"]),
                    utilization=int(item["utilization"]),
                    resets_at=(
                        parse_timestamp(item["resets_at"])
                        if item.get("resets_at")
                        else None
                    ),
                )
                for item in envelope.windows
            ]
        except (TypeError, KeyError, ValueError, AttributeError) as e:
            lib_logger.warning(f"Discarding unreadable cached usage summary: {e}")
            self.clear()
            return None

        age = (now - fetched_at).total_seconds()
        if age > self.max_age:
            lib_logger.debug(f"Cached usage summary expired ({int(age)}s old)")
            self.clear()
            return None

        lib_logger.debug(f"Loaded cached usage summary ({int(age)}s old)")
        return summary_from_windows(windows, fetched_at)

    def clear(self) -> None:
        """Evict the cached summary (logout, expiry)."""
        try:
            self.store.delete(self.key)
        except (OSError, ValueError) as e:
            lib_logger.warning(f"Failed to clear cached usage summary: {e}")
