# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
import logging
from datetime import datetime, timedelta, timezone

from usage_monitor.core.constants import CACHE_KEY
from usage_monitor.usage.persistence.storage import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    SummaryCache,
)
from usage_monitor.usage.tracking.windows import summary_from_windows
from usage_monitor.usage.types import UsageWindow

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_summary(fetched_at=NOW):
    return summary_from_windows(
        [
            UsageWindow("seven_day", 20, NOW + timedelta(days=3)),
            UsageWindow("five_hour", 100, NOW + timedelta(hours=2)),
            UsageWindow("seven_day_opus", 0),
        ],
        fetched_at,
    )


class BrokenStore(KeyValueStore):
    def get(self, key):
        raise OSError("disk on fire")

    def set(self, key, value):
        raise OSError("disk on fire")

    def delete(self, key):
        raise OSError("disk on fire")


def test_save_and_load():
    cache = SummaryCache(MemoryStore())
    summary = make_summary()

    assert cache.save(summary)
    loaded = cache.load(NOW + timedelta(minutes=30))

    assert loaded == summary
    assert loaded.primary.key == "five_hour"
    assert loaded.should_pause


def test_expired_entry_is_evicted():
    store = MemoryStore()
    cache = SummaryCache(store, max_age=3600)
    cache.save(make_summary(NOW - timedelta(seconds=7200)))

    assert cache.load(NOW) is None
    assert store.get(CACHE_KEY) is None


def test_entry_at_max_age_is_still_fresh():
    cache = SummaryCache(MemoryStore(), max_age=3600)
    cache.save(make_summary(NOW - timedelta(seconds=3600)))

    assert cache.load(NOW) is not None


def test_missing_entry():
    assert SummaryCache(MemoryStore()).load(NOW) is None


def test_unreadable_entry_is_evicted(caplog):
    store = MemoryStore()
    store.set(CACHE_KEY, {"windows": [{"key": "five_hour"}], "fetched_at": "garbage"})
    cache = SummaryCache(store)

    with caplog.at_level(logging.WARNING, logger="usage_monitor"):
        assert cache.load(NOW) is None

    assert store.get(CACHE_KEY) is None
    assert "Discarding unreadable cached usage summary" in caplog.text


def test_clear():
    store = MemoryStore()
    cache = SummaryCache(store)
    cache.save(make_summary())

    cache.clear()

    assert cache.load(NOW) is None


def test_store_failures_are_logged_not_raised(caplog):
    cache = SummaryCache(BrokenStore())

    with caplog.at_level(logging.WARNING, logger="usage_monitor"):
        assert cache.save(make_summary()) is False
        assert cache.load(NOW) is None
        cache.clear()

    assert "Failed to cache usage summary" in caplog.text


def test_json_file_store_round_trip(tmp_path):
    path = tmp_path / "nested" / "usage_cache.json"
    cache = SummaryCache(JsonFileStore(path))
    cache.save(make_summary())

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk[CACHE_KEY]["fetched_at"] == "2026-01-01T12:00:00+00:00"
    assert not path.with_suffix(".tmp").exists()

    reloaded = SummaryCache(JsonFileStore(path)).load(NOW)
    assert reloaded == make_summary()


def test_json_file_store_keeps_other_keys(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.set("other", {"a": 1})
    store.set(CACHE_KEY, {"b": 2})
    store.delete(CACHE_KEY)

    assert json.loads(path.read_text(encoding="utf-8")) == {"other": {"a": 1}}


def test_json_file_store_recovers_from_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    cache = SummaryCache(JsonFileStore(path))

    assert cache.load(NOW) is None
    assert cache.save(make_summary())
    assert cache.load(NOW) == make_summary()
