"""
Unit tests for ActivityLog.

Run: pytest tests/unit/test_activity.py -v
"""

import json
from datetime import date, datetime, timedelta

from src.leitner.activity import ActivityLog
from src.leitner.storage import ACTIVITY_KEY, MemoryStorage

NOW = datetime(2026, 3, 10, 9, 30)


def _log(storage, retention_days=90):
    return ActivityLog(storage, retention_days=retention_days, clock=lambda: NOW)


class TestActivityLog:
    def test_increment_counts_per_day(self):
        storage = MemoryStorage()
        log = _log(storage)
        log.increment()
        log.increment()
        log.increment(NOW - timedelta(days=1))

        assert log.today() == 2
        assert log.count_for(date(2026, 3, 9)) == 1
        assert json.loads(storage.load(ACTIVITY_KEY)) == {"2026-03-09": 1, "2026-03-10": 2}

    def test_load_reads_counts(self):
        storage = MemoryStorage({ACTIVITY_KEY: json.dumps({"2026-03-10": 5})})
        log = _log(storage)
        assert log.load() == {"2026-03-10": 5}
        assert log.today() == 5

    def test_corrupted_history_loads_empty(self):
        for blob in ("{oops", "[1]"):
            log = _log(MemoryStorage({ACTIVITY_KEY: blob}))
            assert log.load() == {}

    def test_invalid_counts_dropped(self):
        blob = json.dumps({"2026-03-10": 2, "2026-03-09": -1, "2026-03-08": "3", "2026-03-07": True})
        assert _log(MemoryStorage({ACTIVITY_KEY: blob})).load() == {"2026-03-10": 2}

    def test_history_sorted_without_zero_days(self):
        blob = json.dumps({"2026-03-10": 2, "2026-03-01": 4, "2026-03-05": 0})
        log = _log(MemoryStorage({ACTIVITY_KEY: blob}))
        log.load()
        assert list(log.history().items()) == [("2026-03-01", 4), ("2026-03-10", 2)]

    def test_active_days_skip_bad_keys(self):
        blob = json.dumps({"2026-03-10": 2, "garbage": 4})
        log = _log(MemoryStorage({ACTIVITY_KEY: blob}))
        log.load()
        assert log.active_days() == [date(2026, 3, 10)]

    def test_prune_drops_old_and_invalid_entries(self):
        blob = json.dumps({"2026-03-10": 1, "2025-11-01": 3, "garbage": 2})
        storage = MemoryStorage({ACTIVITY_KEY: blob})
        log = _log(storage)
        log.load()

        assert log.prune() == 2
        assert json.loads(storage.load(ACTIVITY_KEY)) == {"2026-03-10": 1}

    def test_clear_removes_key(self):
        storage = MemoryStorage()
        log = _log(storage)
        log.increment()
        log.clear()
        assert storage.load(ACTIVITY_KEY) is None
        assert log.today() == 0

    def test_write_failure_keeps_count(self):
        log = _log(MemoryStorage(quota_bytes=2))
        assert log.increment() == 1
        assert log.today() == 1
