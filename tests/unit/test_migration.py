"""
Unit tests for storage schema migration.

Run: pytest tests/unit/test_migration.py -v
"""

import json

from src.leitner.migration import CURRENT_SCHEMA_VERSION, DEAD_KEYS, migrate_storage
from src.leitner.storage import PROGRESS_KEY, SCHEMA_VERSION_KEY, MemoryStorage


def _legacy_storage() -> MemoryStorage:
    data = {key: "{}" for key in DEAD_KEYS}
    data.update({
        "quiz_progress_networking": "{}",
        "quiz_progress_security": "{}",
        PROGRESS_KEY: '{"q1": {}}',
        "study-streak": json.dumps({"lastStudyDate": "Thu Feb 19 2026", "count": 3}),
    })
    return MemoryStorage(data)


class TestMigrateStorage:
    def test_unversioned_storage_purged_and_stamped(self):
        storage = _legacy_storage()
        result = migrate_storage(storage)

        assert result.from_version is None
        assert result.applied_steps == ["2"]
        assert storage.load(SCHEMA_VERSION_KEY) == CURRENT_SCHEMA_VERSION
        assert not any(storage.load(key) for key in DEAD_KEYS)
        assert storage.load("quiz_progress_networking") is None
        assert len(result.removed_keys) == len(DEAD_KEYS) + 2

    def test_live_keys_untouched(self):
        storage = _legacy_storage()
        migrate_storage(storage)
        assert storage.load(PROGRESS_KEY) == '{"q1": {}}'

    def test_streak_date_normalized(self):
        storage = _legacy_storage()
        migrate_storage(storage)
        streak = json.loads(storage.load("study-streak"))
        assert streak == {"lastStudyDate": "2026-02-19", "count": 3}

    def test_current_version_is_noop(self):
        storage = _legacy_storage()
        storage.save(SCHEMA_VERSION_KEY, CURRENT_SCHEMA_VERSION)
        saves = storage.save_count

        result = migrate_storage(storage)

        assert not result.changed
        assert storage.save_count == saves
        assert storage.load("quiz-leitner-state") == "{}"

    def test_idempotent(self):
        storage = _legacy_storage()
        migrate_storage(storage)
        second = migrate_storage(storage)
        assert not second.changed
        assert second.removed_keys == []

    def test_newer_stored_version_left_alone(self):
        storage = _legacy_storage()
        storage.save(SCHEMA_VERSION_KEY, "7")

        result = migrate_storage(storage, "2")

        assert not result.changed
        assert storage.load(SCHEMA_VERSION_KEY) == "7"
        assert storage.load("leitner-stats") == "{}"

    def test_iso_streak_date_kept(self):
        storage = MemoryStorage({"study-streak": json.dumps({"lastStudyDate": "2026-02-19"})})
        migrate_storage(storage)
        assert json.loads(storage.load("study-streak"))["lastStudyDate"] == "2026-02-19"
