"""
Storage schema migration.

The host owns the storage-schema-version key. On a version bump it calls
migrate_storage() once before the engine's first use:
1. Read the stored version (missing = "0")
2. Run every registered step newer than it, up to the target
3. Stamp the target version

Steps are idempotent, so an interrupted migration can simply run again.
"""
from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from .storage import SCHEMA_VERSION_KEY, StorageBackend

CURRENT_SCHEMA_VERSION = "2"

# Keys left behind by retired features
DEAD_KEYS = (
    "quiz-learning-records",
    "quiz-study-sessions",
    "quiz-smart-settings",
    "quiz-leitner-state",
    "quiz-practice-state",
    "quiz_answered_global",
    "leitner-stats",
)
DEAD_PREFIXES = ("quiz_progress_",)

STREAK_KEY = "study-streak"
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class MigrationResult:
    """What a migrate_storage() call did."""

    from_version: str | None
    to_version: str
    applied_steps: list[str] = field(default_factory=list)
    removed_keys: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied_steps)


# =============================================================================
# Steps
# =============================================================================


def _purge_dead_keys(storage: StorageBackend, result: MigrationResult) -> None:
    """Remove keys of retired features, exact and by prefix."""
    dead = set(DEAD_KEYS)
    for key in storage.keys():
        if key in dead or key.startswith(DEAD_PREFIXES):
            storage.remove(key)
            result.removed_keys.append(key)


def _normalize_streak_date(storage: StorageBackend, result: MigrationResult) -> None:
    """Rewrite study-streak.lastStudyDate from 'Thu Feb 19 2026' to ISO form."""
    blob = storage.load(STREAK_KEY)
    if not blob:
        return
    try:
        streak = json.loads(blob)
    except json.JSONDecodeError:
        logger.debug("Leaving unreadable study-streak record as is")
        return
    if not isinstance(streak, dict):
        return

    value = streak.get("lastStudyDate")
    if not isinstance(value, str) or _ISO_DATE.match(value):
        return
    try:
        parsed = datetime.strptime(value, "%a %b %d %Y")
    except ValueError:
        return

    streak["lastStudyDate"] = parsed.date().isoformat()
    storage.save(STREAK_KEY, json.dumps(streak))


def _v2(storage: StorageBackend, result: MigrationResult) -> None:
    _purge_dead_keys(storage, result)
    _normalize_streak_date(storage, result)


# version -> step bringing storage up to that version
MIGRATION_STEPS: dict[str, Callable[[StorageBackend, MigrationResult], None]] = {
    "2": _v2,
}


# =============================================================================
# Entry Point
# =============================================================================


def _version_number(version: str | None) -> int:
    if version is None:
        return 0
    try:
        return int(version)
    except ValueError:
        logger.warning(f"Unrecognized storage schema version {version!r}, treating as 0")
        return 0


def migrate_storage(
    storage: StorageBackend,
    target_version: str = CURRENT_SCHEMA_VERSION,
) -> MigrationResult:
    """
    Bring storage from its stored schema version up to target_version.

    Safe to call on every start: it returns immediately when the stored
    version already matches. A stored version newer than the target is
    left untouched.

    Args:
        storage: Backend to migrate
        target_version: Version to migrate to

    Returns:
        MigrationResult describing the applied steps and removed keys
    """
    stored = storage.load(SCHEMA_VERSION_KEY)
    result = MigrationResult(from_version=stored, to_version=target_version)
    if stored == target_version:
        return result

    current = _version_number(stored)
    target = _version_number(target_version)
    if current > target:
        logger.warning(f"Storage schema {stored} is newer than {target_version}; not migrating")
        return result

    for version in sorted(MIGRATION_STEPS, key=int):
        if current < int(version) <= target:
            logger.info(f"Applying storage migration to schema {version}")
            MIGRATION_STEPS[version](storage, result)
            result.applied_steps.append(version)

    storage.save(SCHEMA_VERSION_KEY, target_version)
    if result.removed_keys:
        logger.info(f"Removed {len(result.removed_keys)} dead storage keys")
    return result
