"""
Leitner: spaced-repetition scheduling and session engine.

Decides which quiz items are due, moves items between proficiency boxes,
composes bounded study sessions and reports learning statistics. Content
loading and presentation belong to the host.

Components:
- LeitnerScheduler: Box transitions, due sets, priority ordering, interleaving
- ProgressStore: Validated, debounced persistence of review records
- SessionManager: Session composition, restore and results
- StatsEngine: Read-only statistics
- ActivityLog: Answers per calendar day
- LeitnerEngine: Facade owning all of the above
- StorageBackend: Key/value boundary (memory, JSON file, SQLite)
"""

from .activity import ActivityLog
from .engine import LeitnerEngine
from .errors import (
    CatalogError,
    EngineNotReadyError,
    InvalidAnswerError,
    LeitnerError,
    NoActiveSessionError,
    StorageError,
    StorageQuotaError,
    UnknownItemError,
)
from .migration import CURRENT_SCHEMA_VERSION, MigrationResult, migrate_storage
from .models import (
    AnswerResult,
    CatalogItem,
    CompletionProgress,
    DailyProgress,
    ReviewRecord,
    ScheduledItem,
    StatsSnapshot,
)
from .progress_store import ProgressStore, StoreConfig
from .scheduler import LeitnerScheduler, SchedulerConfig, interleave_by_topic, move_item, next_review_date
from .session_manager import SessionConfig, SessionManager, SessionPhase, SessionResults
from .session_store import Session, SessionStore, SubmissionState
from .stats_engine import StatsConfig, StatsEngine
from .storage import JsonFileStorage, MemoryStorage, SqliteStorage, StorageBackend

__all__ = [
    # Engine
    "LeitnerEngine",
    # Scheduling
    "LeitnerScheduler",
    "SchedulerConfig",
    "move_item",
    "next_review_date",
    "interleave_by_topic",
    # Persistence
    "ProgressStore",
    "StoreConfig",
    "StorageBackend",
    "MemoryStorage",
    "JsonFileStorage",
    "SqliteStorage",
    "migrate_storage",
    "MigrationResult",
    "CURRENT_SCHEMA_VERSION",
    # Sessions
    "SessionManager",
    "SessionConfig",
    "SessionPhase",
    "SessionResults",
    "Session",
    "SessionStore",
    "SubmissionState",
    # Stats
    "StatsEngine",
    "StatsConfig",
    "ActivityLog",
    # Models
    "CatalogItem",
    "ReviewRecord",
    "ScheduledItem",
    "AnswerResult",
    "StatsSnapshot",
    "CompletionProgress",
    "DailyProgress",
    # Errors
    "LeitnerError",
    "EngineNotReadyError",
    "InvalidAnswerError",
    "UnknownItemError",
    "NoActiveSessionError",
    "CatalogError",
    "StorageError",
    "StorageQuotaError",
]
