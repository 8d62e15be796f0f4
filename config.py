"""
Configuration settings for the leitner-engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every tunable constant of the scheduler, the session builder and the progress
store lives here; components receive plain dataclass configs built from it.
"""
from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from src.leitner.progress_store import StoreConfig
    from src.leitner.scheduler import SchedulerConfig
    from src.leitner.session_manager import SessionConfig
    from src.leitner.stats_engine import StatsConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEITNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    storage_path: str = Field(
        default="~/.leitner/storage.json",
        description="JSON file used by the CLI storage backend",
    )
    schema_version: str = Field(
        default="2",
        description="Storage schema version the host migrates to before first use",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Leitner Boxes
    # ========================================
    box_intervals: list[int] = Field(
        default=[1, 2, 3],
        description="Review interval in days for box 1..N (must increase)",
    )
    legacy_max_box: int = Field(
        default=5,
        description="Widest box number accepted from retired box schemes",
    )

    # ========================================
    # Due Set Selection
    # ========================================
    review_probability: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Chance that a non-due mastered item is resurfaced",
    )
    max_resurfaced_items: int | None = Field(
        default=None,
        description="Cap on resurfaced mastered items per due set (None = no cap)",
    )
    min_due_items: int = Field(
        default=20,
        ge=0,
        description="Due sets smaller than this are backfilled with non-due items",
    )
    order_seed: int | None = Field(
        default=None,
        description="Fixed tiebreak seed (None = new seed per process)",
    )

    # ========================================
    # Sessions
    # ========================================
    session_size: int = Field(
        default=20,
        ge=1,
        description="Maximum items per study session",
    )
    priority_ratio: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Target share of origin-priority items in a session",
    )
    session_expiry_hours: float = Field(
        default=4.0,
        gt=0,
        description="Saved sessions older than this are regenerated",
    )
    catalog_drift_tolerance: float = Field(
        default=0.10,
        ge=0.0,
        description="Allowed relative change in catalog size for a session restore",
    )
    min_resolvable_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Share of saved session ids that must still exist in the catalog",
    )

    # ========================================
    # Progress Store
    # ========================================
    save_debounce_ms: int = Field(
        default=100,
        ge=0,
        description="Delay before coalesced progress writes are flushed",
    )
    cleanup_threshold_days: int = Field(
        default=30,
        ge=1,
        description="Mastered records untouched this long may be pruned",
    )

    # ========================================
    # Daily Target
    # ========================================
    daily_target: int = Field(
        default=60,
        ge=1,
        le=500,
        description="Default number of answers per day",
    )
    activity_retention_days: int = Field(
        default=90,
        ge=1,
        description="Days of daily activity history to keep",
    )

    @field_validator("box_intervals")
    @classmethod
    def _intervals_increase(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("box_intervals must not be empty")
        if any(v < 1 for v in value):
            raise ValueError("box intervals must be at least one day")
        if any(b <= a for a, b in zip(value, value[1:])):
            raise ValueError("box intervals must increase monotonically")
        return value

    def get_scheduler_config(self) -> "SchedulerConfig":
        """Build the scheduler configuration."""
        from src.leitner.scheduler import SchedulerConfig

        return SchedulerConfig(
            intervals={box: days for box, days in enumerate(self.box_intervals, start=1)},
            review_probability=self.review_probability,
            max_resurfaced_items=self.max_resurfaced_items,
            min_due_items=self.min_due_items,
            seed=self.order_seed,
        )

    def get_session_config(self) -> "SessionConfig":
        """Build the session manager configuration."""
        from src.leitner.session_manager import SessionConfig

        return SessionConfig(
            session_size=self.session_size,
            priority_ratio=self.priority_ratio,
            expiry_hours=self.session_expiry_hours,
            catalog_drift_tolerance=self.catalog_drift_tolerance,
            min_resolvable_ratio=self.min_resolvable_ratio,
        )

    def get_store_config(self) -> "StoreConfig":
        """Build the progress store configuration."""
        from src.leitner.progress_store import StoreConfig

        return StoreConfig(
            debounce_ms=self.save_debounce_ms,
            cleanup_threshold_days=self.cleanup_threshold_days,
            legacy_max_box=self.legacy_max_box,
            intervals={box: days for box, days in enumerate(self.box_intervals, start=1)},
        )

    def get_stats_config(self) -> "StatsConfig":
        """Build the stats configuration."""
        from src.leitner.stats_engine import StatsConfig

        return StatsConfig(
            default_daily_target=self.daily_target,
            activity_retention_days=self.activity_retention_days,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
